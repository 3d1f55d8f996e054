import os
from pathlib import Path

import pytest

from app.gamenight.config import load_settings
from app.gamenight.storage import (
    LocalStorage,
    S3Storage,
    StorageError,
    allowed_image,
    build_picture_key,
    storage_from_config,
)


def test_allowed_image():
    assert allowed_image("me.PNG")
    assert allowed_image("a.b.webp")
    assert not allowed_image("me")
    assert not allowed_image("run.exe")
    assert not allowed_image("")
    assert not allowed_image(None)


def test_picture_key_is_per_user_and_sanitized():
    key = build_picture_key(7, "../../etc/passwd.png")
    user_dir, name = key.split("/")
    assert user_dir == "7"
    assert name.endswith("-etc_passwd.png")
    assert build_picture_key(7, "me.png") != build_picture_key(7, "me.png")


def test_local_storage_roundtrip_and_escape(tmp_path):
    storage = LocalStorage(root=tmp_path)
    storage.put_bytes("1/abc-me.png", b"img")
    assert storage.exists("1/abc-me.png")
    assert (tmp_path / "1" / "abc-me.png").read_bytes() == b"img"
    assert not storage.exists("1/missing.png")
    assert storage.public_url("1/abc-me.png") == "/uploads/1/abc-me.png"

    with pytest.raises(StorageError):
        storage.put_bytes("../outside.png", b"x")
    assert not storage.exists("../outside.png")


def test_storage_from_config():
    local = storage_from_config({"STORAGE_BACKEND": "local", "UPLOAD_ROOT": "public/uploads"})
    assert isinstance(local, LocalStorage)
    assert local.root == Path.cwd() / "public" / "uploads"

    s3 = storage_from_config({"STORAGE_BACKEND": "s3", "S3_ENDPOINT": "nyc3.example.com", "S3_BUCKET": "pics"})
    assert isinstance(s3, S3Storage)
    assert s3.public_url("1/abc-me.png") == "https://pics.nyc3.example.com/uploads/1/abc-me.png"


def test_upload_root_defaults_under_public(monkeypatch):
    monkeypatch.delenv("UPLOAD_ROOT", raising=False)
    assert load_settings().upload_root == os.path.join("public", "uploads")
