from __future__ import annotations

import os
import uuid
from dataclasses import dataclass
from pathlib import Path

from werkzeug.utils import secure_filename

ALLOWED_IMAGE_EXTENSIONS = frozenset({"png", "jpg", "jpeg", "gif", "webp"})


class StorageError(RuntimeError):
    pass


def allowed_image(filename: str | None) -> bool:
    return bool(filename) and "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_IMAGE_EXTENSIONS


def build_picture_key(user_id: int, filename: str) -> str:
    """Per-user key with a random prefix so two uploads of "me.png" never collide."""
    safe_filename = secure_filename(filename) or "picture.bin"
    return f"{user_id}/{uuid.uuid4().hex}-{safe_filename}"


class Storage:
    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        raise NotImplementedError

    def public_url(self, key: str) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class LocalStorage(Storage):
    root: Path
    url_prefix: str = "/uploads"

    def _path(self, key: str) -> Path:
        safe_key = key.lstrip("/").replace("\\", "/")
        p = (self.root / safe_key).resolve()
        if self.root.resolve() not in p.parents:
            raise StorageError(f"Key escapes storage root: {key!r}")
        return p

    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        p = self._path(key)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)

    def exists(self, key: str) -> bool:
        try:
            return self._path(key).is_file()
        except StorageError:
            return False

    def public_url(self, key: str) -> str:
        return f"{self.url_prefix}/{key.lstrip('/')}"


@dataclass(frozen=True)
class S3Storage(Storage):
    endpoint: str
    region: str
    bucket: str
    access_key_id: str
    secret_access_key: str
    prefix: str = "uploads"

    def _client(self):
        try:
            import boto3  # type: ignore
        except ImportError as e:  # pragma: no cover
            raise StorageError("boto3 required for S3 storage. Install gamenight[s3].") from e
        return boto3.client(
            "s3",
            endpoint_url=f"https://{self.endpoint}" if self.endpoint else None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
        )

    def _key(self, key: str) -> str:
        return f"{self.prefix}/{key.lstrip('/')}"

    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        extra: dict[str, object] = {"ACL": "public-read"}
        if content_type:
            extra["ContentType"] = content_type
        self._client().put_object(Bucket=self.bucket, Key=self._key(key), Body=data, **extra)

    def public_url(self, key: str) -> str:
        return f"https://{self.bucket}.{self.endpoint}/{self._key(key)}"


def storage_from_config(config: dict) -> Storage:
    backend = (config.get("STORAGE_BACKEND") or "local").strip().lower()
    if backend == "s3":
        return S3Storage(
            endpoint=(config.get("S3_ENDPOINT") or "").strip(),
            region=(config.get("S3_REGION") or "nyc3").strip(),
            bucket=(config.get("S3_BUCKET") or "").strip(),
            access_key_id=(config.get("S3_ACCESS_KEY_ID") or "").strip(),
            secret_access_key=(config.get("S3_SECRET_ACCESS_KEY") or "").strip(),
        )
    root = Path(config.get("UPLOAD_ROOT") or "public/uploads")
    if not root.is_absolute():
        root = Path(os.getcwd()) / root
    return LocalStorage(root=root)
