"""Tests for posts and comments."""
import pytest
from werkzeug.security import generate_password_hash

from app.gamenight import create_app
from app.gamenight.auth import reset_login_attempts
from app.gamenight.db import session_scope
from app.gamenight.models import Base, User
from app.gamenight.modules.games.models import Game


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("UPLOAD_ROOT", str(tmp_path / "uploads"))
    reset_login_attempts()

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    with session_scope(app) as s:
        u = User(email="ada@example.com", password_hash=generate_password_hash("pw1234"), first_name="Ada", last_name="L")
        s.add(u)
        s.flush()
        s.add(Game(id=3, creator_user_id=u.id, title="Poker"))

    return app.test_client()


def _login(client):
    client.post("/api/login", data={"email": "ada@example.com", "password": "pw1234"})


def test_post_requires_auth(client):
    r = client.post("/api/posts", data={"game_id": "3", "body": "hi"})
    assert r.status_code == 401


def test_post_and_comment_flow(client):
    _login(client)
    r = client.post("/api/posts", data={"game_id": "3", "body": "Bring chips"})
    assert r.status_code == 201
    post = r.json
    assert post["game_id"] == 3
    assert post["comments"] == []

    r = client.post(f"/api/posts/{post['id']}/comments", data={"body": "will do"})
    assert r.status_code == 201
    assert r.json["post_id"] == post["id"]

    client.post("/api/posts", data={"game_id": "3", "body": "Doors at 8"})

    r = client.get("/api/posts?game_id=3")
    assert r.status_code == 200
    assert [p["body"] for p in r.json] == ["Bring chips", "Doors at 8"]
    assert [c["body"] for c in r.json[0]["comments"]] == ["will do"]
    assert r.json[1]["comments"] == []


def test_posts_for_game_requires_numeric_id(client):
    assert client.get("/api/posts").status_code == 400
    assert client.get("/api/posts?game_id=x").status_code == 400


def test_post_on_missing_game_404(client):
    _login(client)
    r = client.post("/api/posts", data={"game_id": "99", "body": "hello?"})
    assert r.status_code == 404
    assert r.json["error"]


def test_comment_on_missing_post_404(client):
    _login(client)
    r = client.post("/api/posts/99/comments", data={"body": "hello?"})
    assert r.status_code == 404


def test_empty_body_rejected(client):
    _login(client)
    r = client.post("/api/posts", data={"game_id": "3", "body": "   "})
    assert r.status_code == 400
    assert r.json["errors"] == ["Body is required."]
