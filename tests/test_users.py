"""Registration, profile pages, profile edit and picture upload."""
import io

import pytest
from werkzeug.security import generate_password_hash

from app.gamenight import create_app
from app.gamenight.auth import reset_login_attempts
from app.gamenight.db import session_scope
from app.gamenight.models import Base, User
from app.gamenight.modules.games.models import Game, GamePlayer


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("UPLOAD_ROOT", str(tmp_path / "uploads"))
    reset_login_attempts()

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    with session_scope(app) as s:
        ada = User(email="ada@example.com", password_hash=generate_password_hash("pw1234"), first_name="Ada", last_name="L", equipment="Switch")
        bob = User(email="bob@example.com", password_hash=generate_password_hash("pw1234"), first_name="Bob", last_name="B")
        s.add_all([ada, bob])
        s.flush()
        game = Game(creator_user_id=ada.id, title="Mario Kart")
        game.players.extend([GamePlayer(user_id=ada.id), GamePlayer(user_id=bob.id)])
        s.add(game)
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _login(client, email="ada@example.com"):
    client.post("/api/login", data={"email": email, "password": "pw1234"})


def test_register_logs_in(client):
    r = client.post(
        "/api/register",
        data={"email": "Cy@Example.com", "password": "secret1", "first_name": "Cy", "last_name": "D"},
        follow_redirects=False,
    )
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/index")
    assert client.get("/create_event").status_code == 200

    client.post("/logout")
    r = client.post("/api/login", data={"email": "cy@example.com", "password": "secret1"})
    assert r.status_code == 302


def test_register_validation(client):
    r = client.post("/api/register", data={"email": "nope", "password": "123", "first_name": "", "last_name": "X"})
    assert r.status_code == 400
    assert len(r.json["errors"]) == 3
    assert client.get("/create_event").status_code == 401


def test_register_duplicate_email(client):
    r = client.post(
        "/api/register",
        data={"email": "ADA@example.com", "password": "secret1", "first_name": "A", "last_name": "B"},
    )
    assert r.status_code == 409


def test_users_api_hides_credentials(client):
    r = client.get("/api/users")
    assert r.status_code == 200
    assert [u["first_name"] for u in r.json] == ["Ada", "Bob"]
    assert all("password_hash" not in u and "email" not in u for u in r.json)

    assert client.get("/api/users/1").json["equipment"] == "Switch"
    assert client.get("/api/users/99").status_code == 404


def test_profile_page_lists_games_and_partners(client):
    r = client.get("/user/1/profile")
    assert r.status_code == 200
    assert b"Mario Kart" in r.data
    assert b"Bob B" in r.data

    assert client.get("/user/99/profile").status_code == 404


def test_edit_page(client):
    _login(client)
    r = client.get("/user/1/edit")
    assert r.status_code == 200
    assert b"Edit profile" in r.data


def test_update_own_profile(app, client):
    _login(client)
    r = client.post("/api/users/1", data={"first_name": "Augusta", "equipment": ""}, follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/user/1/profile")

    with session_scope(app) as s:
        ada = s.get(User, 1)
        assert ada.first_name == "Augusta"
        assert ada.last_name == "L"
        assert ada.equipment is None


def test_update_other_profile_forbidden(client):
    _login(client)
    r = client.post("/api/users/2", data={"first_name": "Mallory"})
    assert r.status_code == 403


def test_update_profile_requires_auth(client):
    assert client.post("/api/users/1", data={"first_name": "X"}).status_code == 401


def test_picture_upload(app, client, tmp_path):
    _login(client)
    data = {"picture": (io.BytesIO(b"\x89PNG fake"), "me.png")}
    r = client.post("/api/picture", data=data, content_type="multipart/form-data", follow_redirects=False)
    assert r.status_code == 302

    with session_scope(app) as s:
        img = s.get(User, 1).img
    assert img.startswith("/uploads/1/")
    assert img.endswith("-me.png")
    assert list((tmp_path / "uploads" / "1").iterdir())

    r = client.get(img)
    assert r.status_code == 200
    assert r.data == b"\x89PNG fake"


def test_picture_uploads_do_not_collide(app, client):
    _login(client)
    urls = []
    for payload in (b"one", b"two"):
        client.post("/api/picture", data={"picture": (io.BytesIO(payload), "me.png")}, content_type="multipart/form-data")
        with session_scope(app) as s:
            urls.append(s.get(User, 1).img)
    assert urls[0] != urls[1]
    assert client.get(urls[0]).data == b"one"


def test_picture_upload_rejects_non_images(client):
    _login(client)
    r = client.post(
        "/api/picture",
        data={"picture": (io.BytesIO(b"MZ"), "evil.exe")},
        content_type="multipart/form-data",
    )
    assert r.status_code == 400

    r = client.post("/api/picture", data={}, content_type="multipart/form-data")
    assert r.status_code == 400


def test_picture_upload_requires_auth(client):
    r = client.post("/api/picture", data={"picture": (io.BytesIO(b"x"), "me.png")}, content_type="multipart/form-data")
    assert r.status_code == 401


def test_uploads_path_traversal_blocked(client):
    r = client.get("/uploads/../test.db")
    assert r.status_code == 404


def test_register_race_on_same_email_is_conflict(client, monkeypatch):
    # The pre-check misses a row committed by a concurrent request; the unique index catches it.
    monkeypatch.setattr("app.gamenight.modules.users.service.get_user_by_email", lambda s, email: None)
    r = client.post(
        "/api/register",
        data={"email": "ada@example.com", "password": "secret1", "first_name": "A", "last_name": "B"},
    )
    assert r.status_code == 409
    assert r.json["error"]
    assert client.get("/create_event").status_code == 401
