import pytest
from werkzeug.security import generate_password_hash

from app.gamenight import create_app
from app.gamenight.auth import reset_login_attempts
from app.gamenight.db import session_scope
from app.gamenight.models import Base, User


@pytest.fixture()
def client(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("UPLOAD_ROOT", str(tmp_path / "uploads"))
    reset_login_attempts()

    app = create_app()

    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        s.add(User(email="ada@example.com", password_hash=generate_password_hash("pw1234"), first_name="Ada", last_name="L"))

    return app.test_client()


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True

    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_root_redirects_to_index(client):
    r = client.get("/", follow_redirects=False)
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/index")


def test_index_renders_anonymous_and_logged_in(client):
    r = client.get("/index")
    assert r.status_code == 200
    assert b"Log in" in r.data

    client.post("/api/login", data={"email": "ada@example.com", "password": "pw1234"})
    r = client.get("/index")
    assert r.status_code == 200
    assert b"Welcome back" in r.data


def test_static_css_served(client):
    r = client.get("/static/styles/app.css")
    assert r.status_code == 200


def test_missing_event_is_json_404(client):
    r = client.get("/api/event/999")
    assert r.status_code == 404
    assert r.json["error"]


def test_non_numeric_id_is_404_not_500(client):
    client.post("/api/login", data={"email": "ada@example.com", "password": "pw1234"})
    r = client.get("/event/abc")
    assert r.status_code == 404
