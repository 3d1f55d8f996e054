from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timedelta

from flask import Blueprint, Response, current_app, g, redirect, request, url_for

from app.gamenight.audit import record_event
from app.gamenight.db import db_session
from app.gamenight.guard import current_user_id, log_in, log_out
from app.gamenight.models import User
from app.gamenight.modules.users.service import authenticate, create_user, normalize_email

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds


def _check_rate_limit(ip: str) -> bool:
    cutoff = datetime.utcnow() - timedelta(seconds=_LOGIN_RATE_WINDOW)
    recent = [t for t in _login_attempts.get(ip, ()) if t > cutoff]
    if recent:
        _login_attempts[ip] = recent
    else:
        _login_attempts.pop(ip, None)
    return len(recent) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(datetime.utcnow())


def reset_login_attempts() -> None:
    _login_attempts.clear()


@bp.post("/api/login")
def login_post():
    email = normalize_email(request.form.get("email"))
    password = request.form.get("password") or ""
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        current_app.logger.warning("Login rate limit hit (ip=%s request_id=%s)", ip, g.request_id)
        return Response("Too many login attempts. Please wait 5 minutes.", status=429, mimetype="text/plain")

    _record_attempt(ip)

    s = db_session()
    user = authenticate(s, email, password)
    if not user:
        record_event(
            s,
            actor_user_id=None,
            action="user.login_failed",
            entity_type="User",
            entity_id=email,
            metadata={"email": email},
        )
        s.commit()
        return Response("Invalid email or password", status=403, mimetype="text/plain")

    log_in(user.id)
    _login_attempts.pop(ip, None)
    record_event(s, actor_user_id=user.id, action="user.login", entity_type="User", entity_id=str(user.id))
    s.commit()
    return redirect(url_for("pages.index"))


@bp.post("/api/register")
def register_post():
    payload = {
        "email": request.form.get("email"),
        "password": request.form.get("password"),
        "first_name": request.form.get("first_name"),
        "last_name": request.form.get("last_name"),
        "equipment": request.form.get("equipment"),
    }
    s = db_session()
    user = create_user(s, payload)
    s.commit()
    log_in(user.id)
    return redirect(url_for("pages.index"))


@bp.post("/logout")
def logout():
    user_id = current_user_id()
    s = db_session()
    # A stale cookie may name a user that no longer exists; there is no actor to audit then.
    if user_id is not None and s.get(User, user_id) is not None:
        record_event(s, actor_user_id=user_id, action="user.logout", entity_type="User", entity_id=str(user_id))
        s.commit()
    log_out()
    return redirect(url_for("pages.index"))
