"""
Session guard.

The signed session cookie carries a single claim, ``user_id``. Routes that
need an identity are wrapped with ``login_required``; it answers 401 before
the handler body (and therefore any data access) runs.
"""
from __future__ import annotations

import uuid
from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import Response, current_app, g, request, session

UNAUTHORIZED_MESSAGE = "Please log in first"


def load_current_user() -> None:
    """
    Loads g.user_id from the session cookie.
    Also assigns a simple per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    if request.path.startswith(("/static/", "/health", "/healthz")):
        g.user_id = None
        return

    raw = session.get("user_id")
    if raw is None:
        g.user_id = None
        return
    try:
        g.user_id = int(raw)
    except (TypeError, ValueError):
        current_app.logger.warning("Dropping malformed session user_id=%r (request_id=%s)", raw, g.request_id)
        session.pop("user_id", None)
        g.user_id = None


def current_user_id() -> int | None:
    return getattr(g, "user_id", None)


def unauthorized() -> Response:
    return Response(UNAUTHORIZED_MESSAGE, status=401, mimetype="text/plain")


def login_required(fn: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(fn)
    def wrapped(*args: Any, **kwargs: Any):
        if current_user_id() is None:
            return unauthorized()
        return fn(*args, **kwargs)

    return wrapped


def log_in(user_id: int) -> None:
    session.clear()
    session["user_id"] = user_id
    g.user_id = user_id


def log_out() -> None:
    session.pop("user_id", None)
    g.user_id = None
