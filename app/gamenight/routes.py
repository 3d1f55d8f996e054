from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, wait

from flask import Blueprint, Flask, abort, current_app, g, jsonify, redirect, render_template, send_from_directory, url_for

from app.gamenight.db import db_session
from app.gamenight.errors import DataAccessError, NotFound
from app.gamenight.guard import current_user_id, log_out, login_required, unauthorized
from app.gamenight.modules.posts.service import fetch_posts_with_comments
from app.gamenight.modules.profiles.service import query_profile_data, query_user_games
from app.gamenight.storage import LocalStorage, storage_from_config

bp = Blueprint("pages", __name__)


@bp.get("/")
def root():
    return redirect(url_for("pages.index"))


@bp.get("/index")
def index():
    return render_template("index.html", id=current_user_id())


@bp.get("/create_event")
@login_required
def create_event():
    return render_template("create_event.html", id=current_user_id())


def _in_app_context(app: Flask, fn, *args):
    # Each worker thread gets its own app context, so its own DB session.
    with app.app_context():
        return fn(db_session(), *args)


@bp.get("/event/<int:event_id>")
@login_required
def event_view(event_id: int):
    """
    Event page payload: the viewer's profile and the event's posts with their
    comments. The two are fetched side by side; neither depends on the other.
    """
    app = current_app._get_current_object()
    timeout = float(app.config.get("EVENT_FETCH_TIMEOUT") or 10)
    pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="event-view")
    try:
        profile_future = pool.submit(_in_app_context, app, query_user_games, current_user_id())
        posts_future = pool.submit(_in_app_context, app, fetch_posts_with_comments, event_id)
        _, pending = wait([profile_future, posts_future], timeout=timeout)
    finally:
        pool.shutdown(wait=False, cancel_futures=True)

    if pending:
        app.logger.error("Event view timed out after %ss (event_id=%s request_id=%s)", timeout, event_id, g.request_id)
        return jsonify({"error": "Timed out loading event."}), 504
    try:
        profile = profile_future.result()
        posts = posts_future.result()
    except NotFound:
        # Only the profile branch can miss: the cookie names a user that no longer exists.
        app.logger.warning("Stale session user_id=%s (request_id=%s); logging out", current_user_id(), g.request_id)
        log_out()
        return unauthorized()
    except DataAccessError:
        app.logger.exception("Event view failed (event_id=%s request_id=%s)", event_id, g.request_id)
        return jsonify({"error": "Could not load event."}), 500

    return jsonify({"id": event_id, "profile": profile, "posts": posts})


@bp.post("/create_game/<int:game_id>")
def create_game_redirect(game_id: int):
    return redirect(url_for("pages.event_view", event_id=game_id))


@bp.get("/create_game/<int:game_id>")
def create_game_page(game_id: int):
    return render_template("event.html", id=game_id)


@bp.get("/user/<int:user_id>/profile")
def user_profile(user_id: int):
    s = db_session()
    profile = query_profile_data(s, user_id)
    return render_template("profile.html", id=user_id, profile=profile)


@bp.get("/user/<int:user_id>/edit")
def user_edit(user_id: int):
    s = db_session()
    profile = query_profile_data(s, user_id)
    return render_template("profile_edit.html", id=current_user_id(), profile=profile)


@bp.get("/uploads/<path:key>")
def uploaded_file(key: str):
    storage = storage_from_config(current_app.config)
    if not isinstance(storage, LocalStorage) or not storage.exists(key):
        abort(404)
    return send_from_directory(storage.root, key)


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for load balancer probes. No DB access.
    """
    return "ok", 200
