import logging
from datetime import timedelta

from flask import Flask, g, jsonify, render_template, request
from dotenv import load_dotenv

from app.gamenight.auth import bp as auth_bp
from app.gamenight.config import load_config
from app.gamenight.db import init_db, teardown_db_session
from app.gamenight.errors import Conflict, DataAccessError, GameNightError, NotFound, ValidationError
from app.gamenight.guard import load_current_user
from app.gamenight.modules.games.api import event_bp, events_bp, games_new_bp
from app.gamenight.modules.posts.api import bp as posts_bp
from app.gamenight.modules.users.api import bp as users_bp, picture_bp
from app.gamenight.routes import bp as pages_bp

logger = logging.getLogger(__name__)

_JSON_PREFIXES = ("/api/", "/event/")


def _wants_json() -> bool:
    return request.path.startswith(_JSON_PREFIXES)


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__, template_folder="templates", static_folder="static")
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(days=14)

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_db(app)

    app.register_blueprint(pages_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp, url_prefix="/api/users")
    app.register_blueprint(picture_bp, url_prefix="/api/picture")
    app.register_blueprint(event_bp, url_prefix="/api/event")
    app.register_blueprint(events_bp, url_prefix="/api/events")
    app.register_blueprint(games_new_bp, url_prefix="/api/games/new")
    app.register_blueprint(posts_bp, url_prefix="/api/posts")

    app.before_request(load_current_user)
    app.teardown_appcontext(teardown_db_session)

    @app.errorhandler(ValidationError)
    def _err_validation(e: ValidationError):
        return jsonify({"errors": e.errors}), 400

    @app.errorhandler(Conflict)
    def _err_conflict(e: Conflict):
        app.logger.info("Conflict: %s (request_id=%s)", e, getattr(g, "request_id", None))
        return jsonify({"error": e.public_message}), 409

    @app.errorhandler(NotFound)
    def _err_not_found(e: NotFound):
        if _wants_json():
            return jsonify({"error": e.public_message}), 404
        return render_template("errors/404.html"), 404

    @app.errorhandler(DataAccessError)
    def _err_data_access(e: DataAccessError):
        # Detail stays in the log; the client only sees the public message.
        app.logger.exception("Data access error (request_id=%s): %s", getattr(g, "request_id", None), e)
        if _wants_json():
            return jsonify({"error": e.public_message}), 500
        return render_template("errors/500.html"), 500

    @app.errorhandler(GameNightError)
    def _err_generic(e: GameNightError):
        app.logger.exception("Unhandled application error (request_id=%s)", getattr(g, "request_id", None))
        return jsonify({"error": e.public_message}), e.status_code

    @app.errorhandler(404)
    def _err_404(e):  # type: ignore[no-redef]
        if _wants_json():
            return jsonify({"error": "Not found."}), 404
        return render_template("errors/404.html"), 404

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        app.logger.warning(
            "Forbidden: user_id=%s path=%s request_id=%s",
            getattr(g, "user_id", None),
            request.path,
            getattr(g, "request_id", None),
        )
        if _wants_json():
            return jsonify({"error": "Forbidden."}), 403
        return "Forbidden", 403

    @app.errorhandler(413)
    def _err_413(e):  # type: ignore[no-redef]
        return jsonify({"error": "File too large. Maximum size is 5MB."}), 413

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        # Ensure stack trace shows in server logs.
        app.logger.exception("Unhandled 500 (request_id=%s)", getattr(g, "request_id", None))
        if _wants_json():
            return jsonify({"error": "Internal error."}), 500
        return render_template("errors/500.html"), 500

    logger.info("create_app() complete; app ready to serve")

    return app
