from __future__ import annotations

from flask import Blueprint, jsonify, redirect, request, url_for

from app.gamenight.db import db_session
from app.gamenight.errors import ValidationError
from app.gamenight.guard import current_user_id, login_required
from app.gamenight.modules.games.service import create_game, game_to_dict, get_game, join_game, list_games

event_bp = Blueprint("event", __name__)
events_bp = Blueprint("events", __name__)
games_new_bp = Blueprint("games_new", __name__)


@event_bp.get("/<int:game_id>")
def event_detail(game_id: int):
    s = db_session()
    return jsonify(game_to_dict(get_game(s, game_id)))


@event_bp.post("/<int:game_id>/join")
@login_required
def event_join(game_id: int):
    s = db_session()
    join_game(s, game_id, current_user_id())
    s.commit()
    return redirect(url_for("pages.event_view", event_id=game_id))


@events_bp.get("")
def events_list():
    raw = (request.args.get("user_id") or "").strip()
    user_id = None
    if raw:
        if not raw.isdigit():
            raise ValidationError(["user_id must be an integer."])
        user_id = int(raw)
    s = db_session()
    return jsonify([game_to_dict(g) for g in list_games(s, user_id=user_id)])


@games_new_bp.post("")
@login_required
def games_create():
    s = db_session()
    payload = {
        "title": request.form.get("title"),
        "description": request.form.get("description"),
        "location": request.form.get("location"),
        "starts_at": request.form.get("starts_at"),
    }
    game = create_game(s, payload, current_user_id())
    s.commit()
    return redirect(url_for("pages.event_view", event_id=game.id))
