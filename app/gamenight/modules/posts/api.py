from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.gamenight.db import db_session
from app.gamenight.errors import ValidationError
from app.gamenight.guard import current_user_id, login_required
from app.gamenight.modules.posts.service import (
    comment_to_dict,
    create_comment,
    create_post,
    fetch_posts_with_comments,
    post_to_dict,
)

bp = Blueprint("posts", __name__)


def _int_field(source, name: str) -> int:
    raw = (source.get(name) or "").strip()
    if not raw.isdigit():
        raise ValidationError([f"{name} must be an integer."])
    return int(raw)


@bp.get("")
def posts_for_game():
    game_id = _int_field(request.args, "game_id")
    s = db_session()
    return jsonify(fetch_posts_with_comments(s, game_id))


@bp.post("")
@login_required
def posts_create():
    game_id = _int_field(request.form, "game_id")
    s = db_session()
    post = create_post(s, game_id, current_user_id(), request.form.get("body"))
    s.commit()
    data = post_to_dict(post)
    data["comments"] = []
    return jsonify(data), 201


@bp.post("/<int:post_id>/comments")
@login_required
def comments_create(post_id: int):
    s = db_session()
    comment = create_comment(s, post_id, current_user_id(), request.form.get("body"))
    s.commit()
    return jsonify(comment_to_dict(comment)), 201
