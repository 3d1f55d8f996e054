"""
Posts and comments for a game, plus the aggregation that nests each
comment under its post for the event view.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import select

from app.gamenight.audit import record_event
from app.gamenight.errors import NotFound, ValidationError, data_access
from app.gamenight.modules.games.service import get_game
from app.gamenight.modules.posts.models import Comment, Post

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def post_to_dict(post: Post) -> dict:
    return {
        "id": post.id,
        "game_id": post.game_id,
        "user_id": post.user_id,
        "body": post.body,
        "created_at": _iso(post.created_at),
    }


def comment_to_dict(comment: Comment) -> dict:
    return {
        "id": comment.id,
        "post_id": comment.post_id,
        "user_id": comment.user_id,
        "body": comment.body,
        "created_at": _iso(comment.created_at),
    }


def list_posts_for_game(s: "Session", game_id: int) -> list[dict]:
    q = select(Post).where(Post.game_id == game_id).order_by(Post.id)
    with data_access("list posts"):
        return [post_to_dict(p) for p in s.scalars(q)]


def list_comments_for_posts(s: "Session", post_ids: Iterable[int]) -> list[dict]:
    ids = sorted(set(post_ids))
    if not ids:
        return []
    q = select(Comment).where(Comment.post_id.in_(ids)).order_by(Comment.id)
    with data_access("list comments"):
        return [comment_to_dict(c) for c in s.scalars(q)]


def attach_comments(posts: list[dict], comments: Iterable[dict]) -> list[dict]:
    """
    Nest comments under their posts, in place, and return the posts.

    Every post ends up with a ``comments`` list, empty when nothing matches.
    A comment whose post_id is not among ``posts`` is dropped.
    """
    by_id: dict[int, dict] = {}
    for post in posts:
        post["comments"] = []
        by_id[post["id"]] = post
    for comment in comments:
        post = by_id.get(comment["post_id"])
        if post is None:
            logger.debug("Dropping comment id=%s: post %s not in batch", comment.get("id"), comment["post_id"])
            continue
        post["comments"].append(comment)
    return posts


def fetch_posts_with_comments(s: "Session", game_id: int) -> list[dict]:
    posts = list_posts_for_game(s, game_id)
    if not posts:
        return []
    comments = list_comments_for_posts(s, (p["id"] for p in posts))
    return attach_comments(posts, comments)


def _clean_body(body: str | None) -> str:
    text = (body or "").strip()
    if not text:
        raise ValidationError(["Body is required."])
    return text


def create_post(s: "Session", game_id: int, user_id: int, body: str | None) -> Post:
    text = _clean_body(body)
    get_game(s, game_id)
    post = Post(game_id=game_id, user_id=user_id, body=text)
    with data_access("create post"):
        s.add(post)
        s.flush()
        record_event(
            s,
            actor_user_id=user_id,
            action="post.create",
            entity_type="Post",
            entity_id=str(post.id),
            metadata={"game_id": game_id},
        )
    return post


def create_comment(s: "Session", post_id: int, user_id: int, body: str | None) -> Comment:
    text = _clean_body(body)
    with data_access("get post"):
        post = s.get(Post, post_id)
    if not post:
        raise NotFound("Post", post_id)
    comment = Comment(post_id=post.id, user_id=user_id, body=text)
    with data_access("create comment"):
        s.add(comment)
        s.flush()
        record_event(
            s,
            actor_user_id=user_id,
            action="comment.create",
            entity_type="Comment",
            entity_id=str(comment.id),
            metadata={"post_id": post.id, "game_id": post.game_id},
        )
    return comment
