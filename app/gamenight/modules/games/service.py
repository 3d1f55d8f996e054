from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import or_, select

from app.gamenight.audit import record_event
from app.gamenight.errors import NotFound, ValidationError, data_access
from app.gamenight.modules.games.models import Game, GamePlayer

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def game_to_dict(game: Game) -> dict:
    return {
        "id": game.id,
        "creator_user_id": game.creator_user_id,
        "title": game.title,
        "description": game.description,
        "location": game.location,
        "starts_at": _iso(game.starts_at),
        "created_at": _iso(game.created_at),
        "player_ids": sorted(p.user_id for p in game.players),
    }


def parse_datetime(s: str | None) -> datetime | None:
    """Parse an ISO datetime (the value of an <input type="datetime-local">)."""
    if not s or not s.strip():
        return None
    return datetime.fromisoformat(s.strip())


def validate_game_payload(payload: dict) -> list[str]:
    errors = []
    if not (payload.get("title") or "").strip():
        errors.append("Title is required.")
    try:
        parse_datetime(payload.get("starts_at"))
    except ValueError:
        errors.append("Start time must be an ISO date/time (YYYY-MM-DDTHH:MM).")
    return errors


def get_game(s: "Session", game_id: int) -> Game:
    with data_access("get game"):
        game = s.get(Game, game_id)
    if not game:
        raise NotFound("Game", game_id)
    return game


def list_games(s: "Session", user_id: int | None = None) -> list[Game]:
    if user_id is not None:
        return list_user_games(s, user_id)
    with data_access("list games"):
        return list(s.scalars(select(Game).order_by(Game.starts_at.is_(None), Game.starts_at, Game.id)))


def list_user_games(s: "Session", user_id: int) -> list[Game]:
    """Games the user created or joined."""
    joined = select(GamePlayer.game_id).where(GamePlayer.user_id == user_id)
    q = (
        select(Game)
        .where(or_(Game.creator_user_id == user_id, Game.id.in_(joined)))
        .order_by(Game.starts_at.is_(None), Game.starts_at, Game.id)
    )
    with data_access("list user games"):
        return list(s.scalars(q))


def create_game(s: "Session", payload: dict, user_id: int) -> Game:
    errors = validate_game_payload(payload)
    if errors:
        raise ValidationError(errors)

    game = Game(
        creator_user_id=user_id,
        title=payload["title"].strip(),
        description=(payload.get("description") or "").strip() or None,
        location=(payload.get("location") or "").strip() or None,
        starts_at=parse_datetime(payload.get("starts_at")),
    )
    game.players.append(GamePlayer(user_id=user_id))
    with data_access("create game"):
        s.add(game)
        s.flush()
        record_event(
            s,
            actor_user_id=user_id,
            action="game.create",
            entity_type="Game",
            entity_id=str(game.id),
            metadata={"title": game.title},
        )
    return game


def join_game(s: "Session", game_id: int, user_id: int) -> bool:
    """Adds the user as a player. Returns False when already joined."""
    game = get_game(s, game_id)
    if any(p.user_id == user_id for p in game.players):
        return False
    with data_access("join game"):
        game.players.append(GamePlayer(user_id=user_id))
        s.flush()
        record_event(s, actor_user_id=user_id, action="game.join", entity_type="Game", entity_id=str(game.id))
    return True
