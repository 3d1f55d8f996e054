from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from app.gamenight.errors import data_access
from app.gamenight.models import User
from app.gamenight.modules.games.models import GamePlayer
from app.gamenight.modules.games.service import game_to_dict, list_user_games
from app.gamenight.modules.users.service import get_user, user_to_dict

if TYPE_CHECKING:
    from sqlalchemy.orm import Session


def query_user_games(s: "Session", user_id: int) -> dict:
    """The requesting user's card for the event view: who they are and what they play."""
    user = get_user(s, user_id)
    return {
        "user": user_to_dict(user),
        "games": [game_to_dict(g) for g in list_user_games(s, user_id)],
    }


def list_partners(s: "Session", user_id: int) -> list[User]:
    """Other users who share at least one game with ``user_id``."""
    my_games = select(GamePlayer.game_id).where(GamePlayer.user_id == user_id)
    q = (
        select(User)
        .join(GamePlayer, GamePlayer.user_id == User.id)
        .where(GamePlayer.game_id.in_(my_games), User.id != user_id, User.is_active.is_(True))
        .distinct()
        .order_by(User.id)
    )
    with data_access("list partners"):
        return list(s.scalars(q))


def query_profile_data(s: "Session", user_id: int) -> dict:
    profile = query_user_games(s, user_id)
    profile["partners"] = [user_to_dict(u) for u in list_partners(s, user_id)]
    return profile
