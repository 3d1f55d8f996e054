"""
Seed a demo user and game so a fresh deployment has something to click on.

Idempotent: an existing demo user keeps its password, and the demo game is
only created once.

Usage:
  python scripts/init_db.py
"""
import os
import sys
from pathlib import Path

from sqlalchemy import select
from werkzeug.security import generate_password_hash

# Ensure repo root is on sys.path when running as a script.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.gamenight.models import User  # noqa: E402
from app.gamenight.modules.games.models import Game, GamePlayer  # noqa: E402
from scripts._db_utils import script_session  # noqa: E402

DEMO_GAME_TITLE = "Friday board games"


def seed_only(*, database_url: str | None = None) -> None:
    demo_email = (os.environ.get("DEMO_EMAIL") or "demo@gamenight.local").strip().lower()
    demo_password = os.environ.get("DEMO_PASSWORD") or "change-me"

    db_url = (database_url or os.environ.get("DATABASE_URL") or "sqlite:///gamenight.db").strip()

    with script_session(db_url) as s:
        user = s.scalars(select(User).where(User.email == demo_email)).one_or_none()
        if not user:
            user = User(
                email=demo_email,
                password_hash=generate_password_hash(demo_password),
                first_name="Demo",
                last_name="Player",
                equipment="Catan, two decks of cards",
                is_active=True,
            )
            s.add(user)
            s.flush()
            print(f"Created demo user {demo_email}", flush=True)

        game = s.scalars(
            select(Game).where(Game.creator_user_id == user.id, Game.title == DEMO_GAME_TITLE)
        ).one_or_none()
        if not game:
            game = Game(creator_user_id=user.id, title=DEMO_GAME_TITLE, location="Community hall")
            game.players.append(GamePlayer(user_id=user.id))
            s.add(game)
            print(f"Created demo game {DEMO_GAME_TITLE!r}", flush=True)


def main() -> None:
    seed_only()


if __name__ == "__main__":
    main()
