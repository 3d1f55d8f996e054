from __future__ import annotations

from contextlib import contextmanager
from collections.abc import Generator

from sqlalchemy.orm import Session

from app.gamenight.db import build_engine, make_sessionmaker


@contextmanager
def script_session(db_url: str) -> Generator[Session, None, None]:
    """One-shot engine + session for CLI scripts; the engine is disposed on exit."""
    engine = build_engine(db_url)
    s: Session = make_sessionmaker(engine)()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
        engine.dispose()
