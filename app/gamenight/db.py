"""
Engine and session plumbing.

One engine per process (disposed after fork and at exit), one session per
app context. Scripts share the same engine settings through `build_engine`.
"""
from __future__ import annotations

import atexit
import os
from contextlib import contextmanager
from collections.abc import Generator

from flask import Flask, current_app, g
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker


def build_engine(db_url: str) -> Engine:
    kwargs: dict[str, object] = {"future": True, "pool_pre_ping": True}
    if db_url.startswith("postgres"):
        kwargs.update({"pool_recycle": 1800, "pool_size": 5, "max_overflow": 10, "pool_timeout": 30})
    engine = create_engine(db_url, **kwargs)
    if db_url.startswith("sqlite"):
        # ondelete=CASCADE on posts/comments/players only holds with FK enforcement on.
        @event.listens_for(engine, "connect")
        def _sqlite_foreign_keys(dbapi_connection, connection_record):  # type: ignore[no-redef]
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    return engine


def make_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, class_=Session, autoflush=False, expire_on_commit=False)


def init_db(app: Flask) -> None:
    engine = build_engine(app.config["DATABASE_URL"])
    app.extensions["sqlalchemy_engine"] = engine
    app.extensions["sqlalchemy_sessionmaker"] = make_sessionmaker(engine)

    if hasattr(os, "register_at_fork"):
        def _after_fork_child() -> None:
            engine.dispose(close=False)
            app.logger.info("Reset DB pool after fork (pid=%s)", os.getpid())

        os.register_at_fork(after_in_child=_after_fork_child)
    atexit.register(engine.dispose)


def db_session() -> Session:
    """
    Session bound to the current app context. Event-view worker threads push
    their own app context and so get their own session.
    """
    s: Session | None = getattr(g, "db_session", None)
    if s is None:
        s = current_app.extensions["sqlalchemy_sessionmaker"]()
        g.db_session = s
    return s


def teardown_db_session(_exc: BaseException | None) -> None:
    s: Session | None = g.pop("db_session", None)
    if s is not None:
        s.close()


@contextmanager
def session_scope(app: Flask) -> Generator[Session, None, None]:
    """
    Outside-request helper for scripts and tests: commits on success, rolls back on error.
    """
    s: Session = app.extensions["sqlalchemy_sessionmaker"]()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
