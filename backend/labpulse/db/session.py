from __future__ import annotations

from collections.abc import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker

from labpulse.config import load_app_config

_ENGINE = None
_SESSION_FACTORY: sessionmaker[Session] | None = None


def _create_engine(database_url: str):
    is_sqlite = database_url.startswith("sqlite")
    connect_args = {"check_same_thread": False} if is_sqlite else {}
    engine = create_engine(
        database_url, future=True, pool_pre_ping=True, connect_args=connect_args
    )
    if is_sqlite:
        # ON DELETE CASCADE on tasks.experiment_id needs this per connection.
        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _record) -> None:
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    return engine


def configure_engine(database_url: str) -> None:
    global _ENGINE
    global _SESSION_FACTORY

    if _ENGINE is not None:
        _ENGINE.dispose()

    _ENGINE = _create_engine(database_url)
    _SESSION_FACTORY = sessionmaker(
        bind=_ENGINE, autoflush=False, autocommit=False, expire_on_commit=False
    )


def get_engine():
    global _ENGINE
    if _ENGINE is None:
        configure_engine(load_app_config().database_url)
    return _ENGINE


def get_session_factory() -> sessionmaker[Session]:
    global _SESSION_FACTORY
    if _SESSION_FACTORY is None:
        get_engine()
    assert _SESSION_FACTORY is not None
    return _SESSION_FACTORY


def get_db_session() -> Generator[Session, None, None]:
    session = get_session_factory()()
    try:
        yield session
    finally:
        session.close()
