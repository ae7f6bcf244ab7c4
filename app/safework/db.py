from __future__ import annotations

from contextlib import contextmanager
from collections.abc import Generator

from flask import Flask, current_app, g
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

# Sized for the default two gunicorn workers.
POSTGRES_POOL = {"pool_recycle": 1800, "pool_size": 5, "max_overflow": 10, "pool_timeout": 30}


def _build_engine(db_url: str) -> Engine:
    options: dict[str, object] = {"future": True, "pool_pre_ping": True}
    if db_url.startswith("postgres"):
        options.update(POSTGRES_POOL)
    engine = create_engine(db_url, **options)

    if engine.dialect.name == "sqlite":
        # ondelete rules only fire with this pragma, and SQLite resets it per connection.
        @event.listens_for(engine, "connect")
        def _foreign_keys_on(dbapi_connection, connection_record):  # type: ignore[no-redef]
            cur = dbapi_connection.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()

    return engine


def init_db(app: Flask) -> None:
    engine = _build_engine(app.config["DATABASE_URL"])
    app.extensions["sqlalchemy_engine"] = engine
    app.extensions["sqlalchemy_sessionmaker"] = sessionmaker(
        bind=engine,
        class_=Session,
        autoflush=False,
        expire_on_commit=False,
    )
    app.logger.debug("Database engine ready (%s)", engine.url.get_backend_name())


def db_session(app: Flask | None = None) -> Session:
    """One session per request, opened lazily and closed by teardown_db_session."""
    s = g.get("db_session")
    if s is None:
        factory = (app or current_app).extensions["sqlalchemy_sessionmaker"]
        s = g.db_session = factory()
    return s


def teardown_db_session(exc: BaseException | None) -> None:
    s: Session | None = g.pop("db_session", None)
    if s is None:
        return
    if exc is not None:
        s.rollback()
    s.close()


@contextmanager
def session_scope(app: Flask) -> Generator[Session, None, None]:
    """
    Session for work outside a request (release seed, reminder sweep, tests).
    Commits on success and rolls back if the block raises.
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
