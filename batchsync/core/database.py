"""Database configuration and session management for the config store.

Features:
- SQLite by default, with WAL mode for concurrent readers
- Connection pooling settings for server databases
- A committed-session context manager for stores and background work
"""

import logging
from collections.abc import Callable, Generator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from sqlalchemy import create_engine, event, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from batchsync.core.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

IS_SQLITE = settings.database_url.startswith("sqlite")
IS_MEMORY = IS_SQLITE and ":memory:" in settings.database_url

# Ensure data directory exists
if IS_SQLITE and not IS_MEMORY:
    db_path = settings.database_url.replace("sqlite:///", "")
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

engine_args: dict[str, Any] = {
    "echo": settings.debug,
}

if IS_SQLITE:
    engine_args["connect_args"] = {"check_same_thread": False}  # Needed for SQLite
    if IS_MEMORY:
        # One shared connection, otherwise every session sees an empty database
        engine_args["poolclass"] = StaticPool
else:
    engine_args.update({
        "pool_pre_ping": True,  # Verify connections before using
        "pool_recycle": 3600,   # Recycle connections after 1 hour
    })

engine = create_engine(settings.database_url, **engine_args)


if IS_SQLITE:
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        """Set SQLite pragmas for concurrent access."""
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


@contextmanager
def get_db_context(
    session_factory: Callable[[], Session] = SessionLocal,
) -> Generator[Session, None, None]:
    """Context manager for a committed unit of work (stores, background jobs)."""
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db() -> None:
    """Initialize database tables."""
    # Import models to register them with Base
    from batchsync import models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def check_db() -> bool:
    """Return True when the database answers a trivial query."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        return False
