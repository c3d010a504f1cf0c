import asyncio
import logging
import os
import threading
from contextlib import contextmanager
from typing import Any
from typing import Callable
from typing import TypeVar

from sqlalchemy import Engine
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pillcount.config import get_settings

logger = logging.getLogger(__name__)

_settings = get_settings()


# Create Base class
Base = declarative_base()


def make_engine(db_url: str, **kwargs) -> Engine:
    """Create a SQLAlchemy engine with the given URL and options.

    Args:
        db_url: Database connection URL
        **kwargs: Additional arguments for create_engine

    Returns:
        A SQLAlchemy Engine instance
    """
    connect_args = kwargs.pop("connect_args", {})
    if "sqlite" in db_url:
        if "check_same_thread" not in connect_args:
            connect_args["check_same_thread"] = False
        connect_args["timeout"] = 30
        # A bare in-memory database is per-connection; share one connection so
        # every session sees the same tables.
        if ":memory:" in db_url:
            kwargs.setdefault("poolclass", StaticPool)

    # For test environments, add pooling configurations
    if os.getenv("NODE_ENV") == "test" and "poolclass" not in kwargs:
        kwargs.setdefault("pool_pre_ping", True)
        kwargs.setdefault("pool_recycle", 300)

    return create_engine(db_url, connect_args=connect_args, **kwargs)


def make_sessionmaker(engine: Engine) -> sessionmaker:
    """Create a sessionmaker bound to the given engine.

    ``expire_on_commit=False`` keeps attributes accessible after a commit so
    rows returned from a ``db_session`` block can still be read by callers.
    """
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine,
    )


# Default engine and sessionmaker instances for app usage.  Tests overwrite
# ``pillcount.database.default_session_factory`` with their own factory.

default_engine = make_engine(_settings.resolved_database_url)
default_session_factory = make_sessionmaker(default_engine)


def get_session_factory() -> sessionmaker:
    """Return the session factory the application should currently use."""
    return default_session_factory


_T = TypeVar("_T")

# SQLite allows a single writer and an in-memory database shares one
# connection, so session work against it runs one call at a time.
_sqlite_lock = threading.Lock()


def _is_sqlite_factory(session_factory: Any) -> bool:
    bind = getattr(session_factory, "kw", {}).get("bind")
    return bind is not None and bind.dialect.name == "sqlite"


def _call_in_session_thread(fn: Callable[..., _T], session_factory: Any, *args: Any) -> _T:
    if _is_sqlite_factory(session_factory or get_session_factory()):
        with _sqlite_lock:
            return fn(*args)
    return fn(*args)


async def run_in_db_thread(fn: Callable[..., _T], *args: Any, session_factory: Any = None) -> _T:
    """Run blocking session work off the event loop.

    Usage:
        row = await run_in_db_thread(_load, task_id, session_factory=factory)

    *session_factory* is only inspected to decide whether calls must be
    serialised; *fn* opens its own session.
    """
    return await asyncio.to_thread(_call_in_session_thread, fn, session_factory, *args)


@contextmanager
def db_session(session_factory: Any = None):
    """
    Database session context manager for services and background tasks.

    1. Auto-commit on success
    2. Auto-rollback on error
    3. Always close session

    Usage:
        with db_session() as db:
            crud.create_task(db, total=45)
            # Automatic commit + close

        # On error: automatic rollback + close

    Args:
        session_factory: Optional custom session factory

    Yields:
        SQLAlchemy Session object with automatic lifecycle management
    """
    factory = session_factory or get_session_factory()
    session = factory()

    try:
        yield session
        session.commit()  # Auto-commit on success
        logger.debug("Database session committed successfully")

    except Exception as e:
        session.rollback()  # Auto-rollback on error
        logger.error(f"Database session rolled back due to error: {e}")
        raise  # Re-raise the original exception

    finally:
        session.close()  # Always close


def initialize_database(engine: Engine = None) -> None:
    """Initialize database tables using the given engine.

    If no engine is provided, uses the default engine.

    Args:
        engine: Optional engine to use, defaults to default_engine
    """
    # Import all models to ensure they are registered with Base
    from pillcount.models.models import CacheEntry  # noqa: F401
    from pillcount.models.models import DeferredTask  # noqa: F401

    target_engine = engine or default_engine
    Base.metadata.create_all(bind=target_engine)
