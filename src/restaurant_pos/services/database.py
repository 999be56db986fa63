"""
Engine, sessions and schema setup for Restaurant POS.

One engine and one session factory are created lazily per process from
``utils.config``. Service functions open their own transaction with
``session_scope()`` unless the caller hands them a session.

SQLite connections get foreign keys switched on (recipe lines, products and
sales reference their parents with RESTRICT) and WAL journaling so report
queries do not block the ledgers.
"""

from contextlib import contextmanager
import logging
import sqlite3
from typing import Optional

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, close_all_sessions, sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import StaticPool

from ..utils.config import get_config
from ..models.base import Base

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_SessionFactory: Optional[sessionmaker] = None

# Substrings of SQLite errors raised when another writer holds the lock
LOCK_ERROR_MARKERS = ("database is locked", "database table is locked", "database is busy")


@event.listens_for(Engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    """Turn on foreign keys and WAL for each new SQLite connection."""
    if not isinstance(dbapi_connection, sqlite3.Connection):
        return

    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


def create_database_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Build an engine for ``database_url``, or for the configured database.

    In-memory SQLite gets a single shared connection so every session sees
    the same tables; file SQLite waits up to 30s on a locked database.

    Args:
        database_url: SQLAlchemy URL; None means ``get_config().database_url``
        echo: Log every SQL statement

    Returns:
        Engine
    """
    if database_url is None:
        config = get_config()
        config.ensure_directories()
        database_url = config.database_url

    logger.info(f"Creating database engine: {database_url}")

    if ":memory:" in database_url or "mode=memory" in database_url:
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
    return create_engine(database_url, echo=echo, pool_pre_ping=True)


def init_database(engine: Optional[Engine] = None) -> None:
    """Create any missing tables. Existing tables and rows are left alone."""
    if engine is None:
        engine = get_engine()

    # Registers every model on Base.metadata
    from .. import models  # noqa: F401

    Base.metadata.create_all(engine)
    logger.info(f"Schema ready: {', '.join(sorted(Base.metadata.tables))}")


def get_engine(force_recreate: bool = False) -> Engine:
    """Process-wide engine, created on first use."""
    global _engine

    if _engine is None or force_recreate:
        _engine = create_database_engine()

    return _engine


def get_session_factory() -> sessionmaker:
    """
    Process-wide session factory.

    Sessions keep loaded attributes after commit, so service functions can
    return model instances that stay readable once their session closes.
    """
    global _SessionFactory

    if _SessionFactory is None:
        _SessionFactory = sessionmaker(bind=get_engine(), expire_on_commit=False)

    return _SessionFactory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope():
    """
    One transaction: commit when the block exits cleanly, roll back when it
    raises, close either way.

    Example:
        with session_scope() as session:
            session.add(Ingredient(name="Flour", quantity=1000, unit="g"))
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def is_concurrency_conflict(error: Exception) -> bool:
    """
    Whether a failed write lost a race and may simply be retried.

    True for version-counter mismatches (another transaction updated the
    same ingredient or recipe row first) and for SQLite lock timeouts.
    """
    if isinstance(error, StaleDataError):
        return True
    if isinstance(error, OperationalError):
        message = str(error.orig if error.orig is not None else error).lower()
        return any(marker in message for marker in LOCK_ERROR_MARKERS)
    return False


def verify_database() -> bool:
    """
    Check that every mapped table exists.

    Returns:
        True if the schema is complete, False if tables are missing or the
        database cannot be inspected
    """
    from .. import models  # noqa: F401

    try:
        existing = set(inspect(get_engine()).get_table_names())
    except Exception as e:
        logger.error(f"Database verification failed: {e}")
        return False

    missing = sorted(set(Base.metadata.tables) - existing)
    if missing:
        logger.warning(f"Missing tables: {', '.join(missing)}")
    return not missing


def reset_database(confirm: bool = False) -> None:
    """
    Drop and recreate every table. All stock, recipes, products and sales are lost.

    Raises:
        ValueError: Unless confirm is True
    """
    if not confirm:
        raise ValueError("Must pass confirm=True to reset database. This will delete all data!")

    logger.warning("RESETTING DATABASE - ALL DATA WILL BE LOST")

    from .. import models  # noqa: F401

    engine = get_engine()
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    logger.info("Database reset complete")


def close_connections() -> None:
    """Close open sessions and dispose of the engine; the next use recreates both."""
    global _engine, _SessionFactory

    if _SessionFactory is not None:
        close_all_sessions()
        _SessionFactory = None

    if _engine is not None:
        _engine.dispose()
        _engine = None

    logger.info("Database connections closed")


def initialize_app_database() -> None:
    """Create the database (file and tables) on first run and verify the schema."""
    config = get_config()

    if config.database_exists():
        logger.info(f"Using existing database at: {config.database_url}")
    else:
        logger.info(f"Creating new database at: {config.database_url}")

    init_database(get_engine())

    if not verify_database():
        logger.warning("Database verification failed - tables may not exist")
