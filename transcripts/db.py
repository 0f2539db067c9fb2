"""Whisper Transcripts - Database engine and session management.

SQLAlchemy sync engine/session factory. SQLite by default; any SQLAlchemy
URL is accepted through Settings.database_url.
"""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from transcripts.config import get_database_url
from transcripts.models import Base

logger = logging.getLogger(__name__)


def create_db_engine(database_url: str | None = None, echo: bool = False) -> Engine:
    """Create SQLAlchemy engine.

    For SQLite file databases the parent directory is created if missing.

    Args:
        database_url: Optional URL override. Defaults to the SQLite file under data/.
        echo: If True, log all SQL statements.

    Returns:
        SQLAlchemy Engine instance.
    """
    url = make_url(database_url or get_database_url())
    connect_args = {}
    if url.get_backend_name() == "sqlite":
        # Requests are served from a thread pool; each request gets its own
        # session, so sharing connections across threads is safe.
        connect_args["check_same_thread"] = False
        if url.database and url.database != ":memory:":
            Path(url.database).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(url, echo=echo, connect_args=connect_args)


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to the given engine.

    Args:
        engine: SQLAlchemy Engine instance.

    Returns:
        Configured sessionmaker.
    """
    # - autoflush=False: explicit flush control
    # - expire_on_commit=False: records stay readable after commit for serialization
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(database_url: str | None = None, echo: bool = False) -> tuple[Engine, sessionmaker]:
    """Initialize the database: create engine, session factory, and all tables.

    This is idempotent - safe to call multiple times.

    Args:
        database_url: Optional URL override.
        echo: If True, log all SQL statements.

    Returns:
        Tuple of (engine, SessionFactory).
    """
    engine = create_db_engine(database_url, echo=echo)
    SessionFactory = create_session_factory(engine)

    # Create all tables (idempotent via checkfirst=True default)
    Base.metadata.create_all(engine)

    return engine, SessionFactory


def ping(engine: Engine) -> bool:
    """Check that the database answers a trivial query.

    Never raises; connection failures are logged and reported as False.
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError:
        logger.warning("Database ping failed", exc_info=True)
        return False
