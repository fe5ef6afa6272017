"""
Database configuration and connection management.

This module provides:
- SQLAlchemy engine and session management
- Connection pooling with sane defaults
- The usage_events table backing the quota ledger
"""
from typing import Optional
from contextlib import contextmanager
from sqlalchemy import create_engine, event, MetaData, Table, Column, Integer, String, DateTime, Index
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.orm import sessionmaker
import logging

from tutor_backend.core.config import settings

logger = logging.getLogger("tutor")

# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # Recycle connections after 1 hour

# Global engine and session factory
_engine = None
_SessionLocal = None


def build_engine(url: str):
    """Create an engine for `url`.

    SQLite gets a single shared connection for in-memory databases and a
    busy timeout so concurrent writers wait instead of failing immediately.
    Every SQLite transaction starts with BEGIN IMMEDIATE, so a count and the
    insert that follows it hold the database write lock across processes.
    """
    if url.startswith("sqlite"):
        connect_args = {"check_same_thread": False, "timeout": POOL_TIMEOUT}
        if ":memory:" in url or url in ("sqlite://", "sqlite+pysqlite://"):
            engine = create_engine(url, connect_args=connect_args, poolclass=StaticPool)
        else:
            engine = create_engine(url, connect_args=connect_args)
        _use_immediate_transactions(engine)
        return engine

    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=POOL_SIZE,
        max_overflow=MAX_OVERFLOW,
        pool_timeout=POOL_TIMEOUT,
        pool_recycle=POOL_RECYCLE,
        pool_pre_ping=True,
        echo=False,  # Set to True for SQL query logging
    )


def _use_immediate_transactions(engine) -> None:
    # pysqlite defers BEGIN until the first write; take over transaction start
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def init_engine(database_url: Optional[str] = None):
    """
    Initialize the SQLAlchemy engine.

    Args:
        database_url: Optional override for DATABASE_URL
    """
    global _engine, _SessionLocal

    url = database_url or settings.DATABASE_URL

    if not url:
        raise ValueError(
            "DATABASE_URL is not configured. "
            "Set DATABASE_URL in environment or .env file."
        )

    _engine = build_engine(url)

    # Create session factory
    _SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=_engine
    )

    return _engine


def get_engine():
    """Get the current SQLAlchemy engine."""
    global _engine
    if _engine is None:
        init_engine()
    return _engine


def get_session_factory():
    """Get the session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


@contextmanager
def get_db_session(session_factory=None):
    """
    Context manager for database sessions.

    Commits on success, rolls back and re-raises on error.

    Usage:
        with get_db_session() as session:
            session.execute(...)
    """
    SessionLocal = session_factory or get_session_factory()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables(engine=None):
    """
    Create all tables defined in metadata.

    This is idempotent - tables that already exist will not be recreated.
    """
    metadata.create_all(bind=engine or get_engine())


def drop_all_tables(engine=None):
    """
    Drop all tables defined in metadata.

    WARNING: This is destructive! Only use in tests or development.
    """
    metadata.drop_all(bind=engine or get_engine())


# Usage events table (append-only; one row per consumed quota unit)
usage_events = Table(
    'usage_events',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(100), nullable=False),
    Column('action', String(100), nullable=False),
    Column('occurred_at', DateTime(timezone=True), nullable=False),
    # Composite index for daily count queries: (user_id, action, occurred_at)
    Index('idx_usage_events_user_action_occurred', 'user_id', 'action', 'occurred_at'),
    # Index for time-range queries (retention jobs)
    Index('idx_usage_events_occurred_at', 'occurred_at'),
)
