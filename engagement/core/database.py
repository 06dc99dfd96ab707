"""
Database configuration and table definitions.

This module provides:
- SQLAlchemy engine and session management
- Connection pooling with sane defaults (SQLite gets a single shared connection)
- Table definitions for the SQL activity store
"""
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.sql import func

# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # Recycle connections after 1 hour


sessions = Table(
    'sessions',
    metadata,
    Column('id', String(255), primary_key=True),
    Column('title', String(500), nullable=True),
    Column('description', Text, nullable=True),
    Column('organizer_id', String(255), nullable=True),
    Column('started_at', DateTime(timezone=True), nullable=True),
)

session_participants = Table(
    'session_participants',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('session_id', String(255), nullable=False, index=True),
    Column('participant_id', String(255), nullable=False),
    Column('joined_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    UniqueConstraint('session_id', 'participant_id', name='uq_session_participant'),
)

activity_records = Table(
    'activity_records',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('session_id', String(255), nullable=False),
    Column('participant_id', String(255), nullable=False),
    Column('activity_type', String(50), nullable=False),
    Column('score', Float, nullable=False, default=0.0),
    Column('occurred_at', DateTime(timezone=True), nullable=False),
    Column('payload', JSON, nullable=False, default=dict),
    # Windowed reads filter by session and time
    Index('idx_activity_records_session_occurred', 'session_id', 'occurred_at'),
)

organizer_activity = Table(
    'organizer_activity',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('session_id', String(255), nullable=False, index=True),
    Column('activity_type', String(50), nullable=False),
    Column('participant_id', String(255), nullable=True),
    Column('occurred_at', DateTime(timezone=True), nullable=False),
)

badge_awards = Table(
    'badge_awards',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('participant_id', String(255), nullable=False),
    Column('session_id', String(255), nullable=False, index=True),
    Column('badge_id', String(100), nullable=False),
    Column('earned_at', DateTime(timezone=True), nullable=False),
    # One award per participant per session per badge
    UniqueConstraint('participant_id', 'session_id', 'badge_id', name='uq_badge_award'),
)


def build_engine(url: str) -> Engine:
    """Create an engine with pooling suited to the backend."""
    if url.startswith("sqlite"):
        return create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=POOL_SIZE,
        max_overflow=MAX_OVERFLOW,
        pool_timeout=POOL_TIMEOUT,
        pool_recycle=POOL_RECYCLE,
        echo=False,
    )


@contextmanager
def db_session(engine: Engine) -> Iterator[Session]:
    """
    Context manager for database sessions.

    Commits on success, rolls back on any exception.
    """
    session = Session(bind=engine, autoflush=False)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables(engine: Engine) -> None:
    """Create all tables defined in metadata. Idempotent."""
    metadata.create_all(bind=engine)


def drop_all_tables(engine: Engine) -> None:
    """
    Drop all tables defined in metadata.

    WARNING: This is destructive! Only use in tests or development.
    """
    metadata.drop_all(bind=engine)
