"""Database connection, session management and transaction scope."""
import logging
import os
from contextlib import contextmanager
from functools import lru_cache
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from app.config import get_settings

logger = logging.getLogger(__name__)


def get_database_url() -> str:
    """Build database URL from environment variables.

    DATABASE_URL wins when set. On Cloud Run the Cloud SQL unix socket is
    used; locally a TCP connection (usually through the Cloud SQL Proxy).
    """
    if url := os.getenv("DATABASE_URL"):
        return url

    settings = get_settings()
    credentials = f"{settings.DB_USER}:{settings.DB_PASSWORD}"

    if settings.INSTANCE_CONNECTION_NAME:
        return (
            f"postgresql://{credentials}@/{settings.DB_NAME}"
            f"?host=/cloudsql/{settings.INSTANCE_CONNECTION_NAME}"
        )

    return f"postgresql://{credentials}@{settings.DB_HOST}:{settings.DB_PORT}/{settings.DB_NAME}"


@lru_cache
def get_engine():
    """Create SQLAlchemy engine (cached)."""
    return create_engine(
        get_database_url(),
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )


@lru_cache
def get_sessionmaker() -> sessionmaker:
    return sessionmaker(bind=get_engine())


def get_db() -> Iterator[Session]:
    """Dependency for FastAPI routes that need a database session."""
    db = get_sessionmaker()()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def atomic(db: Session) -> Iterator[Session]:
    """Run a unit of work as one transaction.

    Commits when the block exits cleanly. On any exception the session is
    rolled back before the exception propagates, so nothing written inside
    the block (status, items, pricing, log rows) survives a failure.
    """
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
