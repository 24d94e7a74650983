"""Database session management."""

from contextlib import contextmanager
from functools import lru_cache
from typing import Generator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from adaptive_practice.core.app_exceptions import StorageError
from adaptive_practice.db.engine import create_db_engine


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker[Session]:
    """Session factory bound to the configured engine (created on first use)."""
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=create_db_engine(),
        expire_on_commit=False,  # Prevent lazy loading issues
    )


def get_db() -> Generator[Session, None, None]:
    """Dependency to get database session."""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """
    One unit of work: commit on success, roll back on error.

    Database failures (including optimistic-version conflicts) surface as
    ``StorageError`` so callers can retry them.
    """
    db = factory()
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError(f"database operation failed: {type(e).__name__}") from e
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
