"""Database engine and session configuration.

WHAT:
    Builds the SQLAlchemy engine and session factory used by the entity store.

WHY:
    - Engines are created by the app lifespan, not at import time, so tests
      and scripts can point the app at any URL (in-memory SQLite included)
    - Pool settings differ between SQLite and PostgreSQL

USAGE:
    engine = create_db_engine(settings.DATABASE_URL)
    SessionLocal = create_session_factory(engine)

    with session_scope(SessionLocal) as db:
        db.execute(...)
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base


def _normalize_database_url(database_url: str) -> str:
    # Heroku-style URL
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql://", 1)
    return database_url


def create_db_engine(database_url: str) -> Engine:
    """Create an engine with pool settings suited to the backend.

    NOTE: SQLite engines do not support pool_size/max_overflow. In-memory
    SQLite needs a StaticPool so every session sees the same database.
    """
    database_url = _normalize_database_url(database_url)

    if database_url.startswith("sqlite"):
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
        )

    return create_engine(
        database_url,
        pool_size=10,           # Base pool size
        max_overflow=20,        # Allow up to 30 total connections under load
        pool_recycle=3600,      # Recycle connections every hour
        pool_pre_ping=True,     # Validate connections before use
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


def create_tables(engine: Engine) -> None:
    """Create all tables. Dev and tests only; production runs Alembic."""
    Base.metadata.create_all(bind=engine)


@contextmanager
def session_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """Transactional scope: commit on success, rollback on any error.

    Example:
        with session_scope(SessionLocal) as db:
            db.execute(stmt)
    """
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
