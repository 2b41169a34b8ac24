"""Database session management for the parking booking assistant."""

from contextlib import contextmanager
from typing import Generator, Iterator

from sqlalchemy import create_engine as sa_create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from core.settings import settings


def create_engine(url: str = settings.database_url, echo: bool = settings.db_echo) -> Engine:
    """
    Create SQLAlchemy engine.

    Args:
        url: Database URL
        echo: Whether to log all SQL statements

    Returns:
        SQLAlchemy engine
    """
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        return sa_create_engine(url, echo=echo, **kwargs)

    return sa_create_engine(url, echo=echo, pool_pre_ping=True)


# Global engine instance
engine: Engine = create_engine()

# Session factory
SessionLocal = sessionmaker(
    bind=engine,
    class_=Session,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for getting a database session.

    Yields:
        Session instance

    Example:
        async def my_view(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_session_context() -> Iterator[Session]:
    """
    Context manager for a database session used outside a request.

    Commits on success, rolls back on any exception.
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(bind: Engine = None) -> None:
    """Initialize database by creating all tables."""
    from . import models_sqlalchemy  # noqa: F401  (register tables)
    from .base import Base

    Base.metadata.create_all(bind=bind or engine)


def drop_db(bind: Engine = None) -> None:
    """Drop all database tables. Use with caution!"""
    from .base import Base

    Base.metadata.drop_all(bind=bind or engine)


def close_db() -> None:
    """Close database engine and all connections."""
    engine.dispose()
