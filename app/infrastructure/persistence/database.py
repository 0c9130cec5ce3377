"""SQLAlchemy engine and session factory."""

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

from infrastructure.configuration.infrastructure.database import DatabaseSettings
from infrastructure.logging import get_module_logger

logger = get_module_logger()


class Base(DeclarativeBase):
    """Declarative base for all push dispatch tables."""


def create_engine_from_settings(settings: DatabaseSettings) -> Engine:
    """Build an engine from DatabaseSettings.

    SQLite URLs (used in tests and local runs) get a single shared connection
    so an in-memory database survives across sessions.
    """
    url = settings.DATABASE_URL
    if url.startswith("sqlite"):
        return create_engine(
            url,
            echo=settings.DATABASE_ECHO,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_engine(
        url,
        echo=settings.DATABASE_ECHO,
        pool_size=settings.DATABASE_POOL_SIZE,
        max_overflow=settings.DATABASE_MAX_OVERFLOW,
        pool_pre_ping=True,
        pool_recycle=settings.DATABASE_POOL_RECYCLE_SECONDS,
        pool_timeout=30,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def create_all(engine: Engine, tables: Optional[list] = None) -> None:
    """Create the push dispatch tables if they do not exist."""
    # Importing registers the models on Base.metadata
    from infrastructure.persistence import tables as _tables  # noqa: F401

    Base.metadata.create_all(engine, tables=tables)
    logger.info("database_tables_created", dialect=engine.dialect.name)
