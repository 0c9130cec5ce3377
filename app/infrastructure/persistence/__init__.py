"""Relational persistence for the dispatch engine.

Provides the SQLAlchemy declarative base, engine/session factories built
from DatabaseSettings, the ORM tables and the StoreError raised by store
backends.
"""

from infrastructure.persistence.database import (
    Base,
    create_all,
    create_engine_from_settings,
    create_session_factory,
)
from infrastructure.persistence.errors import StoreError

__all__ = [
    "Base",
    "StoreError",
    "create_all",
    "create_engine_from_settings",
    "create_session_factory",
]
