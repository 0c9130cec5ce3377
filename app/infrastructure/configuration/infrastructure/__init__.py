"""Infrastructure settings __init__ - exports all infrastructure settings."""

from infrastructure.configuration.infrastructure.database import DatabaseSettings
from infrastructure.configuration.infrastructure.idempotency import IdempotencySettings

__all__ = [
    "DatabaseSettings",
    "IdempotencySettings",
]
