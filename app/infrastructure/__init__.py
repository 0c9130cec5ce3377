"""Infrastructure modules for the league push dispatch engine.

Centralized infrastructure components:
- configuration: Settings management (Settings and per-concern settings)
- logging: Structured logging with structlog
- idempotency: Send log reservations, environment namespacing, fingerprints
- operations: Operation results and error classification
- persistence: SQLAlchemy engine, sessions and tables
- resilience: Circuit breakers
- services: Application-scoped providers (get_settings)
"""

# Operations
from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

__all__ = [
    "OperationResult",
    "OperationStatus",
]
