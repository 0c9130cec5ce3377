"""Send log idempotency.

Exactly-once acceptance of a notification event per recipient and deploy
environment. Uniqueness is enforced by the storage backend: in-memory for
development and tests, SQLAlchemy (unique constraint) for replicated
deployments.

Usage:

    from infrastructure.idempotency import IdempotencyService, environment_of

    service = IdempotencyService(store, environment_of(settings))
    if not service.try_record(event_id, recipient_id, notification_key).inserted:
        return "suppressed_duplicate"
"""

from infrastructure.idempotency.environment import (
    DeployEnvironment,
    environment_of,
    parse_environment,
)
from infrastructure.idempotency.key_builder import IdempotencyKeyBuilder, fingerprint
from infrastructure.idempotency.send_log import (
    ACCEPTED_RESULT,
    InMemorySendLogStore,
    SendLogEntry,
    SendLogState,
    SendLogStore,
)
from infrastructure.idempotency.service import IdempotencyService, RecordResult
from infrastructure.idempotency.sql import SqlSendLogStore

__all__ = [
    "ACCEPTED_RESULT",
    "DeployEnvironment",
    "IdempotencyKeyBuilder",
    "IdempotencyService",
    "InMemorySendLogStore",
    "RecordResult",
    "SendLogEntry",
    "SendLogState",
    "SendLogStore",
    "SqlSendLogStore",
    "environment_of",
    "fingerprint",
    "parse_environment",
]
