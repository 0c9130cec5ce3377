"""Idempotency service over the send log.

Wraps a SendLogStore with the deploy environment and a clock so callers
only deal in ``(event_id, recipient_id)``.

Usage:
    from infrastructure.idempotency import IdempotencyService, InMemorySendLogStore

    service = IdempotencyService(InMemorySendLogStore(), DeployEnvironment.PREVIEW)
    if service.try_record("goal:1:abc:10", "user-1", "goal-scored").inserted:
        ...send...
        service.confirm("goal:1:abc:10", "user-1", "accepted")
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from infrastructure.idempotency.environment import DeployEnvironment
from infrastructure.idempotency.send_log import SendLogEntry, SendLogStore
from infrastructure.logging import get_module_logger

logger = get_module_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RecordResult:
    """Outcome of a reservation attempt; inserted=False means duplicate."""

    inserted: bool


class IdempotencyService:
    """Exactly-once acceptance per (event_id, recipient_id, environment).

    Args:
        store: SendLogStore backend enforcing key uniqueness
        environment: Namespace for every row written by this service
        clock: Callable returning an aware UTC datetime
    """

    def __init__(
        self,
        store: SendLogStore,
        environment: DeployEnvironment,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._environment = environment
        self._clock = clock or _utcnow

    @property
    def environment(self) -> DeployEnvironment:
        return self._environment

    @property
    def store(self) -> SendLogStore:
        return self._store

    def try_record(
        self,
        event_id: str,
        recipient_id: str,
        notification_key: str = "",
        fingerprint: str = "",
    ) -> RecordResult:
        """Reserve the send log row for event_id and recipient_id.

        Raises:
            StoreError: If the store failed. Callers must not treat this as
                "not a duplicate".
        """
        entry = SendLogEntry(
            event_id=event_id,
            recipient_id=recipient_id,
            environment=self._environment.value,
            notification_key=notification_key,
            fingerprint=fingerprint,
            sent_at=self._clock(),
        )
        inserted = self._store.insert(entry)
        if not inserted:
            logger.debug(
                "send_log_duplicate", event_id=event_id, recipient_id=recipient_id
            )
        return RecordResult(inserted=inserted)

    def confirm(
        self,
        event_id: str,
        recipient_id: str,
        result: str,
        provider_notification_id: Optional[str] = None,
    ) -> None:
        self._store.confirm(
            event_id,
            recipient_id,
            self._environment.value,
            result,
            provider_notification_id,
        )

    def release(self, event_id: str, recipient_id: str) -> None:
        """Delete a reservation so a later dispatch of the event can send."""
        self._store.release(event_id, recipient_id, self._environment.value)
        logger.info(
            "send_log_released", event_id=event_id, recipient_id=recipient_id
        )

    def has_recent_accepted(
        self,
        notification_key: str,
        recipient_id: str,
        fingerprint: str,
        cooldown_seconds: int,
        exclude_event_id: Optional[str] = None,
    ) -> bool:
        """True if an accepted send of the same subject falls inside the window."""
        since = self._clock() - timedelta(seconds=cooldown_seconds)
        count = self._store.count_recent_accepted(
            notification_key,
            recipient_id,
            fingerprint,
            self._environment.value,
            since,
            exclude_event_id,
        )
        return count > 0
