"""Send log storage.

The send log is the idempotency ledger: one row per
``(event_id, recipient_id, environment)``. Rows are inserted as ``reserved``
before any delivery attempt and then either confirmed with the final
outcome or released (deleted) so the caller can retry.

The protocol-based design allows for multiple storage backends. Uniqueness
must be enforced by the backend itself, never by callers.
"""

import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, Optional, Protocol, Tuple

from infrastructure.logging import get_module_logger

logger = get_module_logger()

ACCEPTED_RESULT = "accepted"


class SendLogState(str, Enum):
    """Lifecycle state of a send log row."""

    RESERVED = "reserved"
    CONFIRMED = "confirmed"


@dataclass
class SendLogEntry:
    """A single send log row.

    Fields:
        event_id: Deterministic id of the notification occurrence
        recipient_id: Recipient the row guards
        environment: Deploy namespace (production, staging, preview)
        notification_key: Catalog key, used for cooldown lookups
        fingerprint: Cooldown fingerprint derived from grouping params
        sent_at: When the row was reserved
        state: reserved until the outcome is known, then confirmed
        result: Final per-recipient outcome once confirmed
        provider_notification_id: Provider id of the accepted send
    """

    event_id: str
    recipient_id: str
    environment: str
    notification_key: str
    fingerprint: str
    sent_at: datetime
    state: SendLogState = SendLogState.RESERVED
    result: Optional[str] = None
    provider_notification_id: Optional[str] = None

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.event_id, self.recipient_id, self.environment)


class SendLogStore(Protocol):
    """Storage interface for the send log.

    Methods:
        insert: Insert a reserved row; False if the key already exists
        confirm: Mark a row confirmed with its final outcome
        release: Delete a reserved row
        count_recent_accepted: Count confirmed accepted rows for cooldown
    """

    def insert(self, entry: SendLogEntry) -> bool:
        """Atomically insert entry.

        Returns:
            True if inserted, False if a row with the same key exists

        Raises:
            StoreError: If the store cannot be written
        """
        ...

    def confirm(
        self,
        event_id: str,
        recipient_id: str,
        environment: str,
        result: str,
        provider_notification_id: Optional[str] = None,
    ) -> None:
        ...

    def release(self, event_id: str, recipient_id: str, environment: str) -> None:
        ...

    def count_recent_accepted(
        self,
        notification_key: str,
        recipient_id: str,
        fingerprint: str,
        environment: str,
        since: datetime,
        exclude_event_id: Optional[str] = None,
    ) -> int:
        ...


class InMemorySendLogStore:
    """Thread-safe in-memory send log for development and tests.

    Only guarantees uniqueness within one process. Replicated deployments use
    the SQL store, whose uniqueness constraint spans all instances.
    """

    def __init__(self) -> None:
        self._rows: Dict[Tuple[str, str, str], SendLogEntry] = {}
        self._lock = threading.Lock()

    def insert(self, entry: SendLogEntry) -> bool:
        with self._lock:
            if entry.key in self._rows:
                return False
            self._rows[entry.key] = entry
            return True

    def confirm(
        self,
        event_id: str,
        recipient_id: str,
        environment: str,
        result: str,
        provider_notification_id: Optional[str] = None,
    ) -> None:
        with self._lock:
            row = self._rows.get((event_id, recipient_id, environment))
            if row is None:
                logger.warning(
                    "send_log_confirm_missing_row",
                    event_id=event_id,
                    recipient_id=recipient_id,
                )
                return
            row.state = SendLogState.CONFIRMED
            row.result = result
            row.provider_notification_id = provider_notification_id

    def release(self, event_id: str, recipient_id: str, environment: str) -> None:
        with self._lock:
            row = self._rows.get((event_id, recipient_id, environment))
            if row is not None and row.state == SendLogState.RESERVED:
                del self._rows[row.key]

    def count_recent_accepted(
        self,
        notification_key: str,
        recipient_id: str,
        fingerprint: str,
        environment: str,
        since: datetime,
        exclude_event_id: Optional[str] = None,
    ) -> int:
        with self._lock:
            return sum(
                1
                for row in self._rows.values()
                if row.notification_key == notification_key
                and row.recipient_id == recipient_id
                and row.fingerprint == fingerprint
                and row.environment == environment
                and row.state == SendLogState.CONFIRMED
                and row.result == ACCEPTED_RESULT
                and row.sent_at >= since
                and row.event_id != exclude_event_id
            )

    def get(
        self, event_id: str, recipient_id: str, environment: str
    ) -> Optional[SendLogEntry]:
        """Return a row by key (tests and diagnostics)."""
        with self._lock:
            return self._rows.get((event_id, recipient_id, environment))

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)
