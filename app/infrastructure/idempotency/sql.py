"""SQLAlchemy send log store.

Exactly-once acceptance relies on the ``uq_send_log_event`` unique
constraint: two replicas inserting the same key race at the database and
exactly one insert commits.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from infrastructure.idempotency.send_log import (
    ACCEPTED_RESULT,
    SendLogEntry,
    SendLogState,
)
from infrastructure.logging import get_module_logger
from infrastructure.persistence.errors import StoreError
from infrastructure.persistence.tables import SendLogRow

logger = get_module_logger()


class SqlSendLogStore:
    """Send log backed by the ``notification_send_log`` table."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def insert(self, entry: SendLogEntry) -> bool:
        db = self._session_factory()
        try:
            db.add(
                SendLogRow(
                    event_id=entry.event_id,
                    recipient_id=entry.recipient_id,
                    environment=entry.environment,
                    notification_key=entry.notification_key,
                    fingerprint=entry.fingerprint,
                    state=entry.state.value,
                    sent_at=entry.sent_at,
                )
            )
            db.commit()
            return True
        except IntegrityError:
            db.rollback()
            return False
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(
                "send_log_insert_failed",
                event_id=entry.event_id,
                recipient_id=entry.recipient_id,
                error=str(e),
            )
            raise StoreError(f"send log insert failed: {e}", "insert") from e
        finally:
            db.close()

    def confirm(
        self,
        event_id: str,
        recipient_id: str,
        environment: str,
        result: str,
        provider_notification_id: Optional[str] = None,
    ) -> None:
        stmt = (
            update(SendLogRow)
            .where(
                SendLogRow.event_id == event_id,
                SendLogRow.recipient_id == recipient_id,
                SendLogRow.environment == environment,
            )
            .values(
                state=SendLogState.CONFIRMED.value,
                result=result,
                provider_notification_id=provider_notification_id,
            )
        )
        self._execute(stmt, "confirm")

    def release(self, event_id: str, recipient_id: str, environment: str) -> None:
        stmt = delete(SendLogRow).where(
            SendLogRow.event_id == event_id,
            SendLogRow.recipient_id == recipient_id,
            SendLogRow.environment == environment,
            SendLogRow.state == SendLogState.RESERVED.value,
        )
        self._execute(stmt, "release")

    def count_recent_accepted(
        self,
        notification_key: str,
        recipient_id: str,
        fingerprint: str,
        environment: str,
        since: datetime,
        exclude_event_id: Optional[str] = None,
    ) -> int:
        stmt = select(func.count(SendLogRow.id)).where(
            SendLogRow.notification_key == notification_key,
            SendLogRow.recipient_id == recipient_id,
            SendLogRow.fingerprint == fingerprint,
            SendLogRow.environment == environment,
            SendLogRow.state == SendLogState.CONFIRMED.value,
            SendLogRow.result == ACCEPTED_RESULT,
            SendLogRow.sent_at >= since,
        )
        if exclude_event_id is not None:
            stmt = stmt.where(SendLogRow.event_id != exclude_event_id)

        db = self._session_factory()
        try:
            return int(db.execute(stmt).scalar_one())
        except SQLAlchemyError as e:
            raise StoreError(
                f"send log cooldown lookup failed: {e}", "count_recent_accepted"
            ) from e
        finally:
            db.close()

    def _execute(self, stmt, operation: str) -> None:
        db = self._session_factory()
        try:
            db.execute(stmt)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("send_log_write_failed", operation=operation, error=str(e))
            raise StoreError(f"send log {operation} failed: {e}", operation) from e
        finally:
            db.close()
