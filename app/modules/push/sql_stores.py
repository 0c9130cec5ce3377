"""SQLAlchemy-backed preference, mute and subscription stores."""

from datetime import datetime
from typing import Iterable, List

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from infrastructure.logging import get_module_logger
from infrastructure.persistence.tables import (
    LeagueMuteRow,
    PushSubscriptionRow,
    UserPreferencesRow,
)
from modules.push.errors import StoreError
from modules.push.models import DeviceSubscription, UserPreferences

logger = get_module_logger()


def _to_subscription(row: PushSubscriptionRow) -> DeviceSubscription:
    return DeviceSubscription(
        recipient_id=row.recipient_id,
        device_id=row.device_id,
        platform=row.platform,
        is_active=bool(row.is_active),
        subscribed=bool(row.subscribed),
        invalid=bool(row.invalid),
        last_checked_at=row.last_checked_at,
    )


class SqlPreferenceStore:
    """Reads ``user_notification_preferences``."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def load(self, recipient_id: str) -> UserPreferences:
        db = self._session_factory()
        try:
            row = db.get(UserPreferencesRow, recipient_id)
        except SQLAlchemyError as e:
            raise StoreError(f"preference lookup failed: {e}", "load_preferences") from e
        finally:
            db.close()

        preferences = {}
        if row is not None and isinstance(row.preferences, dict):
            preferences = {str(k): bool(v) for k, v in row.preferences.items()}
        return UserPreferences(recipient_id=recipient_id, preferences=preferences)


class SqlMuteStore:
    """Reads ``league_notification_settings``."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def is_muted(self, league_id: str, recipient_id: str) -> bool:
        stmt = select(LeagueMuteRow.muted).where(
            LeagueMuteRow.league_id == league_id,
            LeagueMuteRow.recipient_id == recipient_id,
        )
        db = self._session_factory()
        try:
            muted = db.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as e:
            raise StoreError(f"mute lookup failed: {e}", "is_muted") from e
        finally:
            db.close()
        return bool(muted)


class SqlSubscriptionStore:
    """Reads and updates ``push_subscriptions``."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def load_active(self, recipient_ids: Iterable[str]) -> List[DeviceSubscription]:
        ids = list(recipient_ids)
        if not ids:
            return []
        stmt = (
            select(PushSubscriptionRow)
            .where(
                PushSubscriptionRow.recipient_id.in_(ids),
                PushSubscriptionRow.is_active.is_(True),
            )
            .order_by(PushSubscriptionRow.updated_at.desc(), PushSubscriptionRow.id)
        )
        return self._load(stmt, "load_active")

    def load_subscribed(self) -> List[DeviceSubscription]:
        stmt = (
            select(PushSubscriptionRow)
            .where(
                PushSubscriptionRow.is_active.is_(True),
                PushSubscriptionRow.subscribed.is_(True),
                PushSubscriptionRow.invalid.is_(False),
            )
            .order_by(PushSubscriptionRow.id)
        )
        return self._load(stmt, "load_subscribed")

    def record_health(
        self, device_id: str, subscribed: bool, invalid: bool, checked_at: datetime
    ) -> None:
        stmt = (
            update(PushSubscriptionRow)
            .where(PushSubscriptionRow.device_id == device_id)
            .values(subscribed=subscribed, invalid=invalid, last_checked_at=checked_at)
        )
        db = self._session_factory()
        try:
            db.execute(stmt)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(
                "subscription_health_write_failed", device_id=device_id, error=str(e)
            )
            raise StoreError(f"subscription health write failed: {e}", "record_health") from e
        finally:
            db.close()

    def _load(self, stmt, operation: str) -> List[DeviceSubscription]:
        db = self._session_factory()
        try:
            rows = db.execute(stmt).scalars().all()
            return [_to_subscription(row) for row in rows]
        except SQLAlchemyError as e:
            raise StoreError(f"subscription {operation} failed: {e}", operation) from e
        finally:
            db.close()
