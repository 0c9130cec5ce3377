"""Suppression policy: preferences, league mutes, cooldowns, rollout and
quiet hours."""

import hashlib
from datetime import datetime, timezone
from typing import Callable, Optional

from infrastructure.idempotency import IdempotencyService
from infrastructure.logging import get_module_logger
from modules.push.models import CatalogEntry, UserPreferences
from modules.push.stores import MuteStore, PreferenceStore

logger = get_module_logger()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def rollout_bucket(recipient_id: str) -> int:
    """Stable 0-99 bucket for a recipient."""
    digest = hashlib.sha256(recipient_id.encode()).hexdigest()
    return int(digest, 16) % 100


class PolicyEngine:
    """Answers the per-recipient policy questions asked during a dispatch.

    Store-backed checks raise StoreError; the dispatcher decides how each
    failure degrades.

    Args:
        preferences: PreferenceStore backend
        mutes: MuteStore backend
        idempotency: IdempotencyService, whose send log answers cooldowns
        clock: Callable returning an aware UTC datetime
    """

    def __init__(
        self,
        preferences: PreferenceStore,
        mutes: MuteStore,
        idempotency: IdempotencyService,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._preferences = preferences
        self._mutes = mutes
        self._idempotency = idempotency
        self._clock = clock or _utcnow

    def load_preferences(self, recipient_id: str) -> UserPreferences:
        return self._preferences.load(recipient_id)

    def is_muted(self, league_id: str, recipient_id: str) -> bool:
        return self._mutes.is_muted(league_id, recipient_id)

    def is_within_cooldown(
        self,
        notification_key: str,
        recipient_id: str,
        fingerprint: str,
        cooldown_seconds: Optional[int],
        exclude_event_id: Optional[str] = None,
    ) -> bool:
        """True if an accepted send of the same subject is inside the window.

        A cooldown of zero or None disables the check.
        """
        if not cooldown_seconds or cooldown_seconds <= 0:
            return False
        return self._idempotency.has_recent_accepted(
            notification_key,
            recipient_id,
            fingerprint,
            cooldown_seconds,
            exclude_event_id=exclude_event_id,
        )

    @staticmethod
    def is_in_rollout(entry: CatalogEntry, recipient_id: str) -> bool:
        if entry.rollout_percentage >= 100:
            return True
        return rollout_bucket(recipient_id) < entry.rollout_percentage

    def is_quiet_hours(self, entry: CatalogEntry) -> bool:
        if entry.quiet_hours is None:
            return False
        now = self._clock().astimezone(timezone.utc)
        return entry.quiet_hours.contains(now.time())
