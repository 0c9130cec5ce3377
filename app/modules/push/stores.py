"""Preference, mute and subscription stores.

Protocol-based so the dispatcher can run against the relational backends
(``modules.push.sql_stores``) in production and the thread-safe in-memory
implementations below in development and tests. Backends raise StoreError
on failure; they never return a default that hides the failure.
"""

import threading
from datetime import datetime
from typing import Dict, Iterable, List, Protocol, Tuple

from infrastructure.logging import get_module_logger
from modules.push.models import DeviceSubscription, UserPreferences

logger = get_module_logger()


class PreferenceStore(Protocol):
    def load(self, recipient_id: str) -> UserPreferences:
        """Load preferences; an unknown recipient has an empty map.

        Raises:
            StoreError: If the store cannot be read
        """
        ...


class MuteStore(Protocol):
    def is_muted(self, league_id: str, recipient_id: str) -> bool:
        """Raises StoreError if the store cannot be read."""
        ...


class SubscriptionStore(Protocol):
    """Device subscriptions.

    Methods:
        load_active: Active subscriptions for the given recipients
        load_subscribed: Active subscriptions last verified as subscribed
        record_health: Write back a verified state for one device
    """

    def load_active(self, recipient_ids: Iterable[str]) -> List[DeviceSubscription]:
        ...

    def load_subscribed(self) -> List[DeviceSubscription]:
        ...

    def record_health(
        self, device_id: str, subscribed: bool, invalid: bool, checked_at: datetime
    ) -> None:
        ...


class InMemoryPreferenceStore:
    def __init__(self) -> None:
        self._preferences: Dict[str, Dict[str, bool]] = {}
        self._lock = threading.Lock()

    def set(self, recipient_id: str, preferences: Dict[str, bool]) -> None:
        with self._lock:
            self._preferences[recipient_id] = dict(preferences)

    def load(self, recipient_id: str) -> UserPreferences:
        with self._lock:
            return UserPreferences(
                recipient_id=recipient_id,
                preferences=dict(self._preferences.get(recipient_id, {})),
            )


class InMemoryMuteStore:
    def __init__(self) -> None:
        self._mutes: Dict[Tuple[str, str], bool] = {}
        self._lock = threading.Lock()

    def set_muted(self, league_id: str, recipient_id: str, muted: bool = True) -> None:
        with self._lock:
            self._mutes[(league_id, recipient_id)] = muted

    def is_muted(self, league_id: str, recipient_id: str) -> bool:
        with self._lock:
            return self._mutes.get((league_id, recipient_id), False)


class InMemorySubscriptionStore:
    """Device subscriptions keyed by device id (device ids are unique)."""

    def __init__(self) -> None:
        self._devices: Dict[str, DeviceSubscription] = {}
        self._lock = threading.Lock()

    def add(self, subscription: DeviceSubscription) -> None:
        with self._lock:
            self._devices[subscription.device_id] = subscription

    def get(self, device_id: str) -> DeviceSubscription:
        with self._lock:
            return self._devices[device_id]

    def load_active(self, recipient_ids: Iterable[str]) -> List[DeviceSubscription]:
        wanted = set(recipient_ids)
        with self._lock:
            return [
                sub
                for sub in self._devices.values()
                if sub.recipient_id in wanted and sub.is_active
            ]

    def load_subscribed(self) -> List[DeviceSubscription]:
        with self._lock:
            return [
                sub
                for sub in self._devices.values()
                if sub.is_active and sub.subscribed and not sub.invalid
            ]

    def record_health(
        self, device_id: str, subscribed: bool, invalid: bool, checked_at: datetime
    ) -> None:
        with self._lock:
            sub = self._devices.get(device_id)
            if sub is None:
                logger.debug("subscription_health_unknown_device", device_id=device_id)
                return
            sub.subscribed = subscribed
            sub.invalid = invalid
            sub.last_checked_at = checked_at
