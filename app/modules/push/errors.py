"""Push dispatch error taxonomy.

Only ConfigError escapes ``dispatch_notification``/``dispatch_broadcast``;
the others describe failures that are recorded per recipient or per device
in the returned BatchDispatchResult.
"""

from typing import Optional

from infrastructure.persistence.errors import StoreError as BaseStoreError


class PushDispatchError(Exception):
    """Base class for push dispatch errors."""


class ConfigError(PushDispatchError):
    """Unknown or disabled notification key, bad template parameters, or
    invalid provider configuration. Raised before any side effect."""


class RecipientError(PushDispatchError):
    """A recipient cannot be delivered to (no device, unsubscribed, invalid)."""

    def __init__(self, message: str, recipient_id: Optional[str] = None):
        super().__init__(message)
        self.recipient_id = recipient_id


class ProviderError(PushDispatchError):
    """Transport failure or provider-reported per-device error."""

    def __init__(
        self,
        message: str,
        device_id: Optional[str] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.device_id = device_id
        self.code = code


class StoreError(PushDispatchError, BaseStoreError):
    """Preference, mute or subscription store failure.

    Also an ``infrastructure.persistence.StoreError`` so callers can catch
    send log and push store failures with one clause.
    """

    def __init__(self, message: str, operation: str = "unknown"):
        BaseStoreError.__init__(self, message, operation)
