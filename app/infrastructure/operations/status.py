"""Outcome classes for provider and store calls."""

from enum import Enum


class OperationStatus(Enum):
    """How an outbound call ended.

    Only TRANSIENT_ERROR is worth retrying. NOT_FOUND from a device lookup
    means the provider no longer knows the device; UNAUTHORIZED means the
    configured OneSignal key was rejected and nothing will succeed until the
    configuration changes.
    """

    SUCCESS = "success"
    TRANSIENT_ERROR = "transient_error"
    PERMANENT_ERROR = "permanent_error"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"

    @property
    def retryable(self) -> bool:
        return self is OperationStatus.TRANSIENT_ERROR
