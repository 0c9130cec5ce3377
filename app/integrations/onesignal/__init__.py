"""OneSignal push provider integration."""

from integrations.onesignal.client import (
    AUTH_SCHEMES,
    OneSignalClient,
    build_authorization_header,
)

__all__ = ["AUTH_SCHEMES", "OneSignalClient", "build_authorization_header"]
