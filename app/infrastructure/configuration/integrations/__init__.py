"""Integration settings __init__ - exports all integration settings."""

from infrastructure.configuration.integrations.onesignal import OneSignalSettings

__all__ = [
    "OneSignalSettings",
]
