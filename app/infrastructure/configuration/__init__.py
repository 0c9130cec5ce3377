"""Infrastructure configuration module - public API.

This module provides centralized configuration management for the push
dispatch engine using Pydantic BaseSettings with domain-based organization.

Exports:
    Settings: Main settings class (for testing/overrides)
    OneSignalSettings, DispatchSettings, DatabaseSettings, IdempotencySettings:
        Per-concern settings classes

Example:
    ```python
    from infrastructure.services import get_settings

    settings = get_settings()

    app_id = settings.onesignal.ONESIGNAL_APP_ID
    stage_timeout = settings.dispatch.PUSH_VERIFY_STAGE_TIMEOUT_SECONDS
    ```
"""

from infrastructure.configuration.settings import Settings
from infrastructure.configuration.integrations import OneSignalSettings
from infrastructure.configuration.features import DispatchSettings
from infrastructure.configuration.infrastructure import (
    DatabaseSettings,
    IdempotencySettings,
)

__all__ = [
    "Settings",
    "OneSignalSettings",
    "DispatchSettings",
    "DatabaseSettings",
    "IdempotencySettings",
]
