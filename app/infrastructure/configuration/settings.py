"""League push dispatch configuration settings - main aggregator."""

from pydantic_settings import BaseSettings, SettingsConfigDict

# Integration settings
from infrastructure.configuration.integrations import OneSignalSettings

# Feature settings
from infrastructure.configuration.features import DispatchSettings

# Infrastructure settings
from infrastructure.configuration.infrastructure import (
    DatabaseSettings,
    IdempotencySettings,
)


class Settings(BaseSettings):
    """Push dispatch configuration settings - main aggregator.

    Aggregates all domain-specific settings into a single configuration object.
    Settings are organized by concern:

    - **Integrations**: External service configurations (OneSignal)
    - **Features**: Dispatch engine behavior (concurrency, timeouts, catalog)
    - **Infrastructure**: Core system configurations (database, idempotency)

    Environment Variables:
        PREFIX: Environment prefix for non-production deployments
        LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR)
        GIT_SHA: Git commit SHA for deployment tracking

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        app_id = settings.onesignal.ONESIGNAL_APP_ID
        database_url = settings.database.DATABASE_URL

        if settings.is_production:
            # Production-specific logic...
        ```
    """

    # Application-level settings
    PREFIX: str = ""
    LOG_LEVEL: str = "INFO"
    GIT_SHA: str = "Unknown"

    # Integration settings
    onesignal: OneSignalSettings

    # Feature settings
    dispatch: DispatchSettings

    # Infrastructure settings
    database: DatabaseSettings
    idempotency: IdempotencySettings

    @property
    def is_production(self) -> bool:
        """Check if the application is running in production.

        Returns:
            True if PREFIX is empty (production), False otherwise.
        """
        return not bool(self.PREFIX)

    def __init__(self, **kwargs):
        """Initialize Settings with automatic subsettings instantiation.

        Args:
            **kwargs: Optional overrides for specific settings sections.
        """
        settings_map = {
            # Integrations
            "onesignal": OneSignalSettings,
            # Features
            "dispatch": DispatchSettings,
            # Infrastructure
            "database": DatabaseSettings,
            "idempotency": IdempotencySettings,
        }

        for setting_name, setting_class in settings_map.items():
            if setting_name not in kwargs:
                kwargs[setting_name] = setting_class()

        super().__init__(**kwargs)

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )
