"""Settings base classes.

Every settings class reads the process environment and an optional ``.env``
file, matches variable names exactly, and ignores variables that belong to
other concerns. Fields declare ``alias`` equal to their name so tests can
build settings with keyword arguments.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class EngineSettings(BaseSettings):
    """Shared configuration for all dispatch engine settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


class IntegrationSettings(EngineSettings):
    """External provider settings (OneSignal)."""


class FeatureSettings(EngineSettings):
    """Push dispatch behaviour: worker pools, deadlines, catalog location."""


class InfrastructureSettings(EngineSettings):
    """Database connection and send log namespacing."""
