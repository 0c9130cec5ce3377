"""OneSignal push provider integration settings."""

from pydantic import Field, field_validator

from infrastructure.configuration.base import IntegrationSettings


class OneSignalSettings(IntegrationSettings):
    """OneSignal REST API configuration.

    The endpoint and the authentication scheme are resolved once from these
    settings when the client is built; callers never choose them.

    Environment Variables:
        ONESIGNAL_APP_ID: OneSignal application id
        ONESIGNAL_REST_API_KEY: REST API key for the application
        ONESIGNAL_API_URL: API base URL (default: https://onesignal.com/api/v1)
        ONESIGNAL_AUTH_SCHEME: Authorization scheme: Basic, Key or Bearer (default: Basic)
        ONESIGNAL_TIMEOUT_SECONDS: Per-request timeout (default: 10s)
        ONESIGNAL_MAX_RETRIES: Retries for transient failures (default: 2)
        ONESIGNAL_BACKOFF_SECONDS: Base backoff between retries (default: 0.5s)
        ONESIGNAL_BATCH_SIZE: Maximum device ids per send request (default: 2000)

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        app_id = settings.onesignal.ONESIGNAL_APP_ID
        scheme = settings.onesignal.ONESIGNAL_AUTH_SCHEME
        ```
    """

    ONESIGNAL_APP_ID: str | None = Field(default=None, alias="ONESIGNAL_APP_ID")
    ONESIGNAL_REST_API_KEY: str | None = Field(
        default=None, alias="ONESIGNAL_REST_API_KEY"
    )
    ONESIGNAL_API_URL: str = Field(
        default="https://onesignal.com/api/v1", alias="ONESIGNAL_API_URL"
    )
    ONESIGNAL_AUTH_SCHEME: str = Field(default="Basic", alias="ONESIGNAL_AUTH_SCHEME")
    ONESIGNAL_TIMEOUT_SECONDS: float = Field(
        default=10.0, alias="ONESIGNAL_TIMEOUT_SECONDS"
    )
    ONESIGNAL_MAX_RETRIES: int = Field(default=2, alias="ONESIGNAL_MAX_RETRIES")
    ONESIGNAL_BACKOFF_SECONDS: float = Field(
        default=0.5, alias="ONESIGNAL_BACKOFF_SECONDS"
    )
    ONESIGNAL_BATCH_SIZE: int = Field(default=2000, alias="ONESIGNAL_BATCH_SIZE")

    @field_validator("ONESIGNAL_API_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("ONESIGNAL_APP_ID", "ONESIGNAL_REST_API_KEY")
    @classmethod
    def strip_credentials(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return v.strip() or None
