"""Push dispatch feature settings."""

from typing import Optional

from pydantic import Field

from infrastructure.configuration.base import FeatureSettings


class DispatchSettings(FeatureSettings):
    """Notification dispatch engine configuration.

    Environment Variables:
        PUSH_CATALOG_PATH: Optional path to a catalog YAML file (default: bundled catalog)
        PUSH_SUPPRESSION_MAX_WORKERS: Concurrent per-recipient suppression checks (default: 10)
        PUSH_VERIFY_MAX_WORKERS: Concurrent device status checks (default: 10)
        PUSH_VERIFY_STAGE_TIMEOUT_SECONDS: Deadline for the whole verification stage (default: 20s)
        PUSH_RELEASE_ON_PROVIDER_FAILURE: Release send log reservations when the
            provider fails so a retry can send again (default: True)

    Example:
        ```python
        from infrastructure.services import get_settings

        settings = get_settings()

        if settings.dispatch.PUSH_RELEASE_ON_PROVIDER_FAILURE:
            ...
        ```
    """

    PUSH_CATALOG_PATH: Optional[str] = Field(default=None, alias="PUSH_CATALOG_PATH")
    PUSH_SUPPRESSION_MAX_WORKERS: int = Field(
        default=10, alias="PUSH_SUPPRESSION_MAX_WORKERS"
    )
    PUSH_VERIFY_MAX_WORKERS: int = Field(default=10, alias="PUSH_VERIFY_MAX_WORKERS")
    PUSH_VERIFY_STAGE_TIMEOUT_SECONDS: float = Field(
        default=20.0, alias="PUSH_VERIFY_STAGE_TIMEOUT_SECONDS"
    )
    PUSH_RELEASE_ON_PROVIDER_FAILURE: bool = Field(
        default=True, alias="PUSH_RELEASE_ON_PROVIDER_FAILURE"
    )
