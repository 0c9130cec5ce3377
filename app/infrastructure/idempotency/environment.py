"""Deploy environment namespacing for the send log."""

from enum import Enum
from typing import TYPE_CHECKING

from infrastructure.logging import get_module_logger

if TYPE_CHECKING:
    from infrastructure.configuration import Settings

logger = get_module_logger()


class DeployEnvironment(str, Enum):
    """Namespace for dedup rows; non-production never collides with production."""

    PRODUCTION = "production"
    STAGING = "staging"
    PREVIEW = "preview"


_ALIASES = {
    "production": DeployEnvironment.PRODUCTION,
    "prod": DeployEnvironment.PRODUCTION,
    "staging": DeployEnvironment.STAGING,
    "stage": DeployEnvironment.STAGING,
    "preview": DeployEnvironment.PREVIEW,
    "dev": DeployEnvironment.PREVIEW,
    "development": DeployEnvironment.PREVIEW,
    "local": DeployEnvironment.PREVIEW,
    "test": DeployEnvironment.PREVIEW,
}


def parse_environment(value: str) -> DeployEnvironment:
    """Map a raw environment name to a DeployEnvironment.

    Unknown values fall back to PREVIEW so a misconfigured deploy can never
    write production dedup rows.
    """
    normalized = (value or "").strip().lower()
    environment = _ALIASES.get(normalized)
    if environment is None:
        logger.warning(
            "unknown_notification_environment",
            value=value,
            fallback=DeployEnvironment.PREVIEW.value,
        )
        return DeployEnvironment.PREVIEW
    return environment


def environment_of(settings: "Settings") -> DeployEnvironment:
    """Resolve the send log environment from application settings."""
    return parse_environment(settings.idempotency.NOTIFICATION_ENV)
