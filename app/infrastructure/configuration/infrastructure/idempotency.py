"""Idempotency infrastructure settings."""

from pydantic import Field

from infrastructure.configuration.base import InfrastructureSettings


class IdempotencySettings(InfrastructureSettings):
    """Send log namespacing for exactly-once acceptance.

    Environment Variables:
        NOTIFICATION_ENV: Deploy context used to namespace dedup rows.
            Accepts production/prod, staging/stage, preview/dev/development/
            local/test (default: production)

    Example:
        ```python
        from infrastructure.idempotency import environment_of

        environment = environment_of(settings)
        ```
    """

    NOTIFICATION_ENV: str = Field(default="production", alias="NOTIFICATION_ENV")
