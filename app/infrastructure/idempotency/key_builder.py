"""Deterministic digests for dedup and cooldown keys."""

import hashlib
from typing import Any, Mapping, Optional


class IdempotencyKeyBuilder:
    """Build deterministic keys from named components.

    Components are sorted by name before hashing so the same logical subject
    always yields the same key regardless of argument order.

    Example:
        >>> builder = IdempotencyKeyBuilder(namespace="broadcast")
        >>> builder.build("goal-scored", event_id="goal:1:abc:10")
        'broadcast:goal-scored:3f2a...'
    """

    def __init__(self, namespace: str):
        self.namespace = namespace

    @staticmethod
    def digest(**components: Any) -> str:
        """Return the 16-hex-digit SHA-256 digest of sorted key=value pairs."""
        key_string = "|".join(f"{k}={v}" for k, v in sorted(components.items()))
        return hashlib.sha256(key_string.encode()).hexdigest()[:16]

    def build(self, operation: str, **components: Any) -> str:
        """Build a namespaced key ``namespace:operation:digest``."""
        return f"{self.namespace}:{operation}:{self.digest(**components)}"


def fingerprint(grouping_params: Optional[Mapping[str, Any]]) -> str:
    """Cooldown fingerprint for grouping params.

    Returns an empty string when there are no params, which scopes the
    cooldown to the notification type as a whole.
    """
    if not grouping_params:
        return ""
    return IdempotencyKeyBuilder.digest(**{str(k): v for k, v in grouping_params.items()})
