"""Push notification dispatch module.

Catalog-driven, idempotent push delivery: for every (event, recipient)
pair the dispatcher decides whether a notification is sent, deduplicated,
suppressed by preference, mute, cooldown, rollout or quiet hours, or failed,
and returns an auditable BatchDispatchResult.
"""

from modules.push.catalog import NotificationCatalog, template_params
from modules.push.dispatcher import NotificationDispatcher
from modules.push.errors import (
    ConfigError,
    ProviderError,
    PushDispatchError,
    RecipientError,
    StoreError,
)
from modules.push.factory import build_dispatcher, build_provider
from modules.push.models import (
    BatchDispatchResult,
    CatalogEntry,
    DeviceSubscription,
    DispatchError,
    DispatchOutcome,
    NotificationIntent,
    QuietHours,
    RecipientOutcome,
    RecipientOverride,
    UserPreferences,
)
from modules.push.policy import PolicyEngine
from modules.push.provider import PushProvider
from modules.push.targeting import TargetingResolver, TargetingResult
from modules.push.verifier import SubscriptionVerifier, VerificationResult

__all__ = [
    "BatchDispatchResult",
    "CatalogEntry",
    "ConfigError",
    "DeviceSubscription",
    "DispatchError",
    "DispatchOutcome",
    "NotificationCatalog",
    "NotificationDispatcher",
    "NotificationIntent",
    "PolicyEngine",
    "ProviderError",
    "PushDispatchError",
    "PushProvider",
    "QuietHours",
    "RecipientError",
    "RecipientOutcome",
    "RecipientOverride",
    "StoreError",
    "SubscriptionVerifier",
    "TargetingResolver",
    "TargetingResult",
    "UserPreferences",
    "VerificationResult",
    "build_dispatcher",
    "build_provider",
    "template_params",
]
