"""Recipient to device resolution."""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List

from infrastructure.logging import get_module_logger
from modules.push.models import DeviceSubscription
from modules.push.stores import SubscriptionStore

logger = get_module_logger()


@dataclass
class TargetingResult:
    """Recipients partitioned by deliverability, with their devices.

    ``targetable_recipients`` and ``untargetable_recipients`` partition the
    input. ``device_id_to_recipient`` is the exact inverse of the pairs in
    ``device_ids_by_recipient``; a device id belongs to one recipient only.
    """

    targetable_recipients: List[str] = field(default_factory=list)
    untargetable_recipients: List[str] = field(default_factory=list)
    device_ids_by_recipient: Dict[str, List[str]] = field(default_factory=dict)
    all_device_ids: List[str] = field(default_factory=list)
    device_id_to_recipient: Dict[str, str] = field(default_factory=dict)


class TargetingResolver:
    def __init__(self, subscriptions: SubscriptionStore):
        self._subscriptions = subscriptions

    def resolve(self, recipient_ids: Iterable[str]) -> TargetingResult:
        """Resolve active devices for recipients.

        Raises:
            StoreError: If subscriptions cannot be loaded
        """
        ordered = list(dict.fromkeys(recipient_ids))
        if not ordered:
            return TargetingResult()
        subscriptions = self._subscriptions.load_active(ordered)
        return self._build(ordered, subscriptions)

    def resolve_subscribed(self) -> TargetingResult:
        """Resolve every recipient with a stored subscribed, active device."""
        subscriptions = self._subscriptions.load_subscribed()
        recipients = list(dict.fromkeys(sub.recipient_id for sub in subscriptions))
        return self._build(recipients, subscriptions)

    def _build(
        self, recipient_ids: List[str], subscriptions: List[DeviceSubscription]
    ) -> TargetingResult:
        result = TargetingResult()
        wanted = set(recipient_ids)

        for sub in subscriptions:
            if not sub.device_id or sub.recipient_id not in wanted:
                continue
            owner = result.device_id_to_recipient.get(sub.device_id)
            if owner is not None:
                if owner != sub.recipient_id:
                    logger.warning(
                        "device_shared_by_recipients",
                        device_id=sub.device_id,
                        kept_recipient=owner,
                        skipped_recipient=sub.recipient_id,
                    )
                continue
            result.device_id_to_recipient[sub.device_id] = sub.recipient_id
            result.device_ids_by_recipient.setdefault(sub.recipient_id, []).append(
                sub.device_id
            )
            result.all_device_ids.append(sub.device_id)

        for recipient_id in recipient_ids:
            if result.device_ids_by_recipient.get(recipient_id):
                result.targetable_recipients.append(recipient_id)
            else:
                result.untargetable_recipients.append(recipient_id)

        logger.debug(
            "targets_resolved",
            recipients=len(recipient_ids),
            targetable=len(result.targetable_recipients),
            devices=len(result.all_device_ids),
        )
        return result
