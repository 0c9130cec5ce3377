"""Push provider wrapper around the OneSignal client.

Builds the notification payload, splits device ids into provider-sized
batches and turns every transport or provider failure into per-device
errors. ``send`` never raises for provider failures.
"""

import json
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from infrastructure.logging import get_module_logger
from infrastructure.operations import OperationResult, OperationStatus
from integrations.onesignal import OneSignalClient

logger = get_module_logger()

INVALID_DEVICE = "INVALID_DEVICE"
NOT_SUBSCRIBED = "NOT_SUBSCRIBED"
TRANSPORT_ERROR = "TRANSPORT_ERROR"
PROVIDER_ERROR = "PROVIDER_ERROR"

UNDELIVERABLE_CODES = (INVALID_DEVICE, NOT_SUBSCRIBED)

DEFAULT_BATCH_SIZE = 2000


@dataclass(frozen=True)
class DeviceError:
    device_id: str
    code: str
    message: str


@dataclass
class ProviderSendResult:
    """Outcome of a send across all batches."""

    accepted_device_ids: List[str] = field(default_factory=list)
    device_errors: List[DeviceError] = field(default_factory=list)
    notification_ids: List[str] = field(default_factory=list)
    notification_id_by_device: Dict[str, str] = field(default_factory=dict)

    @property
    def accepted_count(self) -> int:
        return len(self.accepted_device_ids)

    def merge(self, other: "ProviderSendResult") -> None:
        self.accepted_device_ids.extend(other.accepted_device_ids)
        self.device_errors.extend(other.device_errors)
        self.notification_ids.extend(other.notification_ids)
        self.notification_id_by_device.update(other.notification_id_by_device)


def _mentions_unsubscribed(errors: List[Any]) -> bool:
    return any("not subscribed" in str(message).lower() for message in errors)


def notification_idempotency_key(scope: str, payload: Dict[str, Any]) -> str:
    """Deterministic OneSignal idempotency key for one batch.

    Same scope and same payload (devices, content, grouping) give the same
    UUID, so the provider drops a resend of a batch it already accepted.
    """
    canonical = json.dumps(payload, sort_keys=True, default=str)
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"{scope}|{canonical}"))


def build_payload(
    device_ids: List[str],
    title: str,
    body: str,
    data: Optional[Dict[str, Any]] = None,
    url: Optional[str] = None,
    collapse_id: Optional[str] = None,
    thread_id: Optional[str] = None,
    android_group: Optional[str] = None,
    badge_count: Optional[int] = None,
) -> Dict[str, Any]:
    """Build a OneSignal notification payload (without ``app_id``)."""
    payload: Dict[str, Any] = {
        "include_player_ids": list(device_ids),
        "headings": {"en": title},
        "contents": {"en": body},
    }
    if data:
        payload["data"] = data
    if url:
        payload["url"] = url
    if collapse_id:
        payload["collapse_id"] = collapse_id
    if thread_id:
        payload["thread_id"] = thread_id
    if android_group:
        payload["android_group"] = android_group
    if badge_count is not None:
        payload["ios_badgeType"] = "SetTo"
        payload["ios_badgeCount"] = badge_count
    return payload


class PushProvider:
    """Sends notifications and reads device status through OneSignal.

    Args:
        client: Configured OneSignalClient
        batch_size: Maximum device ids per provider request
    """

    def __init__(self, client: OneSignalClient, batch_size: int = DEFAULT_BATCH_SIZE):
        self._client = client
        self.batch_size = max(1, batch_size)

    def get_device_status(self, device_id: str) -> OperationResult:
        return self._client.get_device(device_id)

    def send(
        self,
        device_ids: List[str],
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
        collapse_id: Optional[str] = None,
        thread_id: Optional[str] = None,
        badge_count: Optional[int] = None,
        *,
        url: Optional[str] = None,
        android_group: Optional[str] = None,
        idempotency_scope: Optional[str] = None,
    ) -> ProviderSendResult:
        """Send one notification to device_ids in batches.

        With ``idempotency_scope`` every batch carries a deterministic
        ``idempotency_key`` so a repeated send of the same batch is
        delivered once.
        """
        result = ProviderSendResult()
        unique_ids = list(dict.fromkeys(device_ids))
        for start in range(0, len(unique_ids), self.batch_size):
            batch = unique_ids[start : start + self.batch_size]
            payload = build_payload(
                batch,
                title,
                body,
                data=data,
                url=url,
                collapse_id=collapse_id,
                thread_id=thread_id,
                android_group=android_group,
                badge_count=badge_count,
            )
            if idempotency_scope:
                payload["idempotency_key"] = notification_idempotency_key(
                    idempotency_scope, payload
                )
            response = self._client.create_notification(payload)
            result.merge(self._interpret(batch, response))

        logger.info(
            "provider_send_completed",
            devices=len(unique_ids),
            accepted=result.accepted_count,
            errors=len(result.device_errors),
            collapse_id=collapse_id,
        )
        return result

    def _interpret(
        self, batch: List[str], response: OperationResult
    ) -> ProviderSendResult:
        result = ProviderSendResult()

        if not response.is_success:
            body = response.data if isinstance(response.data, dict) else {}
            errors = body.get("errors")
            if response.status == OperationStatus.TRANSIENT_ERROR:
                code = TRANSPORT_ERROR
            elif isinstance(errors, list) and _mentions_unsubscribed(errors):
                code = NOT_SUBSCRIBED
            else:
                code = PROVIDER_ERROR
            result.device_errors.extend(
                DeviceError(device_id, code, response.message) for device_id in batch
            )
            logger.warning(
                "provider_batch_failed",
                devices=len(batch),
                code=code,
                error_code=response.error_code,
                message=response.message,
            )
            return result

        body = response.data if isinstance(response.data, dict) else {}
        notification_id = body.get("id") or None
        errors = body.get("errors")

        rejected: Dict[str, DeviceError] = {}
        if isinstance(errors, dict):
            for device_id in errors.get("invalid_player_ids") or []:
                rejected[device_id] = DeviceError(
                    device_id, INVALID_DEVICE, "provider reported invalid device"
                )
        elif isinstance(errors, list) and errors and not notification_id:
            code = NOT_SUBSCRIBED if _mentions_unsubscribed(errors) else PROVIDER_ERROR
            message = "; ".join(str(e) for e in errors)
            for device_id in batch:
                rejected[device_id] = DeviceError(device_id, code, message)

        for device_id in batch:
            if device_id in rejected:
                result.device_errors.append(rejected[device_id])
            elif notification_id:
                result.accepted_device_ids.append(device_id)
                result.notification_id_by_device[device_id] = notification_id
            else:
                result.device_errors.append(
                    DeviceError(
                        device_id, PROVIDER_ERROR, "provider returned no notification id"
                    )
                )

        if notification_id:
            result.notification_ids.append(notification_id)
        return result
