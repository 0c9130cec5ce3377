"""Device subscription verification.

One provider status query per device, run concurrently on a bounded thread
pool. Each check has its own error boundary: a failing, slow or crashing
check marks only that device unsubscribed. An overall stage deadline caps
the whole fan-out; checks still running at the deadline count as
unsubscribed.

Verified states are written back to the subscription store. Transport
failures are not written back since they say nothing about the device,
and neither are checks that finish after the stage deadline.
"""

import threading
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from infrastructure.logging import get_module_logger, run_in_context
from infrastructure.operations import OperationStatus
from infrastructure.persistence.errors import StoreError
from modules.push.provider import PushProvider
from modules.push.stores import SubscriptionStore

logger = get_module_logger()

DEFAULT_MAX_WORKERS = 10
DEFAULT_STAGE_TIMEOUT_SECONDS = 20.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DeviceCheckError:
    """Why a device check did not produce a verified state.

    kind is "provider" for status query failures and "store" for failed
    write-backs.
    """

    device_id: str
    kind: str
    code: str
    message: str


@dataclass
class VerificationResult:
    subscribed: List[str] = field(default_factory=list)
    unsubscribed: List[str] = field(default_factory=list)
    errors: List[DeviceCheckError] = field(default_factory=list)


@dataclass(frozen=True)
class _CheckOutcome:
    subscribed: bool
    error: Optional[DeviceCheckError] = None
    store_error: Optional[DeviceCheckError] = None


def classify_device(player: Dict[str, Any]) -> bool:
    """Decide whether a provider device record is deliverable.

    A device flagged ``invalid_identifier`` is never deliverable.
    ``notification_types`` 1 is subscribed; zero or negative values are
    explicit opt-outs or provider-disabled states. When it is unset or an
    unrecognised positive code the device is still initializing and counts
    as subscribed if it has a push token.
    """
    if player.get("invalid_identifier"):
        return False
    notification_types = player.get("notification_types")
    if notification_types is not None:
        try:
            value = int(notification_types)
        except (TypeError, ValueError):
            return False
        if value == 1:
            return True
        if value <= 0:
            return False
    return bool(player.get("identifier"))


class SubscriptionVerifier:
    """Confirms device deliverability with the provider.

    Args:
        provider: PushProvider used for status queries
        subscriptions: SubscriptionStore receiving verified health
        max_workers: Concurrent status queries
        stage_timeout_seconds: Deadline for the whole verification stage
        clock: Callable returning an aware UTC datetime
    """

    def __init__(
        self,
        provider: PushProvider,
        subscriptions: SubscriptionStore,
        max_workers: int = DEFAULT_MAX_WORKERS,
        stage_timeout_seconds: float = DEFAULT_STAGE_TIMEOUT_SECONDS,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._provider = provider
        self._subscriptions = subscriptions
        self.max_workers = max(1, max_workers)
        self.stage_timeout_seconds = stage_timeout_seconds
        self._clock = clock or _utcnow

    def verify(self, device_ids: Iterable[str]) -> VerificationResult:
        """Partition device ids into subscribed and unsubscribed.

        Never raises; every device ends up in exactly one list.
        """
        unique_ids = list(dict.fromkeys(device_ids))
        result = VerificationResult()
        if not unique_ids:
            return result

        outcomes: Dict[str, _CheckOutcome] = {}
        deadline = threading.Event()
        executor = ThreadPoolExecutor(
            max_workers=min(self.max_workers, len(unique_ids)),
            thread_name_prefix="push-verify",
        )
        check = run_in_context(self._check_device)
        try:
            futures = {
                executor.submit(check, device_id, deadline): device_id
                for device_id in unique_ids
            }
            done, not_done = wait(futures, timeout=self.stage_timeout_seconds)
        finally:
            # Checks still running past this point must not write back.
            deadline.set()
            executor.shutdown(wait=False, cancel_futures=True)

        for future in done:
            device_id = futures[future]
            try:
                outcomes[device_id] = future.result()
            except Exception as e:  # pylint: disable=broad-except
                logger.error(
                    "device_check_crashed", device_id=device_id, error=str(e)
                )
                outcomes[device_id] = _CheckOutcome(
                    subscribed=False,
                    error=DeviceCheckError(device_id, "provider", "CHECK_FAILED", str(e)),
                )

        for future in not_done:
            device_id = futures[future]
            outcomes[device_id] = _CheckOutcome(
                subscribed=False,
                error=DeviceCheckError(
                    device_id,
                    "provider",
                    "CHECK_TIMEOUT",
                    f"status check did not finish within {self.stage_timeout_seconds}s",
                ),
            )
        if not_done:
            logger.warning(
                "device_verification_deadline_exceeded",
                pending=len(not_done),
                timeout_seconds=self.stage_timeout_seconds,
            )

        for device_id in unique_ids:
            outcome = outcomes[device_id]
            if outcome.subscribed:
                result.subscribed.append(device_id)
            else:
                result.unsubscribed.append(device_id)
            if outcome.error:
                result.errors.append(outcome.error)
            if outcome.store_error:
                result.errors.append(outcome.store_error)

        logger.info(
            "devices_verified",
            devices=len(unique_ids),
            subscribed=len(result.subscribed),
            unsubscribed=len(result.unsubscribed),
            errors=len(result.errors),
        )
        return result

    def mark_unsubscribed(self, device_ids: Iterable[str], invalid: bool = False) -> List[str]:
        """Write back devices the provider rejected on send.

        Returns:
            Device ids whose write-back failed
        """
        failed = []
        for device_id in device_ids:
            try:
                self._subscriptions.record_health(
                    device_id, subscribed=False, invalid=invalid, checked_at=self._clock()
                )
            except StoreError as e:
                logger.warning(
                    "subscription_mark_unsubscribed_failed",
                    device_id=device_id,
                    error=str(e),
                )
                failed.append(device_id)
        return failed

    def _check_device(self, device_id: str, deadline: threading.Event) -> _CheckOutcome:
        response = self._provider.get_device_status(device_id)

        if response.status == OperationStatus.NOT_FOUND:
            return self._write_back(device_id, deadline, subscribed=False, invalid=True)

        if not response.is_success:
            logger.warning(
                "device_status_check_failed",
                device_id=device_id,
                error_code=response.error_code,
                message=response.message,
            )
            return _CheckOutcome(
                subscribed=False,
                error=DeviceCheckError(
                    device_id,
                    "provider",
                    response.error_code or "STATUS_CHECK_FAILED",
                    response.message,
                ),
            )

        player = response.data if isinstance(response.data, dict) else {}
        subscribed = classify_device(player)
        return self._write_back(
            device_id,
            deadline,
            subscribed=subscribed,
            invalid=bool(player.get("invalid_identifier")),
        )

    def _write_back(
        self, device_id: str, deadline: threading.Event, subscribed: bool, invalid: bool
    ) -> _CheckOutcome:
        if deadline.is_set():
            logger.info("late_device_check_discarded", device_id=device_id)
            return _CheckOutcome(subscribed=False)
        try:
            self._subscriptions.record_health(
                device_id, subscribed=subscribed, invalid=invalid, checked_at=self._clock()
            )
        except StoreError as e:
            logger.warning(
                "subscription_health_write_failed", device_id=device_id, error=str(e)
            )
            return _CheckOutcome(
                subscribed=subscribed,
                store_error=DeviceCheckError(device_id, "store", "STORE_ERROR", str(e)),
            )
        return _CheckOutcome(subscribed=subscribed)
