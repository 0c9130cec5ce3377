"""Notification dispatch orchestrator.

Composes the catalog, send log, policy engine, targeting resolver,
subscription verifier and push provider into two entry points:

- ``dispatch_notification``: per-recipient idempotency and suppression,
  device targeting and verification, personalised provider sends.
- ``dispatch_broadcast``: best-effort send to every stored subscribed
  device, guarded only by one event-level send log row.

Only ConfigError escapes either call. Everything else is recorded per
recipient or per device in the returned BatchDispatchResult.

Usage:
    from modules.push import build_dispatcher, NotificationIntent

    dispatcher = build_dispatcher()
    result = dispatcher.dispatch_notification(
        NotificationIntent(
            notification_key="final-whistle",
            event_params={"api_match_id": 1234},
            grouping_params={"api_match_id": 1234},
            recipient_ids=["user-1", "user-2"],
            title="Full time",
            body="Arsenal 2-1 Spurs",
        )
    )
"""

import json
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple

from infrastructure.idempotency import IdempotencyKeyBuilder, IdempotencyService, fingerprint
from infrastructure.logging import bind_dispatch_context, get_module_logger, run_in_context
from infrastructure.persistence.errors import StoreError
from modules.push.catalog import NotificationCatalog
from modules.push.errors import ConfigError
from modules.push.models import (
    BatchDispatchResult,
    CatalogEntry,
    DispatchOutcome,
    NotificationIntent,
)
from modules.push.policy import PolicyEngine
from modules.push.provider import (
    INVALID_DEVICE,
    NOT_SUBSCRIBED,
    PROVIDER_ERROR,
    UNDELIVERABLE_CODES,
    DeviceError,
    ProviderSendResult,
    PushProvider,
)
from modules.push.targeting import TargetingResolver
from modules.push.verifier import SubscriptionVerifier

logger = get_module_logger()

BROADCAST_RECIPIENT = "*"
DEFAULT_SUPPRESSION_MAX_WORKERS = 10


@dataclass
class _Screening:
    """Suppression verdict for one recipient; outcome None means deliver."""

    recipient_id: str
    reserved: bool = False
    outcome: Optional[DispatchOutcome] = None
    reason: Optional[str] = None
    store_errors: List[Tuple[str, str]] = field(default_factory=list)


@dataclass
class _SendGroup:
    url: Optional[str]
    badge_count: Optional[int]
    data: Dict[str, Any]
    device_ids: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class _Prepared:
    entry: CatalogEntry
    event_id: str
    collapse_id: Optional[str]
    thread_id: Optional[str]


class NotificationDispatcher:
    """Dispatch orchestrator.

    Args:
        catalog: Immutable notification catalog
        idempotency: Send log service (exactly-once acceptance)
        policy: Preference, mute, cooldown, rollout and quiet hours checks
        targeting: Recipient to device resolver
        verifier: Device subscription verifier
        provider: Push provider
        suppression_max_workers: Concurrent per-recipient suppression checks
        release_on_provider_failure: Release send log rows of recipients the
            provider failed to reach so a retried dispatch can send again
    """

    def __init__(
        self,
        catalog: NotificationCatalog,
        idempotency: IdempotencyService,
        policy: PolicyEngine,
        targeting: TargetingResolver,
        verifier: SubscriptionVerifier,
        provider: PushProvider,
        suppression_max_workers: int = DEFAULT_SUPPRESSION_MAX_WORKERS,
        release_on_provider_failure: bool = True,
    ):
        self._catalog = catalog
        self._idempotency = idempotency
        self._policy = policy
        self._targeting = targeting
        self._verifier = verifier
        self._provider = provider
        self.suppression_max_workers = max(1, suppression_max_workers)
        self.release_on_provider_failure = release_on_provider_failure
        self._send_keys = IdempotencyKeyBuilder(namespace=idempotency.environment.value)

    @property
    def catalog(self) -> NotificationCatalog:
        return self._catalog

    def dispatch_notification(self, intent: NotificationIntent) -> BatchDispatchResult:
        """Dispatch one notification event to a set of recipients.

        Raises:
            ConfigError: Unknown or disabled key, or malformed event id or
                template params. Raised before any side effect.
        """
        prepared = self._prepare(intent)
        result = self._new_result(prepared, len(intent.recipient_ids))

        with bind_dispatch_context(
            notification_key=prepared.entry.key, event_id=prepared.event_id
        ):
            logger.info(
                "dispatch_started",
                recipient_count=len(intent.recipient_ids),
                league_id=intent.league_id,
            )
            screenings = self._screen_recipients(prepared, intent)

            reserved: Set[str] = set()
            releasable: Set[str] = set()
            survivors: List[str] = []
            for screening in screenings:
                if screening.reserved:
                    reserved.add(screening.recipient_id)
                for code, message in screening.store_errors:
                    result.add_error(
                        "store", code, message, recipient_id=screening.recipient_id
                    )
                if screening.outcome is None:
                    survivors.append(screening.recipient_id)
                else:
                    result.record(
                        screening.recipient_id, screening.outcome, screening.reason
                    )

            if survivors:
                self._deliver(prepared, intent, survivors, result, releasable)

            self._settle(prepared.event_id, result, reserved, releasable)
            self._log_summary(result)

        return result

    def dispatch_broadcast(self, intent: NotificationIntent) -> BatchDispatchResult:
        """Best-effort send to every recipient with a stored subscribed device.

        Preference, mute, cooldown, rollout, quiet hours and live device
        verification are skipped. One send log row on
        ``(event_id, "*", environment)`` stops the same broadcast going out
        twice. An intent that names recipients is dispatched as a targeted
        notification instead.

        Raises:
            ConfigError: Unknown or disabled key, or malformed event id
        """
        if intent.recipient_ids:
            logger.info(
                "broadcast_with_recipients_dispatched_as_targeted",
                notification_key=intent.notification_key,
                recipient_count=len(intent.recipient_ids),
            )
            return self.dispatch_notification(intent)

        prepared = self._prepare(intent)
        result = self._new_result(prepared, 0)

        with bind_dispatch_context(
            notification_key=prepared.entry.key,
            event_id=prepared.event_id,
            broadcast=True,
        ):
            try:
                targets = self._targeting.resolve_subscribed()
            except StoreError as e:
                logger.error("broadcast_audience_load_failed", error=str(e))
                result.add_error("store", "AUDIENCE_STORE_ERROR", str(e))
                return result

            audience = targets.targetable_recipients
            result.total_recipients = len(audience)
            logger.info("broadcast_started", audience_size=len(audience))

            try:
                guard = self._idempotency.try_record(
                    prepared.event_id,
                    BROADCAST_RECIPIENT,
                    prepared.entry.key,
                    fingerprint(intent.grouping_params),
                )
            except StoreError as e:
                result.add_error("store", "IDEMPOTENCY_STORE_ERROR", str(e))
                for recipient_id in audience:
                    result.record(
                        recipient_id, DispatchOutcome.FAILED, "idempotency_store_error"
                    )
                self._log_summary(result)
                return result

            if not guard.inserted:
                for recipient_id in audience:
                    result.record(
                        recipient_id,
                        DispatchOutcome.SUPPRESSED_DUPLICATE,
                        "broadcast_already_dispatched",
                    )
                self._log_summary(result)
                return result

            releasable: Set[str] = set()
            if audience:
                deliverable = {
                    recipient_id: targets.device_ids_by_recipient[recipient_id]
                    for recipient_id in audience
                }
                group = _SendGroup(
                    url=intent.url,
                    badge_count=intent.badge_count,
                    data={"type": prepared.entry.key, **intent.data},
                    device_ids=list(targets.all_device_ids),
                )
                send_result = self._send_group(prepared, intent, group)
                self._correlate(
                    deliverable,
                    targets.device_id_to_recipient,
                    send_result,
                    result,
                    releasable,
                )

            self._settle_broadcast_guard(prepared.event_id, result, releasable)
            self._log_summary(result)

        return result

    def _prepare(self, intent: NotificationIntent) -> _Prepared:
        entry = self._catalog.require(intent.notification_key)
        # league_id fills {league_id} placeholders unless params override it
        league_params: Dict[str, Any] = {"league_id": intent.league_id} if intent.league_id else {}

        if intent.event_id:
            event_id = intent.event_id
            if not self._catalog.matches_event_id(entry.key, event_id):
                raise ConfigError(
                    f"Event id '{event_id}' does not match "
                    f"'{entry.event_id_format}' for '{entry.key}'"
                )
        else:
            event_id = self._catalog.format_event_id(
                entry.key, {**league_params, **(intent.event_params or {})}
            )

        template_params = dict(league_params)
        template_params.update(intent.event_params or {})
        template_params.update(intent.grouping_params or {})
        return _Prepared(
            entry=entry,
            event_id=event_id,
            collapse_id=self._catalog.format_collapse_id(entry.key, template_params),
            thread_id=self._catalog.format_thread_id(entry.key, template_params),
        )

    def _new_result(self, prepared: _Prepared, total: int) -> BatchDispatchResult:
        return BatchDispatchResult(
            notification_key=prepared.entry.key,
            event_id=prepared.event_id,
            environment=self._idempotency.environment.value,
            total_recipients=total,
        )

    def _screen_recipients(
        self, prepared: _Prepared, intent: NotificationIntent
    ) -> List[_Screening]:
        """Run suppression checks for every recipient concurrently."""
        recipient_ids = intent.recipient_ids
        if not recipient_ids:
            return []

        cooldown_fingerprint = fingerprint(intent.grouping_params)
        screenings: Dict[str, _Screening] = {}
        workers = min(self.suppression_max_workers, len(recipient_ids))
        with ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="push-screen"
        ) as executor:
            futures = {
                executor.submit(
                    run_in_context(self._screen_recipient),
                    prepared,
                    intent,
                    recipient_id,
                    cooldown_fingerprint,
                ): recipient_id
                for recipient_id in recipient_ids
            }
            for future in as_completed(futures):
                recipient_id = futures[future]
                try:
                    screenings[recipient_id] = future.result()
                except Exception as e:  # pylint: disable=broad-except
                    logger.error(
                        "recipient_screening_failed",
                        recipient_id=recipient_id,
                        error=str(e),
                        exc_info=True,
                    )
                    screenings[recipient_id] = _Screening(
                        recipient_id=recipient_id,
                        outcome=DispatchOutcome.FAILED,
                        reason="screening_error",
                    )

        return [screenings[recipient_id] for recipient_id in recipient_ids]

    def _screen_recipient(
        self,
        prepared: _Prepared,
        intent: NotificationIntent,
        recipient_id: str,
        cooldown_fingerprint: str,
    ) -> _Screening:
        """Suppression checks in priority order; the first match wins.

        Store failures never let a recipient through: a failed send log
        write fails the recipient, and failed policy reads suppress it.
        """
        entry = prepared.entry
        screening = _Screening(recipient_id=recipient_id)

        try:
            record = self._idempotency.try_record(
                prepared.event_id, recipient_id, entry.key, cooldown_fingerprint
            )
        except StoreError as e:
            screening.outcome = DispatchOutcome.FAILED
            screening.reason = "idempotency_store_error"
            screening.store_errors.append(("IDEMPOTENCY_STORE_ERROR", str(e)))
            return screening

        if not record.inserted:
            screening.outcome = DispatchOutcome.SUPPRESSED_DUPLICATE
            screening.reason = "already_dispatched"
            return screening
        screening.reserved = True

        if not intent.skip_preference_check and entry.preference_key:
            try:
                prefs = self._policy.load_preferences(recipient_id)
            except StoreError as e:
                screening.outcome = DispatchOutcome.SUPPRESSED_PREFERENCE
                screening.reason = "preference_store_error"
                screening.store_errors.append(("PREFERENCE_STORE_ERROR", str(e)))
                return screening
            if not self._catalog.is_enabled(entry, prefs):
                screening.outcome = DispatchOutcome.SUPPRESSED_PREFERENCE
                screening.reason = f"preference '{entry.preference_key}' disabled"
                return screening

        if intent.league_id:
            try:
                muted = self._policy.is_muted(intent.league_id, recipient_id)
            except StoreError as e:
                screening.outcome = DispatchOutcome.SUPPRESSED_MUTED
                screening.reason = "mute_store_error"
                screening.store_errors.append(("MUTE_STORE_ERROR", str(e)))
                return screening
            if muted:
                screening.outcome = DispatchOutcome.SUPPRESSED_MUTED
                screening.reason = f"league '{intent.league_id}' muted"
                return screening

        if not intent.skip_cooldown_check and entry.cooldown_seconds:
            try:
                cooling_down = self._policy.is_within_cooldown(
                    entry.key,
                    recipient_id,
                    cooldown_fingerprint,
                    entry.cooldown_seconds,
                    exclude_event_id=prepared.event_id,
                )
            except StoreError as e:
                screening.outcome = DispatchOutcome.SUPPRESSED_COOLDOWN
                screening.reason = "cooldown_store_error"
                screening.store_errors.append(("COOLDOWN_STORE_ERROR", str(e)))
                return screening
            if cooling_down:
                screening.outcome = DispatchOutcome.SUPPRESSED_COOLDOWN
                screening.reason = f"within {entry.cooldown_seconds}s cooldown"
                return screening

        if not self._policy.is_in_rollout(entry, recipient_id):
            screening.outcome = DispatchOutcome.SUPPRESSED_ROLLOUT
            screening.reason = f"outside {entry.rollout_percentage}% rollout"
            return screening

        if self._policy.is_quiet_hours(entry):
            screening.outcome = DispatchOutcome.SUPPRESSED_QUIET_HOURS
            screening.reason = "quiet hours"
            return screening

        return screening

    def _deliver(
        self,
        prepared: _Prepared,
        intent: NotificationIntent,
        survivors: List[str],
        result: BatchDispatchResult,
        releasable: Set[str],
    ) -> None:
        try:
            targets = self._targeting.resolve(survivors)
        except StoreError as e:
            logger.error("targeting_failed", recipients=len(survivors), error=str(e))
            result.add_error("store", "TARGETING_STORE_ERROR", str(e))
            for recipient_id in survivors:
                result.record(recipient_id, DispatchOutcome.FAILED, "targeting_store_error")
                releasable.add(recipient_id)
            return

        for recipient_id in targets.untargetable_recipients:
            result.record(recipient_id, DispatchOutcome.FAILED, "no_target")
            result.add_error(
                "recipient",
                "NO_TARGET",
                "recipient has no active device",
                recipient_id=recipient_id,
            )
        if not targets.targetable_recipients:
            return

        verification = self._verifier.verify(targets.all_device_ids)
        for error in verification.errors:
            result.add_error(
                error.kind,
                error.code,
                error.message,
                recipient_id=targets.device_id_to_recipient.get(error.device_id),
                device_id=error.device_id,
            )

        subscribed = set(verification.subscribed)
        deliverable: Dict[str, List[str]] = {}
        for recipient_id in targets.targetable_recipients:
            devices = [
                device_id
                for device_id in targets.device_ids_by_recipient[recipient_id]
                if device_id in subscribed
            ]
            if devices:
                deliverable[recipient_id] = devices
            else:
                result.record(
                    recipient_id,
                    DispatchOutcome.SUPPRESSED_UNSUBSCRIBED,
                    "no_subscribed_device",
                )
        if not deliverable:
            return

        send_result = ProviderSendResult()
        for group in self._group_by_variation(prepared, intent, deliverable):
            send_result.merge(self._send_group(prepared, intent, group))

        self._correlate(
            deliverable, targets.device_id_to_recipient, send_result, result, releasable
        )

    def _group_by_variation(
        self,
        prepared: _Prepared,
        intent: NotificationIntent,
        deliverable: Dict[str, List[str]],
    ) -> List[_SendGroup]:
        """One group per distinct (url, badge_count, data) across recipients."""
        groups: Dict[Tuple[Optional[str], Optional[int], str], _SendGroup] = {}
        for recipient_id, device_ids in deliverable.items():
            override = intent.recipient_overrides.get(recipient_id)
            url = intent.url
            badge_count = intent.badge_count
            data = {"type": prepared.entry.key, **intent.data}
            if override is not None:
                url = override.url or url
                if override.badge_count is not None:
                    badge_count = override.badge_count
                data.update(override.data)

            key = (url, badge_count, json.dumps(data, sort_keys=True, default=str))
            group = groups.get(key)
            if group is None:
                group = groups[key] = _SendGroup(url=url, badge_count=badge_count, data=data)
            group.device_ids.extend(device_ids)

        logger.debug("send_groups_built", groups=len(groups))
        return list(groups.values())

    def _send_group(
        self, prepared: _Prepared, intent: NotificationIntent, group: _SendGroup
    ) -> ProviderSendResult:
        try:
            return self._provider.send(
                group.device_ids,
                intent.title,
                intent.body,
                data=group.data,
                collapse_id=prepared.collapse_id,
                thread_id=prepared.thread_id,
                badge_count=group.badge_count,
                url=group.url,
                android_group=prepared.entry.android_group,
                idempotency_scope=self._send_keys.build(
                    prepared.entry.key, event_id=prepared.event_id
                ),
            )
        except Exception as e:  # pylint: disable=broad-except
            logger.error(
                "provider_send_exception",
                devices=len(group.device_ids),
                error=str(e),
                exc_info=True,
            )
            return ProviderSendResult(
                device_errors=[
                    DeviceError(device_id, PROVIDER_ERROR, f"Provider exception: {e}")
                    for device_id in group.device_ids
                ]
            )

    def _correlate(
        self,
        deliverable: Dict[str, List[str]],
        device_id_to_recipient: Dict[str, str],
        send_result: ProviderSendResult,
        result: BatchDispatchResult,
        releasable: Set[str],
    ) -> None:
        """Map device-level provider results back to recipient outcomes.

        A recipient is accepted if any of its devices was accepted. A
        recipient whose devices were all rejected as unsubscribed or invalid
        is suppressed_unsubscribed; any other failure is failed.
        """
        accepted: Dict[str, Optional[str]] = {}
        for device_id in send_result.accepted_device_ids:
            recipient_id = device_id_to_recipient.get(device_id)
            if recipient_id is not None and not accepted.get(recipient_id):
                accepted[recipient_id] = send_result.notification_id_by_device.get(
                    device_id
                )

        errors_by_recipient: Dict[str, List[DeviceError]] = {}
        for error in send_result.device_errors:
            recipient_id = device_id_to_recipient.get(error.device_id)
            result.add_error(
                "provider",
                error.code,
                error.message,
                recipient_id=recipient_id,
                device_id=error.device_id,
            )
            if recipient_id is not None:
                errors_by_recipient.setdefault(recipient_id, []).append(error)

        for recipient_id in deliverable:
            if recipient_id in accepted:
                result.record(
                    recipient_id,
                    DispatchOutcome.ACCEPTED,
                    provider_notification_id=accepted[recipient_id],
                )
                continue
            errors = errors_by_recipient.get(recipient_id, [])
            if errors and all(error.code in UNDELIVERABLE_CODES for error in errors):
                result.record(
                    recipient_id,
                    DispatchOutcome.SUPPRESSED_UNSUBSCRIBED,
                    "provider_rejected_devices",
                )
            else:
                result.record(recipient_id, DispatchOutcome.FAILED, "provider_error")
                releasable.add(recipient_id)

        not_subscribed = [
            e.device_id for e in send_result.device_errors if e.code == NOT_SUBSCRIBED
        ]
        invalid = [
            e.device_id for e in send_result.device_errors if e.code == INVALID_DEVICE
        ]
        failed_writes = self._verifier.mark_unsubscribed(not_subscribed)
        failed_writes += self._verifier.mark_unsubscribed(invalid, invalid=True)
        for device_id in failed_writes:
            result.add_error(
                "store",
                "STORE_ERROR",
                "could not record unsubscribed device",
                recipient_id=device_id_to_recipient.get(device_id),
                device_id=device_id,
            )

    def _settle(
        self,
        event_id: str,
        result: BatchDispatchResult,
        reserved: Set[str],
        releasable: Set[str],
    ) -> None:
        """Confirm or release every send log row reserved by this dispatch."""
        for outcome in result.recipient_outcomes:
            recipient_id = outcome.recipient_id
            if recipient_id not in reserved:
                continue
            try:
                if recipient_id in releasable and self.release_on_provider_failure:
                    self._idempotency.release(event_id, recipient_id)
                else:
                    self._idempotency.confirm(
                        event_id,
                        recipient_id,
                        outcome.outcome.value,
                        outcome.provider_notification_id,
                    )
            except StoreError as e:
                logger.error(
                    "send_log_settle_failed", recipient_id=recipient_id, error=str(e)
                )
                result.add_error(
                    "store", "SEND_LOG_WRITE_FAILED", str(e), recipient_id=recipient_id
                )

    def _settle_broadcast_guard(
        self, event_id: str, result: BatchDispatchResult, releasable: Set[str]
    ) -> None:
        try:
            if result.accepted:
                notification_ids = [
                    o.provider_notification_id
                    for o in result.recipient_outcomes
                    if o.provider_notification_id
                ]
                self._idempotency.confirm(
                    event_id,
                    BROADCAST_RECIPIENT,
                    DispatchOutcome.ACCEPTED.value,
                    notification_ids[0] if notification_ids else None,
                )
            elif not result.total_recipients or (
                releasable and self.release_on_provider_failure
            ):
                self._idempotency.release(event_id, BROADCAST_RECIPIENT)
            else:
                self._idempotency.confirm(
                    event_id, BROADCAST_RECIPIENT, DispatchOutcome.FAILED.value
                )
        except StoreError as e:
            logger.error("broadcast_guard_settle_failed", error=str(e))
            result.add_error("store", "SEND_LOG_WRITE_FAILED", str(e))

    def _log_summary(self, result: BatchDispatchResult) -> None:
        logger.info(
            "dispatch_completed",
            total_recipients=result.total_recipients,
            error_count=len(result.errors),
            **{k: v for k, v in result.counts.items() if v},
        )
        if not result.is_consistent:
            logger.error(
                "dispatch_result_inconsistent",
                total_recipients=result.total_recipients,
                counts=result.counts,
            )
