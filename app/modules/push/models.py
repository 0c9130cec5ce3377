"""Push dispatch models.

Pydantic models validate what callers hand to the dispatcher and shape the
aggregated result. Store rows are plain dataclasses.
"""

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, time
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class DispatchOutcome(str, Enum):
    """Per-recipient outcome of a dispatch."""

    ACCEPTED = "accepted"
    FAILED = "failed"
    SUPPRESSED_PREFERENCE = "suppressed_preference"
    SUPPRESSED_UNSUBSCRIBED = "suppressed_unsubscribed"
    SUPPRESSED_DUPLICATE = "suppressed_duplicate"
    SUPPRESSED_COOLDOWN = "suppressed_cooldown"
    SUPPRESSED_MUTED = "suppressed_muted"
    SUPPRESSED_ROLLOUT = "suppressed_rollout"
    SUPPRESSED_QUIET_HOURS = "suppressed_quiet_hours"

    @property
    def is_suppressed(self) -> bool:
        return self.value.startswith("suppressed_")


_HHMM = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


class QuietHours(BaseModel):
    """Daily UTC window during which a notification type is not sent.

    A window whose start is later than its end wraps midnight, e.g.
    23:00-07:00.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    start: str
    end: str

    @field_validator("start", "end")
    @classmethod
    def validate_hhmm(cls, v: str) -> str:
        if not _HHMM.match(v):
            raise ValueError(f"quiet hours must be HH:MM, got '{v}'")
        return v

    def _minutes(self, value: str) -> int:
        hours, minutes = value.split(":")
        return int(hours) * 60 + int(minutes)

    def contains(self, moment: time) -> bool:
        current = moment.hour * 60 + moment.minute
        start = self._minutes(self.start)
        end = self._minutes(self.end)
        if start == end:
            return False
        if start > end:
            return current >= start or current < end
        return start <= current < end


class CatalogEntry(BaseModel):
    """Static metadata for one notification type.

    Attributes:
        key: Unique notification key, e.g. "goal-scored"
        owner: Component that triggers the notification
        preference_key: User preference that can switch the type off
        preference_default: Value used when a recipient has no stored preference
        cooldown_seconds: Minimum gap between accepted sends of one subject
        event_id_format: Template for the deterministic event id
        collapse_id_format: Template for the provider collapse id
        thread_id_format: Template for the provider thread id
        enabled: False when the type is switched off
        status: active, deprecated or disabled
        android_group: Android notification group
        audience: Who the type is meant for (documentation only)
        rollout_percentage: Share of recipients (by stable bucket) that get it
        quiet_hours: UTC window in which the type is suppressed
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    key: str = Field(..., min_length=1)
    owner: str
    preference_key: Optional[str] = None
    preference_default: bool = True
    cooldown_seconds: Optional[int] = Field(default=None, ge=0)
    event_id_format: str = Field(..., min_length=1)
    collapse_id_format: Optional[str] = None
    thread_id_format: Optional[str] = None
    enabled: bool = True
    status: Literal["active", "deprecated", "disabled"] = "active"
    android_group: Optional[str] = None
    audience: Optional[str] = None
    rollout_percentage: int = Field(default=100, ge=0, le=100)
    quiet_hours: Optional[QuietHours] = None

    @model_validator(mode="before")
    @classmethod
    def disable_inactive(cls, data: Any) -> Any:
        if isinstance(data, dict) and data.get("status", "active") != "active":
            data = {**data, "enabled": False}
        return data


class RecipientOverride(BaseModel):
    """Per-recipient content variation (deep link, badge, extra data)."""

    url: Optional[str] = None
    badge_count: Optional[int] = Field(default=None, ge=0)
    data: Dict[str, Any] = Field(default_factory=dict)


class NotificationIntent(BaseModel):
    """What a caller asks the dispatcher to send.

    ``event_id`` may be omitted when ``event_params`` are given; it is then
    formatted from the catalog entry's template.

    Example:
        intent = NotificationIntent(
            notification_key="goal-scored",
            event_params={"api_match_id": 1, "scorer_normalized": "saka", "minute": 10},
            recipient_ids=["user-1", "user-2"],
            title="Goal!",
            body="Saka scores for Arsenal",
            grouping_params={"api_match_id": 1},
        )
    """

    notification_key: str
    event_id: Optional[str] = None
    event_params: Optional[Dict[str, Any]] = None
    recipient_ids: List[str] = Field(default_factory=list)
    title: str
    body: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)
    url: Optional[str] = None
    grouping_params: Optional[Dict[str, Any]] = None
    league_id: Optional[str] = None
    badge_count: Optional[int] = Field(default=None, ge=0)
    skip_preference_check: bool = False
    skip_cooldown_check: bool = False
    recipient_overrides: Dict[str, RecipientOverride] = Field(default_factory=dict)

    @field_validator("notification_key", "title")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v.strip()

    @field_validator("recipient_ids")
    @classmethod
    def dedupe_recipients(cls, v: List[str]) -> List[str]:
        seen: Dict[str, None] = {}
        for recipient_id in v:
            if not recipient_id or not recipient_id.strip():
                raise ValueError("recipient ids must not be empty")
            seen.setdefault(recipient_id.strip(), None)
        return list(seen)

    @field_validator("data")
    @classmethod
    def validate_json_payload(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        try:
            json.dumps(v)
        except (TypeError, ValueError) as e:
            raise ValueError(f"data must be JSON-serialisable: {e}") from e
        return v

    @model_validator(mode="after")
    def require_event_identity(self) -> "NotificationIntent":
        if not self.event_id and not self.event_params:
            raise ValueError("either event_id or event_params is required")
        return self


class RecipientOutcome(BaseModel):
    recipient_id: str
    outcome: DispatchOutcome
    reason: Optional[str] = None
    provider_notification_id: Optional[str] = None


class DispatchError(BaseModel):
    """Non-fatal error collected during a dispatch."""

    kind: Literal["recipient", "provider", "store"]
    code: str
    message: str
    recipient_id: Optional[str] = None
    device_id: Optional[str] = None


def _zero_counts() -> Dict[str, int]:
    return {outcome.value: 0 for outcome in DispatchOutcome}


class BatchDispatchResult(BaseModel):
    """Aggregated result of one dispatch call.

    Invariant: the counts sum to ``total_recipients`` (see ``is_consistent``).
    """

    notification_key: str
    event_id: str
    environment: str
    total_recipients: int = 0
    counts: Dict[str, int] = Field(default_factory=_zero_counts)
    recipient_outcomes: List[RecipientOutcome] = Field(default_factory=list)
    errors: List[DispatchError] = Field(default_factory=list)

    def record(
        self,
        recipient_id: str,
        outcome: DispatchOutcome,
        reason: Optional[str] = None,
        provider_notification_id: Optional[str] = None,
    ) -> None:
        self.recipient_outcomes.append(
            RecipientOutcome(
                recipient_id=recipient_id,
                outcome=outcome,
                reason=reason,
                provider_notification_id=provider_notification_id,
            )
        )
        self.counts[outcome.value] += 1

    def add_error(
        self,
        kind: str,
        code: str,
        message: str,
        recipient_id: Optional[str] = None,
        device_id: Optional[str] = None,
    ) -> None:
        self.errors.append(
            DispatchError(
                kind=kind,
                code=code,
                message=message,
                recipient_id=recipient_id,
                device_id=device_id,
            )
        )

    def count(self, outcome: DispatchOutcome) -> int:
        return self.counts.get(outcome.value, 0)

    def outcome_of(self, recipient_id: str) -> Optional[DispatchOutcome]:
        for recipient_outcome in self.recipient_outcomes:
            if recipient_outcome.recipient_id == recipient_id:
                return recipient_outcome.outcome
        return None

    @property
    def accepted(self) -> int:
        return self.count(DispatchOutcome.ACCEPTED)

    @property
    def failed(self) -> int:
        return self.count(DispatchOutcome.FAILED)

    @property
    def is_consistent(self) -> bool:
        return (
            sum(self.counts.values()) == self.total_recipients
            and len(self.recipient_outcomes) == self.total_recipients
        )


@dataclass
class UserPreferences:
    """Map of preference_key -> bool for one recipient."""

    recipient_id: str
    preferences: Dict[str, bool] = field(default_factory=dict)

    def get(self, key: str, default: Optional[bool] = None) -> Optional[bool]:
        return self.preferences.get(key, default)


@dataclass
class DeviceSubscription:
    """A registered device and its last verified health."""

    recipient_id: str
    device_id: str
    platform: str = "ios"
    is_active: bool = True
    subscribed: bool = True
    invalid: bool = False
    last_checked_at: Optional[datetime] = None
