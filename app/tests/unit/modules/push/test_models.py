"""Unit tests for push dispatch models."""

from datetime import time

import pytest
from pydantic import ValidationError

from modules.push.models import (
    BatchDispatchResult,
    DispatchOutcome,
    NotificationIntent,
    QuietHours,
)
from tests.factories import make_intent


@pytest.mark.unit
class TestNotificationIntent:
    def test_recipients_are_deduplicated_in_order(self):
        intent = make_intent([" user-b", "user-a", "user-b"])
        assert intent.recipient_ids == ["user-b", "user-a"]

    def test_blank_recipient_rejected(self):
        with pytest.raises(ValidationError):
            make_intent(["user-a", " "])

    def test_blank_title_rejected(self):
        with pytest.raises(ValidationError):
            make_intent(title="   ")

    def test_requires_event_id_or_params(self):
        with pytest.raises(ValidationError, match="event_id or event_params"):
            NotificationIntent(notification_key="kickoff", title="KO", recipient_ids=["u"])

    def test_data_must_be_json_serialisable(self):
        with pytest.raises(ValidationError, match="JSON"):
            make_intent(data={"when": object()})

    def test_negative_badge_rejected(self):
        with pytest.raises(ValidationError):
            make_intent(badge_count=-1)


@pytest.mark.unit
class TestQuietHours:
    def test_window_wrapping_midnight(self):
        window = QuietHours(start="23:00", end="07:00")
        assert window.contains(time(23, 30))
        assert window.contains(time(6, 59))
        assert not window.contains(time(7, 0))
        assert not window.contains(time(12, 0))

    def test_same_day_window(self):
        window = QuietHours(start="09:00", end="17:00")
        assert window.contains(time(9, 0))
        assert not window.contains(time(17, 0))

    def test_empty_window(self):
        assert not QuietHours(start="08:00", end="08:00").contains(time(8, 0))

    def test_invalid_format(self):
        with pytest.raises(ValidationError):
            QuietHours(start="24:00", end="07:00")


@pytest.mark.unit
class TestBatchDispatchResult:
    def _result(self, total):
        return BatchDispatchResult(
            notification_key="kickoff", event_id="kickoff:1:1", environment="preview",
            total_recipients=total,
        )

    def test_counts_start_at_zero_for_every_outcome(self):
        result = self._result(0)
        assert set(result.counts) == {outcome.value for outcome in DispatchOutcome}
        assert sum(result.counts.values()) == 0
        assert result.is_consistent

    def test_record_updates_counts(self):
        result = self._result(2)
        result.record("u1", DispatchOutcome.ACCEPTED, provider_notification_id="n-1")
        result.record("u2", DispatchOutcome.SUPPRESSED_MUTED, "muted")

        assert result.accepted == 1
        assert result.count(DispatchOutcome.SUPPRESSED_MUTED) == 1
        assert result.outcome_of("u2") == DispatchOutcome.SUPPRESSED_MUTED
        assert result.outcome_of("u3") is None
        assert result.is_consistent

    def test_inconsistent_when_recipient_missing(self):
        result = self._result(2)
        result.record("u1", DispatchOutcome.FAILED)
        assert not result.is_consistent

    def test_suppressed_flag(self):
        assert DispatchOutcome.SUPPRESSED_COOLDOWN.is_suppressed
        assert not DispatchOutcome.FAILED.is_suppressed
