"""Unit tests for the push provider wrapper."""

from unittest.mock import MagicMock

import pytest

from infrastructure.operations import OperationResult, OperationStatus
from integrations.onesignal import OneSignalClient
from modules.push.provider import (
    INVALID_DEVICE,
    NOT_SUBSCRIBED,
    PROVIDER_ERROR,
    TRANSPORT_ERROR,
    PushProvider,
    build_payload,
    notification_idempotency_key,
)


@pytest.fixture
def client():
    return MagicMock(spec=OneSignalClient)


@pytest.mark.unit
class TestBuildPayload:
    def test_minimal_payload(self):
        payload = build_payload(["d1"], "Goal!", "Saka 12'")
        assert payload == {
            "include_player_ids": ["d1"],
            "headings": {"en": "Goal!"},
            "contents": {"en": "Saka 12'"},
        }

    def test_full_payload(self):
        payload = build_payload(
            ["d1"],
            "Goal!",
            "",
            data={"type": "goal-scored"},
            url="totl://match/7",
            collapse_id="goal:7",
            thread_id="match:7",
            android_group="totl_scores",
            badge_count=0,
        )
        assert payload["collapse_id"] == "goal:7"
        assert payload["thread_id"] == "match:7"
        assert payload["android_group"] == "totl_scores"
        assert payload["url"] == "totl://match/7"
        assert payload["ios_badgeType"] == "SetTo"
        assert payload["ios_badgeCount"] == 0


@pytest.mark.unit
class TestSend:
    def test_all_devices_accepted(self, client):
        client.create_notification.return_value = OperationResult.success(
            data={"id": "notif-1", "recipients": 2}
        )
        result = PushProvider(client).send(["d1", "d2"], "T", "B")

        assert result.accepted_device_ids == ["d1", "d2"]
        assert result.notification_ids == ["notif-1"]
        assert result.notification_id_by_device == {"d1": "notif-1", "d2": "notif-1"}

    def test_batches_devices(self, client):
        client.create_notification.side_effect = [
            OperationResult.success(data={"id": "n-1"}),
            OperationResult.success(data={"id": "n-2"}),
        ]
        result = PushProvider(client, batch_size=2).send(["d1", "d2", "d3", "d1"], "T", "B")

        batches = [c.args[0]["include_player_ids"] for c in client.create_notification.call_args_list]
        assert batches == [["d1", "d2"], ["d3"]]
        assert result.notification_id_by_device["d3"] == "n-2"

    def test_invalid_player_ids(self, client):
        client.create_notification.return_value = OperationResult.success(
            data={"id": "notif-1", "errors": {"invalid_player_ids": ["d2"]}}
        )
        result = PushProvider(client).send(["d1", "d2"], "T", "B")

        assert result.accepted_device_ids == ["d1"]
        assert [(e.device_id, e.code) for e in result.device_errors] == [("d2", INVALID_DEVICE)]

    def test_all_not_subscribed(self, client):
        client.create_notification.return_value = OperationResult.success(
            data={"id": "", "errors": ["All included players are not subscribed"]}
        )
        result = PushProvider(client).send(["d1", "d2"], "T", "B")

        assert result.accepted_count == 0
        assert {e.code for e in result.device_errors} == {NOT_SUBSCRIBED}

    def test_missing_notification_id(self, client):
        client.create_notification.return_value = OperationResult.success(data={})
        result = PushProvider(client).send(["d1"], "T", "B")
        assert result.device_errors[0].code == PROVIDER_ERROR

    def test_transport_failure(self, client):
        client.create_notification.return_value = OperationResult.transient_error(
            "timed out", error_code="TIMEOUT"
        )
        result = PushProvider(client).send(["d1", "d2"], "T", "B")
        assert [e.code for e in result.device_errors] == [TRANSPORT_ERROR, TRANSPORT_ERROR]

    def test_rejected_request(self, client):
        client.create_notification.return_value = OperationResult.error(
            OperationStatus.PERMANENT_ERROR, "bad", data={"errors": ["Invalid payload"]}
        )
        result = PushProvider(client).send(["d1"], "T", "B")
        assert result.device_errors[0].code == PROVIDER_ERROR

    def test_rejected_as_not_subscribed(self, client):
        client.create_notification.return_value = OperationResult.permanent_error(
            "bad", data={"errors": ["All included players are not subscribed"]}
        )
        result = PushProvider(client).send(["d1"], "T", "B")
        assert result.device_errors[0].code == NOT_SUBSCRIBED

    def test_device_status_passthrough(self, client):
        client.get_device.return_value = OperationResult.success(data={"id": "d1"})
        assert PushProvider(client).get_device_status("d1").data == {"id": "d1"}
        client.get_device.assert_called_once_with("d1")


@pytest.mark.unit
class TestIdempotencyKeys:
    def test_key_is_deterministic_uuid(self):
        payload = build_payload(["d1"], "Goal!", "Saka 12'", collapse_id="goal:7")

        first = notification_idempotency_key("preview:goal-scored:abc", payload)
        second = notification_idempotency_key("preview:goal-scored:abc", dict(payload))

        assert first == second
        assert len(first) == 36

    def test_key_changes_with_scope_or_devices(self):
        payload = build_payload(["d1"], "Goal!", "")
        key = notification_idempotency_key("scope-a", payload)

        assert notification_idempotency_key("scope-b", payload) != key
        assert notification_idempotency_key("scope-a", build_payload(["d2"], "Goal!", "")) != key

    def test_send_stamps_each_batch(self, client):
        client.create_notification.return_value = OperationResult.success(data={"id": "n"})

        PushProvider(client, batch_size=1).send(
            ["d1", "d2"], "T", "B", idempotency_scope="preview:kickoff:abc"
        )
        PushProvider(client, batch_size=1).send(
            ["d1", "d2"], "T", "B", idempotency_scope="preview:kickoff:abc"
        )

        keys = [c.args[0]["idempotency_key"] for c in client.create_notification.call_args_list]
        assert keys[0] != keys[1]
        assert keys[:2] == keys[2:]

    def test_no_scope_leaves_key_to_client(self, client):
        client.create_notification.return_value = OperationResult.success(data={"id": "n"})

        PushProvider(client).send(["d1"], "T", "B")

        assert "idempotency_key" not in client.create_notification.call_args.args[0]
