"""Unit tests for the OneSignal REST client."""

from unittest.mock import MagicMock

import pytest
import requests

from infrastructure.configuration import OneSignalSettings
from infrastructure.operations import OperationStatus
from infrastructure.resilience import CircuitBreaker
from integrations.onesignal import OneSignalClient, build_authorization_header


def _response(status_code=200, body=None, headers=None):
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.ok = 200 <= status_code < 400
    response.headers = headers or {}
    response.text = ""
    response.json.return_value = body if body is not None else {}
    return response


@pytest.fixture
def session():
    mock_session = MagicMock()
    mock_session.headers = {}
    return mock_session


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_client(session, sleeps):
    def _factory(**kwargs):
        params = {
            "app_id": "app-1",
            "api_key": "key-1",
            "session": session,
            "circuit_breaker": CircuitBreaker("onesignal-test", failure_threshold=50),
            "sleep": sleeps.append,
        }
        params.update(kwargs)
        return OneSignalClient(**params)

    return _factory


@pytest.mark.unit
class TestBuildAuthorizationHeader:
    @pytest.mark.parametrize(
        "scheme, expected",
        [("Basic", "Basic k"), ("key", "Key k"), ("BEARER", "Bearer k")],
    )
    def test_supported_schemes(self, scheme, expected):
        assert build_authorization_header(scheme, "k") == expected

    def test_unknown_scheme(self):
        with pytest.raises(ValueError, match="Unsupported"):
            build_authorization_header("Token", "k")

    def test_missing_key(self):
        with pytest.raises(ValueError, match="REST_API_KEY"):
            build_authorization_header("Basic", "")


@pytest.mark.unit
class TestClientConstruction:
    def test_sets_headers_once(self, make_client, session):
        make_client(auth_scheme="Key")
        assert session.headers["Authorization"] == "Key key-1"
        assert session.headers["Accept"] == "application/json"

    def test_missing_app_id(self, make_client):
        with pytest.raises(ValueError, match="APP_ID"):
            make_client(app_id="")

    def test_from_settings(self, session):
        settings = OneSignalSettings(
            _env_file=None,
            ONESIGNAL_APP_ID="app-9",
            ONESIGNAL_REST_API_KEY="secret",
            ONESIGNAL_AUTH_SCHEME="Bearer",
            ONESIGNAL_API_URL="https://api.onesignal.com/",
            ONESIGNAL_MAX_RETRIES=4,
        )
        client = OneSignalClient.from_settings(settings, session=session)

        assert client.app_id == "app-9"
        assert client.base_url == "https://api.onesignal.com"
        assert client.max_retries == 4
        assert session.headers["Authorization"] == "Bearer secret"


@pytest.mark.unit
class TestRequests:
    def test_get_device(self, make_client, session):
        session.request.return_value = _response(200, {"id": "dev-1", "notification_types": 1})
        client = make_client()

        result = client.get_device("dev-1")

        assert result.is_success
        assert result.data["notification_types"] == 1
        session.request.assert_called_once_with(
            "GET",
            "https://onesignal.com/api/v1/players/dev-1",
            timeout=10.0,
            params={"app_id": "app-1"},
        )

    def test_create_notification_adds_app_id(self, make_client, session):
        session.request.return_value = _response(200, {"id": "notif-1", "recipients": 2})
        client = make_client()
        payload = {"include_player_ids": ["a", "b"]}

        result = client.create_notification(payload)

        assert result.data["id"] == "notif-1"
        sent = session.request.call_args.kwargs["json"]
        assert sent["app_id"] == "app-1"
        assert sent["idempotency_key"]
        assert "app_id" not in payload
        assert "idempotency_key" not in payload

    def test_create_notification_keeps_caller_idempotency_key(self, make_client, session):
        session.request.return_value = _response(200, {"id": "notif-1"})

        make_client().create_notification({"idempotency_key": "key-from-caller"})

        assert session.request.call_args.kwargs["json"]["idempotency_key"] == "key-from-caller"

    def test_not_found(self, make_client, session):
        session.request.return_value = _response(404, {"errors": ["No user with this id"]})
        result = make_client().get_device("missing")
        assert result.status == OperationStatus.NOT_FOUND
        assert session.request.call_count == 1


@pytest.mark.unit
class TestRetries:
    def test_retries_transient_failures_then_succeeds(self, make_client, session, sleeps):
        session.request.side_effect = [
            requests.Timeout("slow"),
            _response(503),
            _response(200, {"id": "notif-1"}),
        ]
        result = make_client(max_retries=2, backoff_seconds=0.5).create_notification({})

        assert result.is_success
        assert session.request.call_count == 3
        assert sleeps == [0.5, 1.0]

    def test_read_timeout_retry_reuses_idempotency_key(self, make_client, session, sleeps):
        session.request.side_effect = [
            requests.ReadTimeout("response lost"),
            _response(200, {"id": "notif-1"}),
        ]

        result = make_client(max_retries=2).create_notification({"include_player_ids": ["a"]})

        assert result.is_success
        keys = [c.kwargs["json"]["idempotency_key"] for c in session.request.call_args_list]
        assert len(keys) == 2
        assert keys[0] and keys[0] == keys[1]

    def test_server_error_retry_reuses_idempotency_key(self, make_client, session, sleeps):
        session.request.side_effect = [_response(502), _response(200, {"id": "notif-1"})]

        make_client(max_retries=1).create_notification({})

        keys = {c.kwargs["json"]["idempotency_key"] for c in session.request.call_args_list}
        assert len(keys) == 1

    def test_gives_up_after_max_retries(self, make_client, session, sleeps):
        session.request.side_effect = requests.ConnectionError("refused")
        result = make_client(max_retries=1).create_notification({})

        assert result.error_code == "CONNECTION_ERROR"
        assert session.request.call_count == 2
        assert len(sleeps) == 1

    def test_rate_limit_honours_retry_after_with_cap(self, make_client, session, sleeps):
        session.request.side_effect = [
            _response(429, {}, {"Retry-After": "120"}),
            _response(200, {"id": "n"}),
        ]
        make_client().create_notification({})
        assert sleeps == [10.0]

    def test_permanent_errors_are_not_retried(self, make_client, session, sleeps):
        session.request.return_value = _response(400, {"errors": ["bad payload"]})
        result = make_client().create_notification({})

        assert result.status == OperationStatus.PERMANENT_ERROR
        assert session.request.call_count == 1
        assert sleeps == []

    def test_open_circuit_short_circuits(self, make_client, session, sleeps):
        session.request.return_value = _response(503)
        breaker = CircuitBreaker("onesignal-open", failure_threshold=1, timeout_seconds=60)
        client = make_client(circuit_breaker=breaker, max_retries=3)

        result = client.create_notification({})

        assert result.error_code == "CIRCUIT_OPEN"
        assert session.request.call_count == 1
        assert len(sleeps) == 1
