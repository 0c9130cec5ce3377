"""OneSignal REST API client.

Single endpoint and single authentication scheme, both resolved once when
the client is built. Transient failures (timeouts, connection errors, 429,
5xx) are retried here with exponential backoff; callers never loop over
endpoints or header variants themselves. Notification POSTs carry an
idempotency key, so a retry of a request that did reach OneSignal is not
delivered twice. Every call goes through a circuit breaker and returns an
OperationResult instead of raising.
"""

import time
import uuid
from typing import Any, Callable, Dict, Optional

import requests

from infrastructure.configuration.integrations.onesignal import OneSignalSettings
from infrastructure.logging import get_module_logger
from infrastructure.operations import (
    OperationResult,
    classify_http_response,
    classify_request_exception,
)
from infrastructure.resilience import CircuitBreaker, register_circuit_breaker

logger = get_module_logger()

AUTH_SCHEMES = ("Basic", "Key", "Bearer")
MAX_BACKOFF_SECONDS = 10.0
SERVICE_NAME = "OneSignal"


def build_authorization_header(auth_scheme: str, api_key: str) -> str:
    """Build the Authorization header value for the configured scheme.

    Raises:
        ValueError: If the scheme is not one of Basic, Key or Bearer, or
            the key is missing
    """
    if not api_key:
        raise ValueError("ONESIGNAL_REST_API_KEY is missing")
    scheme = next((s for s in AUTH_SCHEMES if s.lower() == auth_scheme.lower()), None)
    if scheme is None:
        raise ValueError(
            f"Unsupported ONESIGNAL_AUTH_SCHEME '{auth_scheme}', "
            f"expected one of {', '.join(AUTH_SCHEMES)}"
        )
    return f"{scheme} {api_key}"


class OneSignalClient:
    """Thin transport for the OneSignal players and notifications endpoints.

    Args:
        app_id: OneSignal application id
        api_key: REST API key
        auth_scheme: Basic, Key or Bearer
        base_url: API root, e.g. https://onesignal.com/api/v1
        timeout: Per-request timeout in seconds
        max_retries: Retries for transient failures (0 disables retrying)
        backoff_seconds: Base delay, doubled per attempt
        session: Optional requests.Session (tests pass a mock)
        circuit_breaker: Optional breaker; one is created and registered if omitted
        sleep: Sleep function used between retries
    """

    def __init__(
        self,
        app_id: str,
        api_key: str,
        auth_scheme: str = "Basic",
        base_url: str = "https://onesignal.com/api/v1",
        timeout: float = 10.0,
        max_retries: int = 2,
        backoff_seconds: float = 0.5,
        session: Optional[requests.Session] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not app_id:
            raise ValueError("ONESIGNAL_APP_ID is missing")
        self.app_id = app_id
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max(0, max_retries)
        self.backoff_seconds = backoff_seconds
        self._sleep = sleep

        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": build_authorization_header(auth_scheme, api_key),
                "Content-Type": "application/json; charset=utf-8",
                "Accept": "application/json",
            }
        )

        if circuit_breaker is None:
            circuit_breaker = CircuitBreaker(name="onesignal")
            register_circuit_breaker(circuit_breaker)
        self._circuit_breaker = circuit_breaker

    @classmethod
    def from_settings(
        cls, settings: OneSignalSettings, **kwargs: Any
    ) -> "OneSignalClient":
        """Build a client from OneSignalSettings.

        Raises:
            ValueError: If the app id, key or auth scheme is invalid
        """
        return cls(
            app_id=settings.ONESIGNAL_APP_ID or "",
            api_key=settings.ONESIGNAL_REST_API_KEY or "",
            auth_scheme=settings.ONESIGNAL_AUTH_SCHEME,
            base_url=settings.ONESIGNAL_API_URL,
            timeout=settings.ONESIGNAL_TIMEOUT_SECONDS,
            max_retries=settings.ONESIGNAL_MAX_RETRIES,
            backoff_seconds=settings.ONESIGNAL_BACKOFF_SECONDS,
            **kwargs,
        )

    def get_device(self, device_id: str) -> OperationResult:
        """Fetch a device (player) record.

        Returns:
            OperationResult with the player JSON in ``data`` on success;
            NOT_FOUND when the provider does not know the device.
        """
        return self._request(
            "GET", f"/players/{device_id}", params={"app_id": self.app_id}
        )

    def create_notification(self, payload: Dict[str, Any]) -> OperationResult:
        """POST a notification; ``app_id`` is added to the payload.

        The body always carries an ``idempotency_key`` (a random one unless
        the caller set it) so OneSignal drops a retried POST whose first
        attempt was delivered but timed out or failed with a 5xx.

        Returns:
            OperationResult with the response JSON (``id``, ``recipients``,
            ``errors``) in ``data`` on a 2xx response.
        """
        body = dict(payload)
        body["app_id"] = self.app_id
        body.setdefault("idempotency_key", str(uuid.uuid4()))
        return self._request("POST", "/notifications", json=body)

    def _request(self, method: str, path: str, **kwargs: Any) -> OperationResult:
        url = f"{self.base_url}{path}"
        attempt = 0
        while True:
            result = self._circuit_breaker.call_operation(
                self._send_once, method, url, **kwargs
            )
            if (
                result.is_success
                or not result.is_transient
                or result.error_code == "CIRCUIT_OPEN"
                or attempt >= self.max_retries
            ):
                return result

            delay = min(
                float(result.retry_after or self.backoff_seconds * (2**attempt)),
                MAX_BACKOFF_SECONDS,
            )
            logger.warning(
                "onesignal_request_retrying",
                method=method,
                path=path,
                attempt=attempt + 1,
                max_retries=self.max_retries,
                delay_seconds=delay,
                error_code=result.error_code,
            )
            self._sleep(delay)
            attempt += 1

    def _send_once(self, method: str, url: str, **kwargs: Any) -> OperationResult:
        try:
            response = self._session.request(
                method, url, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            logger.warning(
                "onesignal_request_failed", method=method, url=url, error=str(e)
            )
            return classify_request_exception(e)

        if not response.ok:
            result = classify_http_response(response, SERVICE_NAME)
            logger.debug(
                "onesignal_request_rejected",
                method=method,
                url=url,
                status_code=response.status_code,
                error_code=result.error_code,
            )
            return result

        try:
            data = response.json()
        except ValueError:
            data = {}
        return OperationResult.success(data=data)
