"""Error classifiers for push provider HTTP calls.

Converts ``requests`` exceptions and non-2xx HTTP responses into
standardized OperationResult objects so the provider client can decide
whether to retry and the dispatch engine can report per-device errors.

Key Functions:
- classify_http_response(): non-2xx requests.Response -> OperationResult
- classify_request_exception(): requests exception -> OperationResult

Usage:
    from infrastructure.operations.classifiers import (
        classify_http_response,
        classify_request_exception,
    )

    try:
        response = session.get(url, timeout=10)
    except requests.RequestException as exc:
        return classify_request_exception(exc)
    if not response.ok:
        return classify_http_response(response, "OneSignal")
"""

from typing import Any, Optional

import requests

from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

DEFAULT_RETRY_AFTER_SECONDS = 60


def _response_body(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {"text": response.text[:500]}


def _retry_after(response: requests.Response) -> int:
    header_value = response.headers.get("Retry-After")
    if header_value:
        try:
            return int(header_value)
        except (TypeError, ValueError):
            pass  # Use default if header is malformed
    return DEFAULT_RETRY_AFTER_SECONDS


def classify_http_response(
    response: requests.Response, service: str = "Provider"
) -> OperationResult:
    """Classify a non-2xx HTTP response into OperationResult.

    Status Code Mapping:
    - 429: Rate limiting -> TRANSIENT_ERROR with retry_after
    - 401/403: Credentials rejected -> UNAUTHORIZED
    - 404: Not found -> NOT_FOUND
    - 5xx: Server error -> TRANSIENT_ERROR
    - Other 4xx: Bad request -> PERMANENT_ERROR

    Args:
        response: Response with a non-2xx status code
        service: Service name used in messages

    Returns:
        OperationResult carrying the parsed error body in ``data``
    """
    status_code: Optional[int] = response.status_code
    body = _response_body(response)

    if status_code == 429:
        return OperationResult.error(
            OperationStatus.TRANSIENT_ERROR,
            f"{service} rate limited",
            error_code="RATE_LIMITED",
            retry_after=_retry_after(response),
            data=body,
        )

    if status_code in (401, 403):
        return OperationResult.error(
            OperationStatus.UNAUTHORIZED,
            f"{service} rejected credentials ({status_code})",
            error_code="UNAUTHORIZED",
            data=body,
        )

    if status_code == 404:
        return OperationResult.error(
            OperationStatus.NOT_FOUND,
            f"{service} resource not found",
            error_code="NOT_FOUND",
            data=body,
        )

    if status_code and 500 <= status_code < 600:
        return OperationResult.transient_error(
            f"{service} server error ({status_code})",
            error_code="SERVER_ERROR",
            data=body,
        )

    return OperationResult.permanent_error(
        f"{service} client error ({status_code})",
        error_code=f"HTTP_{status_code}",
        data=body,
    )


def classify_request_exception(exc: Exception) -> OperationResult:
    """Classify an exception raised while performing an HTTP request.

    Timeouts and connection failures are transient; anything else raised by
    ``requests`` (invalid URL, too many redirects) is permanent.

    Args:
        exc: Exception raised by requests

    Returns:
        OperationResult with an appropriate error code
    """
    if isinstance(exc, requests.Timeout):
        return OperationResult.transient_error(
            f"Request timed out: {exc}",
            error_code="TIMEOUT",
        )

    if isinstance(exc, requests.ConnectionError):
        return OperationResult.transient_error(
            f"Connection error: {exc}",
            error_code="CONNECTION_ERROR",
        )

    return OperationResult.permanent_error(
        f"Request error: {type(exc).__name__}: {exc}",
        error_code="REQUEST_ERROR",
    )
