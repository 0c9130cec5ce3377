"""Operation result types and status enums.

This module contains standardized result types for integration calls,
including status enums, result dataclasses, and error classifiers for HTTP
responses and request exceptions.
"""

from infrastructure.operations.classifiers import (
    classify_http_response,
    classify_request_exception,
)
from infrastructure.operations.result import OperationResult
from infrastructure.operations.status import OperationStatus

__all__ = [
    "OperationResult",
    "OperationStatus",
    "classify_http_response",
    "classify_request_exception",
]
