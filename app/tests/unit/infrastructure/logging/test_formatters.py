"""Unit tests for infrastructure.logging.formatters module."""

import pytest

from infrastructure.logging.formatters import (
    SENSITIVE_PATTERNS,
    mask_sensitive_data,
    truncate_large_values,
)


@pytest.mark.unit
class TestMaskSensitiveData:
    """Test suite for mask_sensitive_data processor factory."""

    def test_masks_provider_credentials(self):
        """REST API keys and authorization headers are masked."""
        processor = mask_sensitive_data()
        event_dict = {
            "event": "onesignal_client_built",
            "ONESIGNAL_REST_API_KEY": "os_v2_app_secret",
            "Authorization": "Key os_v2_app_secret",
            "app_id": "app-1",
        }

        result = processor(None, "info", event_dict)

        assert result["ONESIGNAL_REST_API_KEY"] == "***REDACTED***"
        assert result["Authorization"] == "***REDACTED***"
        assert result["app_id"] == "app-1"

    def test_masks_database_url(self):
        processor = mask_sensitive_data()
        result = processor(None, "info", {"database_url": "postgresql://u:p@h/db"})
        assert result["database_url"] == "***REDACTED***"

    def test_event_key_is_never_masked(self):
        processor = mask_sensitive_data()
        result = processor(None, "info", {"event": "token_refreshed"})
        assert result["event"] == "token_refreshed"

    def test_preserves_none_values(self):
        processor = mask_sensitive_data()
        result = processor(None, "info", {"password": None})
        assert result["password"] is None

    def test_custom_mask_and_additional_patterns(self):
        processor = mask_sensitive_data(
            mask_value="[HIDDEN]", additional_patterns=frozenset({"device_id"})
        )
        result = processor(None, "info", {"device_id": "abc", "recipient_id": "u1"})
        assert result["device_id"] == "[HIDDEN]"
        assert result["recipient_id"] == "u1"

    def test_sensitive_patterns_cover_credentials(self):
        assert "rest_api_key" in SENSITIVE_PATTERNS
        assert "authorization" in SENSITIVE_PATTERNS


@pytest.mark.unit
class TestTruncateLargeValues:
    """Test suite for truncate_large_values processor factory."""

    def test_truncates_long_strings(self):
        processor = truncate_large_values(max_length=10)
        result = processor(None, "info", {"body": "x" * 25})
        assert result["body"].startswith("x" * 10)
        assert "25 chars total" in result["body"]

    def test_leaves_short_and_non_string_values(self):
        processor = truncate_large_values(max_length=10)
        result = processor(None, "info", {"body": "short", "count": 12345678901})
        assert result["body"] == "short"
        assert result["count"] == 12345678901
