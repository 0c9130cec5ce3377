"""Unit tests for the notification catalog."""

import pytest

from modules.push.catalog import (
    NotificationCatalog,
    render_template,
    template_params,
    validate_template,
)
from modules.push.errors import ConfigError
from modules.push.models import UserPreferences
from tests.factories import make_catalog_entry


@pytest.mark.unit
class TestBundledCatalog:
    """Tests against the catalog shipped with the package."""

    def test_loads_all_entries(self, catalog):
        assert len(catalog) == 10
        assert "goal-scored" in catalog
        assert set(catalog.keys()) >= {"chat-message", "kickoff", "new-gameweek"}

    def test_chat_message_has_cooldown_and_quiet_hours(self, catalog):
        entry = catalog.require("chat-message")
        assert entry.cooldown_seconds == 30
        assert entry.quiet_hours.start == "23:00"
        assert entry.quiet_hours.end == "07:00"

    def test_half_time_has_no_preference_key(self, catalog):
        assert catalog.require("half-time").preference_key is None

    def test_entries_are_immutable(self, catalog):
        with pytest.raises(Exception):
            catalog.require("kickoff").cooldown_seconds = 10


@pytest.mark.unit
class TestCatalogLookup:
    def test_unknown_key(self, catalog):
        assert catalog.get("does-not-exist") is None
        with pytest.raises(ConfigError, match="Unknown notification key"):
            catalog.require("does-not-exist")

    def test_disabled_entry_is_rejected(self):
        catalog = NotificationCatalog([make_catalog_entry(status="deprecated")])
        assert catalog.get("goal-scored").enabled is False
        with pytest.raises(ConfigError, match="disabled"):
            catalog.require("goal-scored")

    def test_duplicate_keys(self):
        with pytest.raises(ConfigError, match="Duplicate"):
            NotificationCatalog([make_catalog_entry(), make_catalog_entry()])

    def test_malformed_template(self):
        with pytest.raises(ConfigError, match="Malformed"):
            NotificationCatalog([make_catalog_entry(event_id_format="goal:{match")])


@pytest.mark.unit
class TestCatalogLoading:
    def test_from_mapping_requires_list(self):
        with pytest.raises(ConfigError):
            NotificationCatalog.from_mapping({"notifications": {"key": "x"}})

    def test_from_mapping_rejects_unknown_fields(self):
        document = {
            "notifications": [
                {"key": "x", "owner": "o", "event_id_format": "x:{id}", "colour": "red"}
            ]
        }
        with pytest.raises(ConfigError, match="Invalid catalog entry 'x'"):
            NotificationCatalog.from_mapping(document)

    def test_load_from_path(self, tmp_path):
        path = tmp_path / "catalog.yaml"
        path.write_text(
            "notifications:\n"
            "  - key: test-alert\n"
            "    owner: admin-triggered\n"
            "    event_id_format: 'alert:{id}'\n"
            "    rollout_percentage: 25\n"
        )
        catalog = NotificationCatalog.load(path)
        assert catalog.require("test-alert").rollout_percentage == 25

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="Cannot load catalog"):
            NotificationCatalog.load(tmp_path / "missing.yaml")

    def test_load_invalid_yaml(self, tmp_path):
        path = tmp_path / "catalog.yaml"
        path.write_text("notifications: [unclosed")
        with pytest.raises(ConfigError):
            NotificationCatalog.load(path)


@pytest.mark.unit
class TestTemplates:
    def test_template_params(self):
        assert template_params("goal:{api_match_id}:{scorer_normalized}:{minute}") == [
            "api_match_id",
            "scorer_normalized",
            "minute",
        ]

    def test_render(self):
        assert render_template("ft:{api_match_id}", {"api_match_id": 1001}) == "ft:1001"

    @pytest.mark.parametrize("params", [{}, {"api_match_id": None}, {"api_match_id": ""}])
    def test_render_missing_param(self, params):
        with pytest.raises(ConfigError, match="api_match_id"):
            render_template("ft:{api_match_id}", params)

    def test_static_template_is_valid(self):
        validate_template("totl_gameweek")

    def test_format_ids(self, catalog):
        params = {"api_match_id": 7, "scorer_normalized": "saka", "minute": 12}
        assert catalog.format_event_id("goal-scored", params) == "goal:7:saka:12"
        assert catalog.format_collapse_id("goal-scored", params) == "goal:7"
        assert catalog.format_thread_id("goal-scored", params) == "match:7"
        assert catalog.format_thread_id("new-gameweek", {}) == "totl_gameweek"

    def test_missing_collapse_template_returns_none(self):
        catalog = NotificationCatalog([make_catalog_entry(collapse_id_format=None)])
        assert catalog.format_collapse_id("goal-scored", {}) is None

    def test_matches_event_id(self, catalog):
        assert catalog.matches_event_id("goal-scored", "goal:7:saka:12")
        assert not catalog.matches_event_id("goal-scored", "goal:7")
        assert not catalog.matches_event_id("goal-scored", "ft:7")
        assert not catalog.matches_event_id("goal-scored", "")


@pytest.mark.unit
class TestIsEnabled:
    def test_missing_preference_means_allowed(self, catalog):
        entry = catalog.require("kickoff")
        assert NotificationCatalog.is_enabled(entry, UserPreferences("u1", {}))

    def test_explicit_opt_out(self, catalog):
        entry = catalog.require("kickoff")
        prefs = UserPreferences("u1", {"score-updates": False})
        assert not NotificationCatalog.is_enabled(entry, prefs)

    def test_entry_without_preference_key(self, catalog):
        entry = catalog.require("half-time")
        assert NotificationCatalog.is_enabled(entry, {"score-updates": False})

    def test_disabled_entry(self):
        entry = make_catalog_entry(enabled=False)
        assert not NotificationCatalog.is_enabled(entry)

    def test_opt_in_entry_uses_preference_default(self):
        entry = make_catalog_entry(preference_default=False)

        assert not NotificationCatalog.is_enabled(entry, UserPreferences("u1", {}))
        assert not NotificationCatalog.is_enabled(entry)
        assert NotificationCatalog.is_enabled(entry, {"score-updates": True})

    def test_bundled_entries_default_to_allowed(self, catalog):
        assert all(entry.preference_default for entry in catalog.all())
