"""Unit tests for the settings aggregator."""

import pytest

from infrastructure.configuration import (
    DatabaseSettings,
    DispatchSettings,
    IdempotencySettings,
    OneSignalSettings,
    Settings,
)
from infrastructure.configuration.base import EngineSettings

ENV_VARS = [
    "ONESIGNAL_APP_ID",
    "ONESIGNAL_REST_API_KEY",
    "ONESIGNAL_API_URL",
    "ONESIGNAL_AUTH_SCHEME",
    "NOTIFICATION_ENV",
    "DATABASE_URL",
    "PUSH_VERIFY_STAGE_TIMEOUT_SECONDS",
    "PUSH_RELEASE_ON_PROVIDER_FAILURE",
    "PREFIX",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.mark.unit
class TestSettingsDefaults:
    def test_subsettings_are_instantiated(self):
        settings = Settings(_env_file=None)
        assert isinstance(settings.onesignal, OneSignalSettings)
        assert isinstance(settings.dispatch, DispatchSettings)
        assert isinstance(settings.database, DatabaseSettings)
        assert isinstance(settings.idempotency, IdempotencySettings)

    def test_dispatch_defaults(self):
        dispatch = DispatchSettings(_env_file=None)
        assert dispatch.PUSH_CATALOG_PATH is None
        assert dispatch.PUSH_VERIFY_STAGE_TIMEOUT_SECONDS == 20.0
        assert dispatch.PUSH_RELEASE_ON_PROVIDER_FAILURE is True

    def test_onesignal_defaults(self):
        onesignal = OneSignalSettings(_env_file=None)
        assert onesignal.ONESIGNAL_APP_ID is None
        assert onesignal.ONESIGNAL_AUTH_SCHEME == "Basic"
        assert onesignal.ONESIGNAL_API_URL == "https://onesignal.com/api/v1"
        assert onesignal.ONESIGNAL_BATCH_SIZE == 2000

    def test_is_production_without_prefix(self):
        assert Settings(_env_file=None).is_production


@pytest.mark.unit
class TestSettingsFromEnvironment:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("ONESIGNAL_APP_ID", " app-123 ")
        monkeypatch.setenv("ONESIGNAL_API_URL", "https://api.onesignal.com/")
        monkeypatch.setenv("NOTIFICATION_ENV", "staging")
        monkeypatch.setenv("PUSH_RELEASE_ON_PROVIDER_FAILURE", "false")
        monkeypatch.setenv("PREFIX", "dev-")

        settings = Settings(_env_file=None)

        assert settings.onesignal.ONESIGNAL_APP_ID == "app-123"
        assert settings.onesignal.ONESIGNAL_API_URL == "https://api.onesignal.com"
        assert settings.idempotency.NOTIFICATION_ENV == "staging"
        assert settings.dispatch.PUSH_RELEASE_ON_PROVIDER_FAILURE is False
        assert not settings.is_production

    def test_blank_credentials_become_none(self, monkeypatch):
        monkeypatch.setenv("ONESIGNAL_REST_API_KEY", "   ")
        assert OneSignalSettings(_env_file=None).ONESIGNAL_REST_API_KEY is None

    def test_explicit_subsettings_override(self):
        database = DatabaseSettings(_env_file=None, DATABASE_URL="sqlite://")
        settings = Settings(_env_file=None, database=database)
        assert settings.database.DATABASE_URL == "sqlite://"


@pytest.mark.unit
class TestSettingsBase:
    @pytest.mark.parametrize(
        "settings_cls",
        [OneSignalSettings, DispatchSettings, DatabaseSettings, IdempotencySettings],
    )
    def test_concern_settings_share_engine_config(self, settings_cls):
        assert issubclass(settings_cls, EngineSettings)
        assert settings_cls.model_config["case_sensitive"] is True
        assert settings_cls.model_config["extra"] == "ignore"
