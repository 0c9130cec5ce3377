"""Wiring for the push dispatch engine."""

from typing import Optional

from sqlalchemy.orm import sessionmaker

from infrastructure.configuration import Settings
from infrastructure.idempotency import IdempotencyService, SqlSendLogStore, environment_of
from infrastructure.logging import get_module_logger
from infrastructure.persistence import create_engine_from_settings, create_session_factory
from infrastructure.services import get_settings
from integrations.onesignal import OneSignalClient
from modules.push.catalog import NotificationCatalog
from modules.push.dispatcher import NotificationDispatcher
from modules.push.errors import ConfigError
from modules.push.policy import PolicyEngine
from modules.push.provider import PushProvider
from modules.push.sql_stores import SqlMuteStore, SqlPreferenceStore, SqlSubscriptionStore
from modules.push.targeting import TargetingResolver
from modules.push.verifier import SubscriptionVerifier

logger = get_module_logger()


def build_provider(
    settings: Settings, client: Optional[OneSignalClient] = None
) -> PushProvider:
    """Build the push provider, resolving auth and endpoint once.

    Raises:
        ConfigError: If the OneSignal app id, key or auth scheme is invalid
    """
    if client is None:
        try:
            client = OneSignalClient.from_settings(settings.onesignal)
        except ValueError as e:
            raise ConfigError(f"Invalid OneSignal configuration: {e}") from e
    return PushProvider(client, batch_size=settings.onesignal.ONESIGNAL_BATCH_SIZE)


def build_dispatcher(
    settings: Optional[Settings] = None,
    session_factory: Optional[sessionmaker] = None,
    client: Optional[OneSignalClient] = None,
    catalog: Optional[NotificationCatalog] = None,
) -> NotificationDispatcher:
    """Assemble a NotificationDispatcher backed by the relational store.

    Args:
        settings: Application settings (defaults to get_settings())
        session_factory: SQLAlchemy sessionmaker (defaults to one built from
            DatabaseSettings)
        client: Pre-built OneSignalClient
        catalog: Pre-loaded catalog (defaults to PUSH_CATALOG_PATH or the
            bundled catalog)

    Raises:
        ConfigError: On an invalid catalog or provider configuration
    """
    settings = settings or get_settings()
    catalog = catalog or NotificationCatalog.load(settings.dispatch.PUSH_CATALOG_PATH)
    provider = build_provider(settings, client)

    if session_factory is None:
        session_factory = create_session_factory(
            create_engine_from_settings(settings.database)
        )

    idempotency = IdempotencyService(
        SqlSendLogStore(session_factory), environment_of(settings)
    )
    subscriptions = SqlSubscriptionStore(session_factory)
    policy = PolicyEngine(
        SqlPreferenceStore(session_factory), SqlMuteStore(session_factory), idempotency
    )
    verifier = SubscriptionVerifier(
        provider,
        subscriptions,
        max_workers=settings.dispatch.PUSH_VERIFY_MAX_WORKERS,
        stage_timeout_seconds=settings.dispatch.PUSH_VERIFY_STAGE_TIMEOUT_SECONDS,
    )

    logger.info(
        "push_dispatcher_built",
        environment=idempotency.environment.value,
        catalog_entries=len(catalog),
    )
    return NotificationDispatcher(
        catalog=catalog,
        idempotency=idempotency,
        policy=policy,
        targeting=TargetingResolver(subscriptions),
        verifier=verifier,
        provider=provider,
        suppression_max_workers=settings.dispatch.PUSH_SUPPRESSION_MAX_WORKERS,
        release_on_provider_failure=settings.dispatch.PUSH_RELEASE_ON_PROVIDER_FAILURE,
    )
