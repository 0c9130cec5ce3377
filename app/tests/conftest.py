"""Shared fixtures for the push dispatch test suite.

The dispatcher harness wires the real catalog, send log, policy engine,
targeting resolver and verifier over in-memory stores. Only the push
provider is a mock so tests control device status and send responses.
"""

from unittest.mock import MagicMock

import pytest

from infrastructure.idempotency import (
    DeployEnvironment,
    IdempotencyService,
    InMemorySendLogStore,
)
from infrastructure.persistence import create_all, create_session_factory
from modules.push.catalog import NotificationCatalog
from modules.push.dispatcher import NotificationDispatcher
from modules.push.policy import PolicyEngine
from modules.push.provider import PushProvider
from modules.push.stores import (
    InMemoryMuteStore,
    InMemoryPreferenceStore,
    InMemorySubscriptionStore,
)
from modules.push.targeting import TargetingResolver
from modules.push.verifier import SubscriptionVerifier
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from tests.factories import FakeClock, accept_all, make_player, make_subscription


@pytest.fixture(scope="session")
def catalog():
    """The bundled notification catalog."""
    return NotificationCatalog.load()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def send_log():
    return InMemorySendLogStore()


@pytest.fixture
def preferences():
    return InMemoryPreferenceStore()


@pytest.fixture
def mutes():
    return InMemoryMuteStore()


@pytest.fixture
def subscriptions():
    return InMemorySubscriptionStore()


@pytest.fixture
def idempotency(send_log, clock):
    return IdempotencyService(send_log, DeployEnvironment.PREVIEW, clock=clock)


@pytest.fixture
def policy(preferences, mutes, idempotency, clock):
    return PolicyEngine(preferences, mutes, idempotency, clock=clock)


@pytest.fixture
def provider():
    """Provider mock: every device is subscribed and every send accepted."""
    mock_provider = MagicMock(spec=PushProvider)
    mock_provider.get_device_status.side_effect = lambda device_id: make_player()
    mock_provider.send.side_effect = accept_all()
    return mock_provider


@pytest.fixture
def verifier(provider, subscriptions, clock):
    return SubscriptionVerifier(
        provider, subscriptions, max_workers=4, stage_timeout_seconds=5.0, clock=clock
    )


@pytest.fixture
def dispatcher(catalog, idempotency, policy, subscriptions, verifier, provider):
    return NotificationDispatcher(
        catalog=catalog,
        idempotency=idempotency,
        policy=policy,
        targeting=TargetingResolver(subscriptions),
        verifier=verifier,
        provider=provider,
        suppression_max_workers=4,
    )


@pytest.fixture
def add_devices(subscriptions):
    """Register one device per recipient, returning the device ids."""

    def _factory(*recipient_ids, **kwargs):
        device_ids = []
        for recipient_id in recipient_ids:
            subscription = make_subscription(recipient_id, **kwargs)
            subscriptions.add(subscription)
            device_ids.append(subscription.device_id)
        return device_ids

    return _factory


@pytest.fixture
def sqlite_engine():
    """In-memory SQLite engine with the push tables created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(sqlite_engine):
    return create_session_factory(sqlite_engine)
