"""Test data factories for deterministic test data generation."""

from tests.factories.push import (
    DEFAULT_NOW,
    FakeClock,
    accept_all,
    make_catalog_entry,
    make_intent,
    make_player,
    make_subscription,
    reject_all,
)

__all__ = [
    "DEFAULT_NOW",
    "FakeClock",
    "accept_all",
    "make_catalog_entry",
    "make_intent",
    "make_player",
    "make_subscription",
    "reject_all",
]
