"""Relational tables consumed by the dispatch engine.

Device registration writes ``push_subscriptions``; the verifier updates its
health columns. ``notification_send_log`` is the idempotency ledger and its
uniqueness constraint is what makes acceptance exactly-once across replicas.
"""

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.sql import false, func, true

from infrastructure.persistence.database import Base


class PushSubscriptionRow(Base):
    __tablename__ = "push_subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    recipient_id = Column(String(64), nullable=False, index=True)
    device_id = Column(String(128), nullable=False, unique=True, index=True)
    platform = Column(String(16), nullable=False, server_default="ios")
    is_active = Column(Boolean, nullable=False, server_default=true())
    subscribed = Column(Boolean, nullable=False, server_default=true())
    invalid = Column(Boolean, nullable=False, server_default=false())
    last_checked_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class UserPreferencesRow(Base):
    """Per-recipient map of preference_key -> bool."""

    __tablename__ = "user_notification_preferences"

    recipient_id = Column(String(64), primary_key=True)
    preferences = Column(JSON, nullable=False, default=dict)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class LeagueMuteRow(Base):
    __tablename__ = "league_notification_settings"
    __table_args__ = (
        UniqueConstraint("league_id", "recipient_id", name="uq_league_mute"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    league_id = Column(String(64), nullable=False, index=True)
    recipient_id = Column(String(64), nullable=False)
    muted = Column(Boolean, nullable=False, server_default=false())


class SendLogRow(Base):
    """One row per (event, recipient, environment); state reserved|confirmed."""

    __tablename__ = "notification_send_log"
    __table_args__ = (
        UniqueConstraint(
            "event_id", "recipient_id", "environment", name="uq_send_log_event"
        ),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(String(256), nullable=False)
    recipient_id = Column(String(64), nullable=False)
    environment = Column(String(16), nullable=False)
    notification_key = Column(String(64), nullable=False, index=True)
    fingerprint = Column(String(32), nullable=False, server_default="")
    state = Column(String(16), nullable=False, server_default="reserved")
    result = Column(String(32), nullable=True)
    provider_notification_id = Column(String(128), nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=False)
