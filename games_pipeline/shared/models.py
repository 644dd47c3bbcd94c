"""
SQLAlchemy ORM Models

Tables backing the games pipeline:

┌────────────────────┬──────────────────────────────────────────────────────┐
│ games              │ Catalog; play_count/last_played_at owned by worker   │
│ purchases          │ PENDING → PAID/FAILED (payment side is external)     │
│ domain_events      │ Append-only event log, ordered per aggregate         │
│ processed_messages │ One row per handled SQS MessageId (idempotency gate) │
└────────────────────┴──────────────────────────────────────────────────────┘

IDEMPOTENCY:
processed_messages.message_id is the PRIMARY KEY. The worker inserts with
ON CONFLICT DO NOTHING, so when two workers race on a redelivered message
exactly one insert affects a row and the other becomes a no-op.
"""

import enum
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import (
    DECIMAL,
    TIMESTAMP,
    CheckConstraint,
    Date,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from games_pipeline.shared.events import EVENT_TYPE_MAX_LENGTH, SUBJECT_ID_MAX_LENGTH, DomainEvent

# ==============================================================================
# DECLARATIVE BASE
# ==============================================================================


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


class PurchaseStatus(str, enum.Enum):
    """Purchase lifecycle states."""

    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"


# ==============================================================================
# GAME (CATALOG SUBJECT)
# ==============================================================================


class Game(Base):
    """
    Catalog entry.

    ``play_count`` and ``last_played_at`` are denormalized counters; only the
    events worker writes them, in response to GameStarted messages.
    """

    __tablename__ = "games"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    description: Mapped[str] = mapped_column(Text, nullable=False, default="")

    category: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    release_date: Mapped[Optional[date]] = mapped_column(Date)

    price: Mapped[Decimal] = mapped_column(
        DECIMAL(10, 2),
        CheckConstraint("price >= 0", name="check_non_negative_price"),
        nullable=False,
    )

    play_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
        comment="Incremented by the events worker on GameStarted",
    )

    last_played_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True),
        comment="Set by the events worker on GameStarted",
    )

    __table_args__ = ({"comment": "Games catalog"},)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "release_date": self.release_date.isoformat() if self.release_date else None,
            "price": float(self.price) if self.price is not None else None,
            "play_count": self.play_count,
            "last_played_at": self.last_played_at.isoformat() if self.last_played_at else None,
        }

    def __repr__(self) -> str:
        return f"<Game(id={self.id}, name={self.name!r}, play_count={self.play_count})>"


# ==============================================================================
# PURCHASE
# ==============================================================================


class Purchase(Base):
    """A user's purchase of a game."""

    __tablename__ = "purchases"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    user_id: Mapped[str] = mapped_column(String(36), nullable=False)

    game_id: Mapped[str] = mapped_column(String(36), nullable=False)

    amount: Mapped[Decimal] = mapped_column(
        DECIMAL(10, 2),
        CheckConstraint("amount > 0", name="check_positive_amount"),
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(10),
        CheckConstraint(
            "status IN ('PENDING', 'PAID', 'FAILED')", name="check_purchase_status"
        ),
        nullable=False,
        default=PurchaseStatus.PENDING.value,
    )

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    __table_args__ = (
        # Recommendation seeds: user's latest PAID purchases
        Index("idx_purchases_user_status_created", "user_id", "status", "created_at"),
        # Popularity aggregation: PAID purchases grouped by game
        Index("idx_purchases_status_game", "status", "game_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<Purchase(id={self.id}, user_id={self.user_id}, "
            f"game_id={self.game_id}, status={self.status})>"
        )


# ==============================================================================
# DOMAIN EVENT LOG
# ==============================================================================


class DomainEventRecord(Base):
    """Row of the append-only event log. Never updated or deleted."""

    __tablename__ = "domain_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)

    aggregate_id: Mapped[str] = mapped_column(String(128), nullable=False)

    type: Mapped[str] = mapped_column(String(EVENT_TYPE_MAX_LENGTH), nullable=False, index=True)

    timestamp: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    payload: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)

    __table_args__ = (
        Index("idx_domain_events_aggregate_sequence", "aggregate_id", "sequence"),
        {"comment": "Append-only domain event log"},
    )

    @classmethod
    def from_domain_event(cls, event: DomainEvent) -> "DomainEventRecord":
        return cls(
            id=event.id,
            aggregate_id=event.aggregate_id,
            type=event.type,
            timestamp=event.timestamp,
            sequence=event.sequence,
            payload=event.model_dump(mode="json")["payload"],
        )

    def to_domain_event(self) -> DomainEvent:
        return DomainEvent(
            id=self.id,
            aggregate_id=self.aggregate_id,
            type=self.type,
            timestamp=self.timestamp,
            sequence=self.sequence,
            payload=self.payload or {},
        )


# ==============================================================================
# PROCESSED MESSAGE MARKER
# ==============================================================================


class ProcessedMessage(Base):
    """Idempotency marker, keyed by the SQS MessageId."""

    __tablename__ = "processed_messages"

    message_id: Mapped[str] = mapped_column(String(128), primary_key=True)

    event_type: Mapped[str] = mapped_column(String(EVENT_TYPE_MAX_LENGTH), nullable=False)

    subject_id: Mapped[str] = mapped_column(String(SUBJECT_ID_MAX_LENGTH), nullable=False)

    processed_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )

    def __repr__(self) -> str:
        return f"<ProcessedMessage(message_id={self.message_id}, event_type={self.event_type})>"
