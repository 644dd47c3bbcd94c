"""
Event Log Appender

Appends immutable DomainEvent records to the ``domain_events`` table. The
request-handling services call it synchronously on every meaningful state
transition; the events worker appends its "<Type>Processed" events through
``append_in_session`` so they commit with the idempotency marker.

SEQUENCING:
Each append takes ``max(sequence) + 1`` for its aggregate inside the
inserting transaction. Events are ordered per aggregate, not globally.

FAILURE POLICY:
``EventLogAppender.append`` always raises ``AppendError`` when storage fails.
``EventLogAppender.record`` applies the configured policy:
- strict: re-raise, aborting the enclosing operation
- best_effort: log at ERROR and return None
"""

import logging
from typing import Optional, Protocol

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from games_pipeline.shared.database import DatabaseManager
from games_pipeline.shared.errors import AppendError
from games_pipeline.shared.events import DomainEvent
from games_pipeline.shared.models import DomainEventRecord

STRICT = "strict"
BEST_EFFORT = "best_effort"


class EventStore(Protocol):
    """Anything that can durably append a domain event."""

    def append(self, event: DomainEvent) -> DomainEvent:
        ...


def append_in_session(session: Session, event: DomainEvent) -> DomainEvent:
    """
    Insert ``event`` inside an open session, assigning its sequence.

    Returns:
        The event as stored (with its sequence number)
    """
    current = session.execute(
        select(func.coalesce(func.max(DomainEventRecord.sequence), 0)).where(
            DomainEventRecord.aggregate_id == event.aggregate_id
        )
    ).scalar_one()

    stored = event.model_copy(update={"sequence": current + 1})
    session.add(DomainEventRecord.from_domain_event(stored))
    session.flush()
    return stored


class SqlEventStore:
    """PostgreSQL-backed event store, one transaction per append."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    def append(self, event: DomainEvent) -> DomainEvent:
        try:
            with self.db_manager.get_session() as session:
                return append_in_session(session, event)
        except SQLAlchemyError as e:
            raise AppendError(f"Failed to append {event.type} event: {e}") from e

    def list_for_aggregate(self, aggregate_id: str) -> list:
        """Events of one aggregate, oldest first."""
        with self.db_manager.get_session() as session:
            records = session.scalars(
                select(DomainEventRecord)
                .where(DomainEventRecord.aggregate_id == aggregate_id)
                .order_by(DomainEventRecord.sequence, DomainEventRecord.timestamp)
            ).all()
            return [record.to_domain_event() for record in records]


class EventLogAppender:
    """
    Validating front-end to an EventStore.

    Args:
        store: Backing store
        policy: "strict" or "best_effort" (see module docstring)
    """

    def __init__(self, store: EventStore, policy: str = STRICT):
        if policy not in (STRICT, BEST_EFFORT):
            raise ValueError(f"Unknown event log policy: {policy}")
        self.store = store
        self.policy = policy
        self.logger = logging.getLogger(__name__)

    def append(self, event: DomainEvent) -> DomainEvent:
        """
        Append one event.

        Raises:
            ValueError: Empty type tag or aggregate id
            AppendError: Storage unavailable
        """
        if not event.type or not event.type.strip():
            raise ValueError("Domain event type must be a non-empty string")
        if not event.aggregate_id or not event.aggregate_id.strip():
            raise ValueError("Domain event aggregate_id must be a non-empty string")

        try:
            stored = self.store.append(event)
        except AppendError:
            raise
        except Exception as e:
            raise AppendError(f"Failed to append {event.type} event: {e}") from e

        self.logger.debug(
            "Domain event appended",
            extra={
                "event_id": stored.id,
                "event_type": stored.type,
                "aggregate_id": stored.aggregate_id,
                "sequence": stored.sequence,
            },
        )
        return stored

    def record(self, event: DomainEvent) -> Optional[DomainEvent]:
        """Append under the configured failure policy."""
        try:
            return self.append(event)
        except AppendError:
            if self.policy == STRICT:
                raise
            self.logger.error(
                "Event log append failed, continuing (best_effort policy)",
                exc_info=True,
                extra={"event_type": event.type, "aggregate_id": event.aggregate_id},
            )
            return None
