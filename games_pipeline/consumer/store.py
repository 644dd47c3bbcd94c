"""
PostgreSQL processing store for the events worker.

One ``unit_of_work()`` is one database transaction: the idempotency marker,
the "<Type>Processed" event and the game counter update commit together or
not at all.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Generator

from sqlalchemy import select, update
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from games_pipeline.shared.database import DatabaseManager
from games_pipeline.shared.event_log import append_in_session
from games_pipeline.shared.events import DomainEvent
from games_pipeline.shared.models import Game, ProcessedMessage


class SqlUnitOfWork:
    """UnitOfWork bound to an open SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    def has_marker(self, message_id: str) -> bool:
        return (
            self.session.execute(
                select(ProcessedMessage.message_id).where(
                    ProcessedMessage.message_id == message_id
                )
            ).first()
            is not None
        )

    def try_insert_marker(self, message_id: str, event_type: str, subject_id: str) -> bool:
        # Concurrent inserters block on the PK until the first commits, then no-op
        result = self.session.execute(
            insert(ProcessedMessage)
            .values(message_id=message_id, event_type=event_type, subject_id=subject_id)
            .on_conflict_do_nothing(index_elements=["message_id"])
        )
        return result.rowcount == 1

    def append_event(self, event: DomainEvent) -> DomainEvent:
        return append_in_session(self.session, event)

    def increment_play_count(self, game_id: str, played_at: datetime) -> bool:
        result = self.session.execute(
            update(Game)
            .where(Game.id == game_id)
            .values(play_count=Game.play_count + 1, last_played_at=played_at)
        )
        return result.rowcount == 1


class SqlProcessingStore:
    """ProcessingStore over a DatabaseManager."""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    @contextmanager
    def unit_of_work(self) -> Generator[SqlUnitOfWork, None, None]:
        with self.db_manager.get_session() as session:
            yield SqlUnitOfWork(session)
