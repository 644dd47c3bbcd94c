"""
Idempotent Message Processor

Applies one received queue message to domain state exactly once, no matter
how many times the queue delivers it.

PROCESSING FLOW:
┌─────────────────────────────────────────────────────────────────────────┐
│  1. Decode envelope (pydantic)          → MalformedMessageError         │
│  ── one unit of work (single DB transaction) ──────────────────────     │
│  2. Marker for MessageId exists?        → DUPLICATE                     │
│  3. Insert marker (ON CONFLICT DO NOTHING); lost the race? → DUPLICATE  │
│  4. Append "<EventType>Processed" domain event                          │
│  5. Dispatch to the handler for the event type                          │
│  ── commit ────────────────────────────────────────────────────────     │
└─────────────────────────────────────────────────────────────────────────┘

A failure anywhere in steps 2-5 rolls back the marker, the event and the
counter update together and surfaces as ProcessError. The consumer then
leaves the message on the queue and the redelivery re-applies everything.

HANDLERS:
- GameStarted: play_count += 1, last_played_at = now
- GameQueued: logged only
- anything else: logged at INFO and acknowledged
"""

import logging
import time
from contextlib import AbstractContextManager
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Optional, Protocol

from games_pipeline.shared.errors import ProcessError
from games_pipeline.shared.events import (
    DomainEvent,
    EventType,
    GameEventMessage,
    ReceivedMessage,
    utcnow,
)
from games_pipeline.shared.logger import CorrelationAdapter


class ProcessOutcome(str, Enum):
    """Result of a successful ``process`` call."""

    PROCESSED = "processed"
    DUPLICATE = "duplicate"


# ==============================================================================
# STORE INTERFACES
# ==============================================================================


class UnitOfWork(Protocol):
    """Operations available inside one processing transaction."""

    def has_marker(self, message_id: str) -> bool:
        ...

    def try_insert_marker(self, message_id: str, event_type: str, subject_id: str) -> bool:
        """Insert the marker if absent; False when another consumer already has it."""
        ...

    def append_event(self, event: DomainEvent) -> DomainEvent:
        ...

    def increment_play_count(self, game_id: str, played_at: datetime) -> bool:
        """Bump the game's counters; False when the game does not exist."""
        ...


class ProcessingStore(Protocol):
    def unit_of_work(self) -> AbstractContextManager:
        """Context manager yielding a UnitOfWork; commits on clean exit."""
        ...


Handler = Callable[[UnitOfWork, GameEventMessage, datetime, logging.LoggerAdapter], None]


# ==============================================================================
# PROCESSOR
# ==============================================================================


class MessageProcessor:
    """
    Turns queue deliveries into durable, idempotent state changes.

    Args:
        store: Transactional store for markers, events and game counters
        clock: Source of "now" for ProcessedAt / last_played_at
    """

    def __init__(self, store: ProcessingStore, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.clock = clock
        self.logger = logging.getLogger(__name__)

        self.handlers: Dict[str, Handler] = {
            EventType.GAME_STARTED: self._handle_game_started,
            EventType.GAME_QUEUED: self._handle_game_queued,
        }

    def register_handler(self, event_type: str, handler: Handler) -> None:
        """Add or replace the handler for ``event_type``."""
        self.handlers[event_type] = handler

    def process(self, message: ReceivedMessage) -> ProcessOutcome:
        """
        Apply one delivery.

        Args:
            message: Delivery received from the queue

        Returns:
            PROCESSED, or DUPLICATE when this MessageId was already applied

        Raises:
            MalformedMessageError: Body is not a valid envelope
            ProcessError: Storage or handler failure (nothing was committed)
        """
        start_time = time.time()
        message_logger = CorrelationAdapter(self.logger, {"correlation_id": message.message_id})

        envelope = GameEventMessage.from_json(message.body, message_id=message.message_id)

        try:
            outcome = self._apply(message, envelope, message_logger)
        except ProcessError:
            raise
        except Exception as e:
            raise ProcessError(
                f"Failed to process {envelope.event_type} message: {e}",
                message_id=message.message_id,
            ) from e

        if outcome is ProcessOutcome.DUPLICATE:
            message_logger.info(
                "Duplicate message, already processed",
                extra={"event_type": envelope.event_type, "subject_id": envelope.subject_id},
            )
        else:
            message_logger.info(
                "Message processed",
                extra={
                    "event_type": envelope.event_type,
                    "subject_id": envelope.subject_id,
                    "processing_time_ms": round((time.time() - start_time) * 1000, 2),
                },
            )
        return outcome

    def _apply(
        self,
        message: ReceivedMessage,
        envelope: GameEventMessage,
        message_logger: logging.LoggerAdapter,
    ) -> ProcessOutcome:
        with self.store.unit_of_work() as uow:
            if uow.has_marker(message.message_id):
                return ProcessOutcome.DUPLICATE

            # Lost the insert race to another consumer
            if not uow.try_insert_marker(
                message.message_id, envelope.event_type, envelope.subject_id
            ):
                return ProcessOutcome.DUPLICATE

            processed_at = self.clock()
            uow.append_event(self._processed_event(message, envelope, processed_at))

            handler: Optional[Handler] = self.handlers.get(envelope.event_type)
            if handler is None:
                message_logger.info(
                    "Unknown event type, ignoring",
                    extra={"event_type": envelope.event_type},
                )
            else:
                handler(uow, envelope, processed_at, message_logger)

        return ProcessOutcome.PROCESSED

    @staticmethod
    def _processed_event(
        message: ReceivedMessage, envelope: GameEventMessage, processed_at: datetime
    ) -> DomainEvent:
        return DomainEvent.create(
            aggregate_id=envelope.subject_id,
            type=EventType.processed(envelope.event_type),
            payload={
                "OriginalEventType": envelope.event_type,
                "GameId": envelope.subject_id,
                "UserId": envelope.actor_id,
                "OriginalTimestamp": envelope.timestamp.isoformat(),
                "ProcessedAt": processed_at.isoformat(),
                "MessageId": message.message_id,
            },
        )

    # ==========================================================================
    # HANDLERS
    # ==========================================================================

    @staticmethod
    def _handle_game_started(
        uow: UnitOfWork,
        envelope: GameEventMessage,
        processed_at: datetime,
        message_logger: logging.LoggerAdapter,
    ) -> None:
        if not uow.increment_play_count(envelope.subject_id, processed_at):
            message_logger.warning(
                "GameStarted for unknown game, counters not updated",
                extra={"game_id": envelope.subject_id},
            )
            return

        message_logger.debug(
            "Play count incremented",
            extra={"game_id": envelope.subject_id, "user_id": envelope.actor_id},
        )

    @staticmethod
    def _handle_game_queued(
        uow: UnitOfWork,
        envelope: GameEventMessage,
        processed_at: datetime,
        message_logger: logging.LoggerAdapter,
    ) -> None:
        message_logger.info(
            "Game queued",
            extra={"game_id": envelope.subject_id, "user_id": envelope.actor_id},
        )
