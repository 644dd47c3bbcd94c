"""
Event Types for the Games Pipeline

Three shapes of event travel through the pipeline:

┌───────────────────┬──────────────────────────────────────────────────────┐
│ DomainEvent       │ Immutable event log record (PostgreSQL)              │
│ GameEventMessage  │ JSON envelope on the SQS queue                       │
│ ReceivedMessage   │ One delivery of an envelope (id + receipt handle)    │
└───────────────────┴──────────────────────────────────────────────────────┘

WIRE FORMAT (queue message body):
{
  "eventType": "GameStarted",
  "subjectId": "6f1c...",          # game id
  "actorId": "a42b...",            # user id
  "timestamp": "2025-01-10T14:30:00.123000+00:00",
  "data": {"GameName": "Hollow Knight"}
}
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from games_pipeline.shared.errors import MalformedMessageError

# Aggregate id for system-wide events (listings, searches, popularity queries)
NONE_AGGREGATE_ID = "00000000-0000-0000-0000-000000000000"

# Column widths of domain_events.type and processed_messages.subject_id
EVENT_TYPE_MAX_LENGTH = 100
SUBJECT_ID_MAX_LENGTH = 128


class EventType:
    """Event type tags produced and consumed by the pipeline."""

    GAME_STARTED = "GameStarted"
    GAME_QUEUED = "GameQueued"
    GAME_PURCHASED = "GamePurchased"
    GAME_SEARCH_EXECUTED = "GameSearchExecuted"
    GAME_POPULAR_REQUESTED = "GamePopularRequested"
    RECOMMENDATIONS_GENERATED = "GameRecommendationsGenerated"
    RECOMMENDATIONS_FALLBACK_POPULAR = "GameRecommendationsFallbackPopular"

    PROCESSED_SUFFIX = "Processed"

    @classmethod
    def processed(cls, event_type: str) -> str:
        """Type tag of the event recorded when the worker handles ``event_type``."""
        return f"{event_type}{cls.PROCESSED_SUFFIX}"


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


# ==============================================================================
# DOMAIN EVENT
# ==============================================================================


class DomainEvent(BaseModel):
    """
    Immutable event log record.

    ``sequence`` orders events within one aggregate; the event store assigns
    it on append, so events built with ``create()`` carry the placeholder 1.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    aggregate_id: str
    type: str
    timestamp: datetime = Field(default_factory=utcnow)
    sequence: int = Field(default=1, ge=1)
    payload: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def create(
        cls,
        aggregate_id: str,
        type: str,
        payload: Optional[Dict[str, Any]] = None,
    ) -> "DomainEvent":
        """
        Build a new event for ``aggregate_id``.

        Raises:
            ValueError: Empty type tag or aggregate id
        """
        if not type or not type.strip():
            raise ValueError("Domain event type must be a non-empty string")
        if not aggregate_id or not str(aggregate_id).strip():
            raise ValueError("Domain event aggregate_id must be a non-empty string")

        return cls(aggregate_id=str(aggregate_id), type=type, payload=dict(payload or {}))


# ==============================================================================
# QUEUE ENVELOPE
# ==============================================================================


class GameEventMessage(BaseModel):
    """
    Queue envelope published by the services and consumed by the worker.

    Field names are snake_case in Python and camelCase on the wire.
    Lengths are capped so the marker row and the "<type>Processed" event
    always fit their columns; longer values fail decoding instead.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    event_type: str = Field(
        alias="eventType",
        min_length=1,
        max_length=EVENT_TYPE_MAX_LENGTH - len(EventType.PROCESSED_SUFFIX),
    )
    subject_id: str = Field(alias="subjectId", min_length=1, max_length=SUBJECT_ID_MAX_LENGTH)
    actor_id: str = Field(alias="actorId")
    timestamp: datetime
    data: Optional[Dict[str, Any]] = None

    @field_validator("event_type", "subject_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("must not be blank")
        return value

    def to_json(self) -> str:
        """Serialise to the canonical wire encoding."""
        return self.model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, body: str, message_id: Optional[str] = None) -> "GameEventMessage":
        """
        Decode a queue message body.

        Raises:
            MalformedMessageError: Body is not JSON or not a valid envelope
        """
        try:
            return cls.model_validate_json(body)
        except ValidationError as e:
            raise MalformedMessageError(
                f"Invalid event envelope: {e.error_count()} validation error(s)",
                message_id=message_id,
            ) from e


# ==============================================================================
# RECEIVED MESSAGE
# ==============================================================================


@dataclass(frozen=True)
class ReceivedMessage:
    """
    One delivery of a queue message.

    Attributes:
        message_id: Queue-assigned delivery identifier (idempotency key)
        receipt_handle: Handle valid for deleting this delivery only
        body: Raw message body
        receive_count: How many times the queue has handed this message out
    """

    message_id: str
    receipt_handle: str
    body: str
    receive_count: int = 1
