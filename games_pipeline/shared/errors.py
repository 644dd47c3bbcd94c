"""
Exception hierarchy for the games events pipeline.

ERROR TAXONOMY:
- QueueTransportError: queue unreachable/throttled → consumer backs off and retries
- MalformedMessageError: body is not a valid envelope → poison-message policy
- ProcessError: failure while applying a message → left for redelivery
- AppendError: event log storage unavailable → caller applies its policy
- QueueUrlNotConfiguredError: no queue URL from any source → fatal at worker startup
- GameNotFoundError: request referenced an unknown game
"""

from typing import Optional


class PipelineError(Exception):
    """Base class for all pipeline errors."""


class AppendError(PipelineError):
    """The event log could not store an event."""


class QueueTransportError(PipelineError):
    """A call to the message queue failed at the transport level."""


class QueueUrlNotConfiguredError(PipelineError):
    """None of the configured sources produced a queue URL."""


class ProcessError(PipelineError):
    """A received message could not be applied."""

    def __init__(self, message: str, message_id: Optional[str] = None):
        super().__init__(message)
        self.message_id = message_id


class MalformedMessageError(ProcessError):
    """A received message body is not a valid event envelope."""


class GameNotFoundError(PipelineError, LookupError):
    """The requested game does not exist in the catalog."""

    def __init__(self, game_id: str):
        super().__init__(f"Game not found: {game_id}")
        self.game_id = game_id
