"""
Consumer Configuration Module

Settings for the games events worker: which queue to read, how to poll it
and when to give up on a message that never decodes. Shared AWS, database
and logging settings come from ``PipelineSettings``.
"""

from typing import Optional

from pydantic import Field

from games_pipeline.shared.config import (
    PipelineSettings,
    QueueUrlResolver,
    build_queue_url_resolver,
)

GAMES_EVENTS_QUEUE_ENV = "GAMES_EVENTS_QUEUE_URL"
GAMES_EVENTS_SSM_PARAMETER = "/fcg/GAMES_EVENTS_QUEUE_URL"


class ConsumerConfig(PipelineSettings):
    """
    Events worker configuration with validation.

    Receive parameters map directly onto SQS ReceiveMessage arguments.
    """

    # === QUEUE ===
    sqs_games_events_queue_url: Optional[str] = Field(
        default=None,
        description="Explicit games events queue URL (highest priority)",
    )

    games_events_ssm_parameter: str = Field(
        default=GAMES_EVENTS_SSM_PARAMETER,
        description="SSM parameter holding the games events queue URL",
    )

    # === RECEIVE ===
    max_messages: int = Field(
        default=10,
        ge=1,
        le=10,
        description="Messages per ReceiveMessage call",
    )

    wait_time_seconds: int = Field(
        default=20,
        ge=0,
        le=20,
        description="Long-poll wait time",
    )

    visibility_timeout: int = Field(
        default=60,
        ge=0,
        le=43200,
        description="Seconds a received message stays hidden",
    )

    # === LOOP TIMING ===
    poll_interval_ms: int = Field(
        default=5000,
        ge=0,
        le=60000,
        description="Sleep after an empty receive",
    )

    error_backoff_ms: int = Field(
        default=5000,
        ge=0,
        le=60000,
        description="Sleep after a failed receive",
    )

    # === POISON MESSAGES ===
    max_receive_count: int = Field(
        default=5,
        ge=1,
        le=1000,
        description="Receive count after which an undecodable message is discarded",
    )

    def queue_url_resolver(self, ssm_lookup=None) -> QueueUrlResolver:
        """Explicit setting → GAMES_EVENTS_QUEUE_URL → SSM resolver."""
        return build_queue_url_resolver(
            self,
            queue_name="games-events",
            explicit_value=self.sqs_games_events_queue_url,
            env_var=GAMES_EVENTS_QUEUE_ENV,
            ssm_parameter=self.games_events_ssm_parameter,
            ssm_lookup=ssm_lookup,
        )


def load_config() -> ConsumerConfig:
    """Load and validate consumer configuration."""
    return ConsumerConfig()
