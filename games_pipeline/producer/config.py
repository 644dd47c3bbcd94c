"""
Producer Configuration Module

Settings for the request-handling side: the queues it publishes to, the
background publisher pool, and the demo traffic simulator.

CONFIGURATION SOURCES (priority order):
1. Environment variables (highest priority)
2. .env file (loaded by python-dotenv)
3. Default values (fallback)

Queue URLs are resolved lazily by ``QueueUrlResolver`` when the first
message is published, so a missing URL degrades publishing instead of
failing the request path.
"""

from typing import Optional

from pydantic import Field

from games_pipeline.consumer.config import GAMES_EVENTS_QUEUE_ENV, GAMES_EVENTS_SSM_PARAMETER
from games_pipeline.shared.config import (
    PipelineSettings,
    QueueUrlResolver,
    build_queue_url_resolver,
)

PAYMENTS_QUEUE_ENV = "PAYMENTS_QUEUE_URL"
PAYMENTS_SSM_PARAMETER = "/fcg/PAYMENTS_QUEUE_URL"


class ProducerConfig(PipelineSettings):
    """
    Producer-side configuration with validation.

    Attributes:
        sqs_games_events_queue_url: Explicit games events queue URL
        sqs_payments_queue_url: Explicit payments queue URL
        publish_max_workers: Threads sending queue messages in the background
        producer_rate: Simulated requests per second
        producer_duration: Simulation length in seconds (0 = until interrupted)
        mock_seed: Random seed for reproducible demo data

    Example:
        >>> config = ProducerConfig()
        >>> config.publish_max_workers
        4
    """

    # === QUEUES ===
    sqs_games_events_queue_url: Optional[str] = Field(
        default=None,
        description="Explicit games events queue URL (highest priority)",
    )

    sqs_payments_queue_url: Optional[str] = Field(
        default=None,
        description="Explicit payments queue URL (highest priority)",
    )

    games_events_ssm_parameter: str = Field(
        default=GAMES_EVENTS_SSM_PARAMETER,
        description="SSM parameter holding the games events queue URL",
    )

    payments_ssm_parameter: str = Field(
        default=PAYMENTS_SSM_PARAMETER,
        description="SSM parameter holding the payments queue URL",
    )

    # === PUBLISHER ===
    publish_max_workers: int = Field(
        default=4,
        ge=1,
        le=32,
        description="Background threads sending queue messages",
    )

    # === SIMULATOR ===
    producer_rate: int = Field(
        default=5,
        ge=1,
        le=1000,
        description="Simulated game requests per second (1-1000)",
    )

    producer_duration: int = Field(
        default=60,
        ge=0,
        description="Simulation duration in seconds (0 = run indefinitely)",
    )

    catalog_size: int = Field(
        default=50,
        ge=1,
        le=10000,
        description="Games to seed when the catalog is empty",
    )

    user_count: int = Field(
        default=20,
        ge=1,
        le=10000,
        description="Simulated users",
    )

    mock_seed: int = Field(
        default=42,
        description="Random seed for reproducible mock data generation",
    )

    def games_events_resolver(self, ssm_lookup=None) -> QueueUrlResolver:
        return build_queue_url_resolver(
            self,
            queue_name="games-events",
            explicit_value=self.sqs_games_events_queue_url,
            env_var=GAMES_EVENTS_QUEUE_ENV,
            ssm_parameter=self.games_events_ssm_parameter,
            ssm_lookup=ssm_lookup,
        )

    def payments_resolver(self, ssm_lookup=None) -> QueueUrlResolver:
        return build_queue_url_resolver(
            self,
            queue_name="payments",
            explicit_value=self.sqs_payments_queue_url,
            env_var=PAYMENTS_QUEUE_ENV,
            ssm_parameter=self.payments_ssm_parameter,
            ssm_lookup=ssm_lookup,
        )

    def display_config(self) -> str:
        """Human-readable configuration summary."""
        return f"""
Games Producer Configuration
============================
Environment: {self.environment} (SSM lookups: {'Yes' if self.use_remote_parameters else 'No'})
AWS Region: {self.aws_region}
SQS Service URL: {self.sqs_service_url or '(AWS default)'}

Publisher:
  Workers: {self.publish_max_workers}

Simulator:
  Rate: {self.producer_rate} requests/second
  Duration: {self.producer_duration} seconds {'(infinite)' if self.producer_duration == 0 else ''}
  Catalog size: {self.catalog_size}
  Users: {self.user_count}
  Seed: {self.mock_seed}

Event log policy: {self.event_log_policy}

Logging:
  Level: {self.log_level}
  Format: {self.log_format}
"""


def load_config() -> ProducerConfig:
    """Load and validate producer configuration."""
    return ProducerConfig()
