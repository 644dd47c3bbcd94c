"""
Shared Pipeline Configuration

Settings common to the events worker and the request-handling side: AWS
access, PostgreSQL, logging and the event log failure policy. Service
configs in ``consumer/config.py`` and ``producer/config.py`` extend
``PipelineSettings``.

CONFIGURATION SOURCES (priority order):
1. Constructor arguments / CLI overrides
2. Environment variables
3. .env file (loaded by python-dotenv)
4. Default values

QUEUE URL RESOLUTION:
Queue URLs are not plain settings. They go through ``QueueUrlResolver``,
an ordered list of lookups where the first non-empty answer wins:
1. explicit setting (e.g. SQS_GAMES_EVENTS_QUEUE_URL)
2. environment variable (e.g. GAMES_EVENTS_QUEUE_URL)
3. SSM Parameter Store (e.g. /fcg/GAMES_EVENTS_QUEUE_URL), only outside
   development or when USE_SSM=true
"""

import logging
import os
from typing import Callable, List, Literal, Optional, Sequence, Tuple

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

from games_pipeline.shared.errors import QueueUrlNotConfiguredError

load_dotenv()

logger = logging.getLogger(__name__)

# A lookup returns a value or None when its source has nothing to say
Lookup = Callable[[], Optional[str]]


class PipelineSettings(BaseSettings):
    """
    Settings shared by every pipeline service.

    Attributes:
        environment: Deployment environment; "development" disables SSM lookups
        use_ssm: Force SSM lookups even in development
        aws_region: Region for SQS and SSM clients
        sqs_service_url: Endpoint override (LocalStack or another emulator)
        postgres_*: Event log / catalog database
        event_log_policy: "strict" aborts the request when the event log
            append fails, "best_effort" logs and continues
    """

    # === ENVIRONMENT ===
    environment: str = Field(
        default="development",
        description="Deployment environment (development, staging, production)",
    )

    use_ssm: bool = Field(
        default=False,
        description="Read remote parameters from SSM even in development",
    )

    # === AWS ===
    aws_region: str = Field(
        default="us-east-1",
        description="AWS region for SQS and SSM",
    )

    aws_access_key_id: Optional[str] = Field(
        default=None,
        description="Static access key (optional, default credential chain otherwise)",
    )

    aws_secret_access_key: Optional[str] = Field(
        default=None,
        description="Static secret key (optional)",
    )

    sqs_service_url: Optional[str] = Field(
        default=None,
        description="SQS endpoint override, e.g. http://localhost:4566 for LocalStack",
    )

    # === DATABASE ===
    postgres_host: str = Field(default="localhost", description="PostgreSQL host")

    postgres_port: int = Field(
        default=5432,
        ge=1,
        le=65535,
        description="PostgreSQL port",
    )

    postgres_db: str = Field(default="games", description="PostgreSQL database name")

    postgres_user: str = Field(default="postgres", description="PostgreSQL username")

    postgres_password: str = Field(default="postgres", description="PostgreSQL password")

    db_pool_size: int = Field(
        default=5,
        ge=1,
        le=20,
        description="SQLAlchemy connection pool size",
    )

    # === EVENT LOG ===
    event_log_policy: Literal["strict", "best_effort"] = Field(
        default="strict",
        description="What to do when an event log append fails",
    )

    # === LOGGING ===
    log_level: str = Field(default="INFO", description="Logging level")

    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format (json or text)",
    )

    class Config:
        """Pydantic configuration."""

        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @property
    def use_remote_parameters(self) -> bool:
        """Whether SSM Parameter Store takes part in lookups."""
        return self.use_ssm or self.environment.lower() != "development"

    def get_database_url(self) -> str:
        """Get SQLAlchemy database URL."""
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    def get_boto3_client_kwargs(self) -> dict:
        """
        Keyword arguments for ``boto3.client(...)``.

        With a service URL (emulator) and no explicit keys, dummy "test"
        credentials are used so LocalStack accepts the requests.
        """
        kwargs = {"region_name": self.aws_region}

        if self.sqs_service_url:
            kwargs["endpoint_url"] = self.sqs_service_url
            kwargs["aws_access_key_id"] = self.aws_access_key_id or "test"
            kwargs["aws_secret_access_key"] = self.aws_secret_access_key or "test"
        elif self.aws_access_key_id and self.aws_secret_access_key:
            kwargs["aws_access_key_id"] = self.aws_access_key_id
            kwargs["aws_secret_access_key"] = self.aws_secret_access_key

        return kwargs


# ==============================================================================
# QUEUE URL RESOLUTION
# ==============================================================================


class QueueUrlResolver:
    """
    Resolve a queue URL from an ordered list of named lookups.

    Example:
        >>> resolver = QueueUrlResolver("games-events", [
        ...     ("setting", lambda: config.sqs_games_events_queue_url),
        ...     ("environment", lambda: os.environ.get("GAMES_EVENTS_QUEUE_URL")),
        ... ])
        >>> resolver.resolve()
        'https://sqs.us-east-1.amazonaws.com/123456789012/games-events'
    """

    def __init__(self, queue_name: str, lookups: Sequence[Tuple[str, Lookup]]):
        self.queue_name = queue_name
        self.lookups: List[Tuple[str, Lookup]] = list(lookups)

    def resolve(self) -> str:
        """
        Return the first non-empty value.

        Raises:
            QueueUrlNotConfiguredError: No lookup produced a value
        """
        for source, lookup in self.lookups:
            value = lookup()
            if value and value.strip():
                logger.debug(
                    "Queue URL resolved",
                    extra={"queue": self.queue_name, "source": source},
                )
                return value.strip()

        sources = ", ".join(source for source, _ in self.lookups) or "none"
        raise QueueUrlNotConfiguredError(
            f"Queue URL for '{self.queue_name}' not found (tried: {sources})"
        )


def build_queue_url_resolver(
    settings: PipelineSettings,
    queue_name: str,
    explicit_value: Optional[str],
    env_var: str,
    ssm_parameter: Optional[str],
    ssm_lookup: Optional[Callable[[str], Optional[str]]] = None,
) -> QueueUrlResolver:
    """
    Build the standard explicit → environment → SSM resolver for a queue.

    Args:
        settings: Pipeline settings (decides whether SSM is consulted)
        queue_name: Name used in logs and errors
        explicit_value: Value from the service config, if any
        env_var: Environment variable to read
        ssm_parameter: SSM parameter name, or None to skip SSM entirely
        ssm_lookup: Function reading one SSM parameter; defaults to a boto3
            SSM client built from ``settings``
    """
    lookups: List[Tuple[str, Lookup]] = [
        ("setting", lambda: explicit_value),
        ("environment", lambda: os.environ.get(env_var)),
    ]

    if ssm_parameter and settings.use_remote_parameters:
        if ssm_lookup is None:
            from games_pipeline.shared.sqs import SsmParameterReader

            ssm_lookup = SsmParameterReader(settings).get

        lookups.append(("ssm", lambda: ssm_lookup(ssm_parameter)))

    return QueueUrlResolver(queue_name, lookups)
