"""
Pytest Configuration and Shared Fixtures

Shared fixtures for the games pipeline tests. Unit tests run against the
in-memory fakes in ``tests/fakes.py``; integration tests use testcontainers
to start a real PostgreSQL (and LocalStack for SQS) in Docker.

FIXTURE SCOPES:
- session: containers (started once, shared across all tests)
- function: database schema, configs and fakes (fresh for each test)
"""

import os
from typing import Generator, Optional

import pytest
from testcontainers.localstack import LocalStackContainer
from testcontainers.postgres import PostgresContainer

from games_pipeline.consumer.config import ConsumerConfig
from games_pipeline.shared.config import PipelineSettings
from games_pipeline.shared.database import DatabaseManager
from games_pipeline.shared.events import GameEventMessage, ReceivedMessage
from games_pipeline.shared.models import Base
from tests.fakes import (
    GAME_ID,
    USER_ID,
    FakeQueue,
    InMemoryEventStore,
    InMemoryProcessingStore,
)


# ==============================================================================
# POSTGRESQL FIXTURES
# ==============================================================================


@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """PostgreSQL testcontainer for the entire test session."""
    with PostgresContainer("postgres:15") as postgres:
        postgres.get_connection_url()
        yield postgres


@pytest.fixture(scope="function")
def db_manager(postgres_container) -> Generator[DatabaseManager, None, None]:
    """
    DatabaseManager with a fresh schema for each test.

    Creates all tables before the test and drops them afterwards.
    """
    settings = PipelineSettings(db_pool_size=5)
    manager = DatabaseManager(settings, database_url=postgres_container.get_connection_url())
    Base.metadata.create_all(manager.engine)

    try:
        yield manager
    finally:
        Base.metadata.drop_all(manager.engine)
        manager.close()


# ==============================================================================
# SQS FIXTURES
# ==============================================================================


@pytest.fixture(scope="session")
def localstack_container() -> Generator[LocalStackContainer, None, None]:
    """LocalStack testcontainer with SQS enabled."""
    with LocalStackContainer(image="localstack/localstack:3.8").with_services("sqs") as localstack:
        yield localstack


# ==============================================================================
# CONFIG FIXTURES
# ==============================================================================


@pytest.fixture
def consumer_config():
    """ConsumerConfig with zero waits so loop tests never sleep."""
    return ConsumerConfig(
        environment="development",
        sqs_games_events_queue_url="http://localhost:4566/000000000000/games-events",
        poll_interval_ms=0,
        error_backoff_ms=0,
        wait_time_seconds=0,
        max_receive_count=3,
    )


# ==============================================================================
# MESSAGE FIXTURES
# ==============================================================================


@pytest.fixture
def game_started_body() -> str:
    """Wire body of a GameStarted envelope."""
    return (
        '{"eventType": "GameStarted", "subjectId": "%s", "actorId": "%s", '
        '"timestamp": "2025-01-10T14:30:00+00:00", "data": {"GameName": "Hollow Knight"}}'
        % (GAME_ID, USER_ID)
    )


@pytest.fixture
def make_message():
    """Factory building ReceivedMessage deliveries."""

    def _make(
        message_id: str = "msg-1",
        event_type: str = "GameStarted",
        subject_id: str = GAME_ID,
        actor_id: str = USER_ID,
        body: Optional[str] = None,
        receive_count: int = 1,
    ) -> ReceivedMessage:
        if body is None:
            body = GameEventMessage(
                event_type=event_type,
                subject_id=subject_id,
                actor_id=actor_id,
                timestamp="2025-01-10T14:30:00+00:00",
                data={"GameName": "Hollow Knight"},
            ).to_json()
        return ReceivedMessage(
            message_id=message_id,
            receipt_handle=f"rh-{message_id}-{receive_count}",
            body=body,
            receive_count=receive_count,
        )

    return _make


# ==============================================================================
# FAKES
# ==============================================================================


@pytest.fixture
def processing_store():
    """In-memory processing store knowing one game."""
    return InMemoryProcessingStore(game_ids=[GAME_ID])


@pytest.fixture
def fake_queue():
    return FakeQueue()


@pytest.fixture
def event_store():
    return InMemoryEventStore()


# ==============================================================================
# TEST ENVIRONMENT CONFIGURATION
# ==============================================================================


def pytest_configure(config):
    """
    Pytest hook called during test configuration.

    Sets up test environment variables and markers.
    """
    # SSM lookups stay off unless a test opts in
    os.environ["ENVIRONMENT"] = "development"
    os.environ["LOG_LEVEL"] = "DEBUG"

    config.addinivalue_line(
        "markers", "integration: mark test as integration test (requires containers)"
    )
    config.addinivalue_line("markers", "slow: mark test as slow (takes more than 5 seconds)")
    config.addinivalue_line("markers", "unit: mark test as unit test (no external dependencies)")
