"""
End-to-End Tests for the Games Events Pipeline

Complete flow through real infrastructure:
GameService → QueuePublisher → SQS (LocalStack) → GameEventsConsumer →
MessageProcessor → PostgreSQL

TEST STRATEGY:
- Each test creates its own SQS queue on LocalStack
- Request side publishes through the fire-and-forget publisher
- Worker side is driven with poll_once() until the queue is drained
- Verify play_count, processed events and queue emptiness

DEPENDENCIES:
- testcontainers-python (PostgreSQL + LocalStack)
- boto3 (SQS)
"""

import time
import uuid

import pytest

from games_pipeline.catalog.recommendations import RecommendationEngine
from games_pipeline.catalog.repositories import GameRepository, PurchaseRepository
from games_pipeline.catalog.service import GameService
from games_pipeline.consumer.config import ConsumerConfig
from games_pipeline.consumer.consumer import GameEventsConsumer
from games_pipeline.consumer.processor import MessageProcessor, ProcessOutcome
from games_pipeline.consumer.store import SqlProcessingStore
from games_pipeline.producer.config import ProducerConfig
from games_pipeline.producer.publisher import QueuePublisher, sqs_queue_factory
from games_pipeline.shared.event_log import EventLogAppender, SqlEventStore
from games_pipeline.shared.events import GameEventMessage
from games_pipeline.shared.models import Game
from games_pipeline.shared.sqs import SqsMessageQueue, create_sqs_client
from tests.fakes import make_game

GAME_ID = "g-hollow-knight"
USER_ID = "u-1"


@pytest.fixture
def queue_url(localstack_container):
    """Fresh SQS queue for one test."""
    settings = ConsumerConfig(sqs_service_url=localstack_container.get_url())
    client = create_sqs_client(settings)
    response = client.create_queue(QueueName=f"games-events-{uuid.uuid4().hex[:12]}")
    yield response["QueueUrl"]
    client.delete_queue(QueueUrl=response["QueueUrl"])


@pytest.fixture
def consumer_settings(localstack_container, queue_url):
    return ConsumerConfig(
        sqs_service_url=localstack_container.get_url(),
        sqs_games_events_queue_url=queue_url,
        wait_time_seconds=1,
        visibility_timeout=30,
        poll_interval_ms=0,
        error_backoff_ms=100,
        max_receive_count=2,
    )


@pytest.fixture
def sqs_queue(consumer_settings, queue_url):
    return SqsMessageQueue(create_sqs_client(consumer_settings), queue_url)


@pytest.fixture
def seeded_db(db_manager):
    with db_manager.get_session() as session:
        session.add(make_game(GAME_ID, "Hollow Knight", category="Metroidvania"))
    return db_manager


@pytest.fixture
def worker(consumer_settings, sqs_queue, seeded_db):
    processor = MessageProcessor(SqlProcessingStore(seeded_db))
    return GameEventsConsumer(consumer_settings, sqs_queue, processor)


def drain(worker, expected, timeout=20.0):
    """Poll until ``expected`` messages were processed or skipped."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        worker.poll_once()
        if worker.messages_processed + worker.messages_skipped >= expected:
            return
    pytest.fail(f"Only {worker.messages_processed} messages processed before timeout")


def play_count(db_manager):
    with db_manager.get_session() as session:
        return session.get(Game, GAME_ID).play_count


# ==============================================================================
# END-TO-END TESTS
# ==============================================================================


@pytest.mark.integration
@pytest.mark.slow
def test_start_game_end_to_end(localstack_container, queue_url, seeded_db, worker, sqs_queue):
    """Test start_game → SQS → worker increments play_count exactly once."""
    producer_settings = ProducerConfig(
        sqs_service_url=localstack_container.get_url(),
        sqs_games_events_queue_url=queue_url,
    )
    publisher = QueuePublisher(
        producer_settings.games_events_resolver(), sqs_queue_factory(producer_settings)
    )
    games = GameRepository(seeded_db)
    service = GameService(
        games,
        RecommendationEngine(games, PurchaseRepository(seeded_db)),
        EventLogAppender(SqlEventStore(seeded_db)),
        publisher,
    )

    try:
        service.start_game(GAME_ID, USER_ID)
        service.start_game(GAME_ID, "u-2")
        service.queue_game(GAME_ID, USER_ID)
    finally:
        publisher.close(wait=True)

    assert publisher.messages_sent == 3

    drain(worker, expected=3)

    assert play_count(seeded_db) == 2
    types = [e.type for e in SqlEventStore(seeded_db).list_for_aggregate(GAME_ID)]
    assert types.count("GameStarted") == 2
    assert types.count("GameStartedProcessed") == 2
    assert types.count("GameQueuedProcessed") == 1
    assert sqs_queue.receive(10, 1, 30) == []


@pytest.mark.integration
@pytest.mark.slow
def test_redelivery_after_visibility_timeout(seeded_db, worker, sqs_queue):
    """Test a message processed but not deleted is absorbed on redelivery."""
    body = GameEventMessage(
        event_type="GameStarted",
        subject_id=GAME_ID,
        actor_id=USER_ID,
        timestamp="2025-01-10T14:30:00+00:00",
    ).to_json()
    sqs_queue.send(body)

    # Simulate a crash between commit and delete
    first = sqs_queue.receive(max_messages=1, wait_time_seconds=5, visibility_timeout=1)
    assert len(first) == 1
    processor = MessageProcessor(SqlProcessingStore(seeded_db))
    assert processor.process(first[0]) is ProcessOutcome.PROCESSED

    time.sleep(2)
    drain(worker, expected=1)

    assert worker.messages_skipped == 1
    assert play_count(seeded_db) == 1
    assert sqs_queue.receive(10, 1, 30) == []


@pytest.mark.integration
@pytest.mark.slow
def test_poison_message_discarded_after_max_receives(worker, sqs_queue):
    """Test an undecodable body is deleted once it reaches max_receive_count."""
    sqs_queue.send("this is not an envelope")

    # First delivery: left on the queue
    first = sqs_queue.receive(max_messages=1, wait_time_seconds=5, visibility_timeout=1)
    assert len(first) == 1
    time.sleep(2)

    deadline = time.time() + 20
    while worker.messages_discarded == 0 and time.time() < deadline:
        worker.poll_once()

    assert worker.messages_discarded == 1
    assert sqs_queue.receive(10, 1, 30) == []
