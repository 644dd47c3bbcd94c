"""
Unit Tests for QueuePublisher and the boto3 Adapters

QueuePublisher runs against FakeQueue; SqsMessageQueue and
SsmParameterReader run against real boto3 clients with botocore's Stubber,
so request parameters are validated against the service models.
"""

import json
from datetime import datetime, timezone

import boto3
import pytest
from botocore.stub import Stubber

from games_pipeline.producer.publisher import QueuePublisher
from games_pipeline.shared.config import PipelineSettings, QueueUrlResolver
from games_pipeline.shared.errors import QueueTransportError
from games_pipeline.shared.sqs import SqsMessageQueue, SsmParameterReader
from tests.fakes import GAME_ID, USER_ID

QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123456789012/games-events"
FIXED_NOW = datetime(2025, 1, 10, 14, 30, tzinfo=timezone.utc)


def static_resolver(value):
    return QueueUrlResolver("games-events", [("setting", lambda: value)])


@pytest.fixture
def publisher(fake_queue):
    factory_calls = []

    def factory(queue_url):
        factory_calls.append(queue_url)
        return fake_queue

    publisher = QueuePublisher(
        static_resolver(QUEUE_URL), factory, max_workers=2, clock=lambda: FIXED_NOW
    )
    publisher.factory_calls = factory_calls
    yield publisher
    publisher.close()


# ==============================================================================
# QUEUE PUBLISHER TESTS
# ==============================================================================


@pytest.mark.unit
def test_publish_sends_wire_envelope(publisher, fake_queue):
    """Test publish() sends the camelCase envelope and returns the MessageId."""
    future = publisher.publish("GameStarted", GAME_ID, USER_ID, {"GameName": "Celeste"})

    assert future.result(timeout=5) == "sent-1"
    body = json.loads(fake_queue.sent[0])
    assert body["eventType"] == "GameStarted"
    assert body["subjectId"] == GAME_ID
    assert body["actorId"] == USER_ID
    assert body["data"] == {"GameName": "Celeste"}
    assert body["timestamp"].startswith("2025-01-10T14:30:00")
    assert publisher.messages_sent == 1


@pytest.mark.unit
def test_queue_url_resolved_once(publisher, fake_queue):
    """Test the resolved queue is cached across publishes."""
    for _ in range(3):
        publisher.publish("GameQueued", GAME_ID, USER_ID).result(timeout=5)

    assert publisher.factory_calls == [QUEUE_URL]
    assert len(fake_queue.sent) == 3


@pytest.mark.unit
def test_missing_queue_url_skips_without_raising(fake_queue):
    """Test an unconfigured queue drops the message with a warning."""
    publisher = QueuePublisher(static_resolver(None), lambda url: fake_queue)

    try:
        future = publisher.publish("GameStarted", GAME_ID, USER_ID)
        assert future.result(timeout=5) is None
    finally:
        publisher.close()

    assert fake_queue.sent == []
    assert publisher.messages_skipped == 1
    assert publisher.messages_failed == 0


@pytest.mark.unit
def test_missing_queue_url_is_retried_on_next_publish(fake_queue):
    """Test a failed resolution is not cached."""
    answers = iter([None, QUEUE_URL])
    resolver = QueueUrlResolver("games-events", [("setting", lambda: next(answers))])
    publisher = QueuePublisher(resolver, lambda url: fake_queue)

    try:
        assert publisher.publish("GameStarted", GAME_ID, USER_ID).result(timeout=5) is None
        assert publisher.publish("GameStarted", GAME_ID, USER_ID).result(timeout=5) == "sent-1"
    finally:
        publisher.close()


@pytest.mark.unit
def test_transport_failure_is_counted_not_raised(publisher, fake_queue):
    """Test a SendMessage failure never reaches the caller."""
    fake_queue.fail_send = True

    future = publisher.publish("GameStarted", GAME_ID, USER_ID)

    assert future.result(timeout=5) is None
    assert publisher.messages_failed == 1


@pytest.mark.unit
def test_invalid_envelope_not_scheduled(publisher, fake_queue):
    """Test an empty subject id is rejected synchronously."""
    assert publisher.publish("GameStarted", "", USER_ID) is None
    assert publisher.messages_failed == 1


@pytest.mark.unit
def test_publish_after_close_is_dropped(fake_queue):
    """Test a closed publisher drops messages and close() is idempotent."""
    publisher = QueuePublisher(static_resolver(QUEUE_URL), lambda url: fake_queue)
    publisher.close()
    publisher.close()

    assert publisher.publish("GameStarted", GAME_ID, USER_ID) is None
    assert fake_queue.sent == []


# ==============================================================================
# SQS ADAPTER TESTS
# ==============================================================================


@pytest.fixture
def sqs_client():
    return boto3.client(
        "sqs",
        region_name="us-east-1",
        aws_access_key_id="test",
        aws_secret_access_key="test",
    )


@pytest.mark.unit
def test_sqs_receive_maps_messages(sqs_client):
    """Test ReceiveMessage results become ReceivedMessage objects."""
    queue = SqsMessageQueue(sqs_client, QUEUE_URL)

    with Stubber(sqs_client) as stubber:
        stubber.add_response(
            "receive_message",
            {
                "Messages": [
                    {
                        "MessageId": "m-1",
                        "ReceiptHandle": "rh-1",
                        "Body": "{}",
                        "Attributes": {"ApproximateReceiveCount": "4"},
                    }
                ]
            },
            {
                "QueueUrl": QUEUE_URL,
                "MaxNumberOfMessages": 10,
                "WaitTimeSeconds": 20,
                "VisibilityTimeout": 60,
                "MessageSystemAttributeNames": ["ApproximateReceiveCount"],
            },
        )

        messages = queue.receive(max_messages=10, wait_time_seconds=20, visibility_timeout=60)

    assert len(messages) == 1
    assert messages[0].message_id == "m-1"
    assert messages[0].receipt_handle == "rh-1"
    assert messages[0].receive_count == 4


@pytest.mark.unit
def test_sqs_receive_empty(sqs_client):
    """Test a response without Messages is an empty batch."""
    queue = SqsMessageQueue(sqs_client, QUEUE_URL)

    with Stubber(sqs_client) as stubber:
        stubber.add_response("receive_message", {})
        assert queue.receive(1, 0, 30) == []


@pytest.mark.unit
def test_sqs_send_and_delete(sqs_client):
    """Test send() returns the MessageId and delete() passes the receipt handle."""
    queue = SqsMessageQueue(sqs_client, QUEUE_URL)

    with Stubber(sqs_client) as stubber:
        stubber.add_response(
            "send_message",
            {"MessageId": "m-9", "MD5OfMessageBody": "d41d8cd98f00b204e9800998ecf8427e"},
            {"QueueUrl": QUEUE_URL, "MessageBody": "hello"},
        )
        stubber.add_response(
            "delete_message", {}, {"QueueUrl": QUEUE_URL, "ReceiptHandle": "rh-9"}
        )

        assert queue.send("hello") == "m-9"
        queue.delete("rh-9")
        stubber.assert_no_pending_responses()


@pytest.mark.unit
@pytest.mark.parametrize("operation", ["receive_message", "delete_message", "send_message"])
def test_sqs_client_errors_become_transport_errors(sqs_client, operation):
    """Test botocore ClientErrors are re-raised as QueueTransportError."""
    queue = SqsMessageQueue(sqs_client, QUEUE_URL)
    calls = {
        "receive_message": lambda: queue.receive(1, 0, 30),
        "delete_message": lambda: queue.delete("rh"),
        "send_message": lambda: queue.send("body"),
    }

    with Stubber(sqs_client) as stubber:
        stubber.add_client_error(operation, service_error_code="ThrottlingException")

        with pytest.raises(QueueTransportError):
            calls[operation]()


# ==============================================================================
# SSM READER TESTS
# ==============================================================================


@pytest.fixture
def ssm_client():
    return boto3.client(
        "ssm",
        region_name="us-east-1",
        aws_access_key_id="test",
        aws_secret_access_key="test",
    )


@pytest.mark.unit
def test_ssm_get_returns_decrypted_value(ssm_client):
    """Test get() reads Parameter.Value with decryption."""
    reader = SsmParameterReader(PipelineSettings(), client=ssm_client)

    with Stubber(ssm_client) as stubber:
        stubber.add_response(
            "get_parameter",
            {"Parameter": {"Name": "/fcg/GAMES_EVENTS_QUEUE_URL", "Value": QUEUE_URL}},
            {"Name": "/fcg/GAMES_EVENTS_QUEUE_URL", "WithDecryption": True},
        )

        assert reader.get("/fcg/GAMES_EVENTS_QUEUE_URL") == QUEUE_URL


@pytest.mark.unit
@pytest.mark.parametrize(
    "code", ["ParameterNotFound", "AccessDeniedException", "UnrecognizedClientException"]
)
def test_ssm_missing_or_forbidden_is_none(ssm_client, code):
    """Test absent or forbidden parameters read as None."""
    reader = SsmParameterReader(PipelineSettings(), client=ssm_client)

    with Stubber(ssm_client) as stubber:
        stubber.add_client_error("get_parameter", service_error_code=code)

        assert reader.get("/fcg/PAYMENTS_QUEUE_URL") is None


@pytest.mark.unit
def test_ssm_other_errors_propagate(ssm_client):
    """Test unexpected SSM failures are not masked."""
    reader = SsmParameterReader(PipelineSettings(), client=ssm_client)

    with Stubber(ssm_client) as stubber:
        stubber.add_client_error("get_parameter", service_error_code="InternalServerError")

        with pytest.raises(Exception) as exc_info:
            reader.get("/fcg/PAYMENTS_QUEUE_URL")

    assert "InternalServerError" in str(exc_info.value)
