"""
Unit Tests for the Command-Line Entry Points

Covers argument parsing and the worker's startup failures that happen
before any database or queue connection.
"""

import pytest
from botocore.exceptions import ClientError, NoCredentialsError

from games_pipeline.consumer import main as worker_main
from games_pipeline.consumer.config import ConsumerConfig
from games_pipeline.producer import main as simulator_main
from games_pipeline.shared.config import QueueUrlResolver


@pytest.mark.unit
def test_worker_parse_args_defaults():
    """Test the worker CLI leaves overrides unset by default."""
    args = worker_main.parse_args([])

    assert args.log_level is None
    assert args.log_format is None
    assert args.create_tables is False


@pytest.mark.unit
def test_worker_parse_args_overrides():
    """Test the worker CLI accepts log overrides."""
    args = worker_main.parse_args(["--log-level", "WARNING", "--log-format", "text", "--create-tables"])

    assert args.log_level == "WARNING"
    assert args.log_format == "text"
    assert args.create_tables is True


@pytest.mark.unit
def test_worker_exits_when_queue_url_missing(monkeypatch):
    """Test a missing queue URL is fatal before the database is touched."""
    monkeypatch.delenv("SQS_GAMES_EVENTS_QUEUE_URL", raising=False)
    monkeypatch.delenv("GAMES_EVENTS_QUEUE_URL", raising=False)
    monkeypatch.setenv("ENVIRONMENT", "development")
    monkeypatch.delenv("USE_SSM", raising=False)

    def fail_init_database(*args, **kwargs):
        raise AssertionError("database must not be initialized")

    monkeypatch.setattr(worker_main, "init_database", fail_init_database)

    assert worker_main.main(["--log-format", "text"]) == 1


@pytest.mark.unit
@pytest.mark.parametrize(
    "error",
    [
        NoCredentialsError(),
        ClientError({"Error": {"Code": "ThrottlingException", "Message": "Rate exceeded"}}, "GetParameter"),
    ],
)
def test_worker_exits_when_queue_url_lookup_fails(monkeypatch, error):
    """Test an SSM failure while resolving the queue URL exits with code 1."""

    def failing_lookup():
        raise error

    resolver = QueueUrlResolver("games-events", [("ssm", failing_lookup)])
    monkeypatch.setattr(ConsumerConfig, "queue_url_resolver", lambda self, ssm_lookup=None: resolver)

    def fail_init_database(*args, **kwargs):
        raise AssertionError("database must not be initialized")

    monkeypatch.setattr(worker_main, "init_database", fail_init_database)

    assert worker_main.main(["--log-format", "text"]) == 1


@pytest.mark.unit
def test_worker_exits_on_invalid_config(monkeypatch):
    """Test an invalid setting is reported and exits with code 1."""
    monkeypatch.setenv("MAX_MESSAGES", "50")

    assert worker_main.main([]) == 1


@pytest.mark.unit
def test_signal_handler_stops_consumer(monkeypatch):
    """Test SIGTERM asks the running consumer to stop."""

    class StubConsumer:
        stopped = False

        def stop(self):
            self.stopped = True

    stub = StubConsumer()
    monkeypatch.setattr(worker_main, "consumer_instance", stub)

    worker_main.signal_handler(15, None)

    assert stub.stopped is True


@pytest.mark.unit
def test_simulator_parse_args():
    """Test the simulator CLI parses rate, duration and seed options."""
    args = simulator_main.parse_args(["--rate", "20", "--duration", "5", "--seed", "7", "--seed-only"])

    assert args.rate == 20
    assert args.duration == 5
    assert args.seed == 7
    assert args.seed_only is True
