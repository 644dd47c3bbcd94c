"""
Games Events Worker - Main Entry Point

Command-line interface for the SQS games events consumer.

USAGE:
    python -m games_pipeline.consumer.main [options]

OPTIONS:
    --log-level      Logging level (DEBUG, INFO, WARNING, ERROR)
    --log-format     Log format (json or text)
    --create-tables  Create missing tables before polling
    --help           Show help message

STARTUP FAILURES (exit code 1, before any polling):
- configuration does not validate
- no queue URL from setting, environment or SSM (or the SSM call fails)
- database unreachable

GRACEFUL SHUTDOWN:
- SIGINT (Ctrl+C) and SIGTERM (docker stop / ECS task stop)
- Interrupts idle and backoff waits immediately
- Finishes the message in hand, abandons the rest of the batch
- Closes database connections and logs final metrics
"""

import argparse
import logging
import signal
import sys
from typing import Optional

from botocore.exceptions import BotoCoreError, ClientError

from games_pipeline.consumer.config import load_config
from games_pipeline.consumer.consumer import GameEventsConsumer
from games_pipeline.consumer.processor import MessageProcessor
from games_pipeline.consumer.store import SqlProcessingStore
from games_pipeline.shared.database import init_database
from games_pipeline.shared.errors import QueueUrlNotConfiguredError
from games_pipeline.shared.logger import setup_logger
from games_pipeline.shared.sqs import SqsMessageQueue, create_sqs_client

SERVICE_NAME = "games-events-worker"

# Global consumer instance for signal handlers
consumer_instance: Optional[GameEventsConsumer] = None


def signal_handler(signum: int, frame) -> None:
    """Handle SIGINT/SIGTERM by asking the consumer loop to stop."""
    signal_name = signal.Signals(signum).name

    logger = logging.getLogger(__name__)
    logger.info(f"Received {signal_name}, initiating graceful shutdown...")

    if consumer_instance:
        consumer_instance.stop()


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Games Events Worker (SQS consumer)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start worker with default settings
  python -m games_pipeline.consumer.main

  # Local run against LocalStack with readable logs
  SQS_SERVICE_URL=http://localhost:4566 \\
  GAMES_EVENTS_QUEUE_URL=http://localhost:4566/000000000000/games-events \\
  python -m games_pipeline.consumer.main --log-format text --create-tables

Environment Variables:
  SQS_GAMES_EVENTS_QUEUE_URL Explicit queue URL (highest priority)
  GAMES_EVENTS_QUEUE_URL     Queue URL (second priority)
  ENVIRONMENT                Non-"development" enables SSM lookup
  USE_SSM                    Force SSM lookup (/fcg/GAMES_EVENTS_QUEUE_URL)
  SQS_SERVICE_URL            SQS endpoint override (LocalStack)
  AWS_REGION                 Region (default: us-east-1)
  MAX_MESSAGES               Messages per receive, 1..10 (default: 10)
  POLL_INTERVAL_MS           Idle sleep (default: 5000)
  ERROR_BACKOFF_MS           Sleep after receive failure (default: 5000)
  MAX_RECEIVE_COUNT          Poison message threshold (default: 5)
  POSTGRES_HOST              Database host (default: localhost)
  POSTGRES_DB                Database name (default: games)
  LOG_LEVEL                  Logging level (default: INFO)
  LOG_FORMAT                 Log format: json or text (default: json)
        """,
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (overrides LOG_LEVEL env var)",
    )

    parser.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        help="Log output format (overrides LOG_FORMAT env var)",
    )

    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing database tables on startup",
    )

    return parser.parse_args(argv)


def main(argv=None) -> int:
    """
    Main entry point for the games events worker.

    Returns:
        Exit code (0 = clean shutdown, 1 = startup or fatal error)
    """
    global consumer_instance

    args = parse_args(argv)

    try:
        config = load_config()
    except Exception as e:
        print(f"ERROR: Failed to load configuration: {e}", file=sys.stderr)
        return 1

    if args.log_level:
        config.log_level = args.log_level
    if args.log_format:
        config.log_format = args.log_format

    logger = setup_logger(
        name="games_pipeline",
        service_name=SERVICE_NAME,
        log_level=config.log_level,
        log_format=config.log_format,
    )

    logger.info(
        "Starting Games Events Worker",
        extra={
            "environment": config.environment,
            "aws_region": config.aws_region,
            "sqs_service_url": config.sqs_service_url,
            "database_host": config.postgres_host,
            "database_name": config.postgres_db,
        },
    )

    try:
        queue_url = config.queue_url_resolver().resolve()
    except QueueUrlNotConfiguredError as e:
        logger.critical("Games events queue URL not configured", extra={"error": str(e)})
        return 1
    except (BotoCoreError, ClientError):
        logger.critical("Games events queue URL lookup failed", exc_info=True)
        return 1

    try:
        db_manager = init_database(config, create_tables=args.create_tables)
    except Exception:
        logger.error("Failed to initialize database", exc_info=True)
        return 1

    queue = SqsMessageQueue(create_sqs_client(config), queue_url)
    processor = MessageProcessor(SqlProcessingStore(db_manager))
    consumer_instance = GameEventsConsumer(config, queue, processor)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)
    logger.info("Signal handlers registered (SIGINT, SIGTERM)")

    try:
        logger.info("Polling queue", extra={"queue_url": queue_url})
        consumer_instance.start()
        return 0
    except Exception:
        logger.error("Fatal error in consumer", exc_info=True)
        return 1
    finally:
        db_manager.close()


if __name__ == "__main__":
    sys.exit(main())
