"""
Games Traffic Simulator - Main Entry Point

Drives the request-handling services with simulated players so the whole
pipeline can be watched end to end:

    GameService.start_game / queue_game
        → domain_events (synchronous)
        → games-events SQS queue (fire-and-forget)
        → games events worker (python -m games_pipeline.consumer.main)

USAGE:
    python -m games_pipeline.producer.main [options]

On startup the catalog is seeded from MockDataGenerator when it is empty,
together with a purchase history so popularity and recommendations have
something to work with.
"""

import argparse
import signal
import sys
import threading
import time
from dataclasses import dataclass

from games_pipeline.catalog.recommendations import RecommendationEngine
from games_pipeline.catalog.repositories import GameRepository, PurchaseRepository
from games_pipeline.catalog.service import GameService, PurchaseService
from games_pipeline.producer.config import ProducerConfig, load_config
from games_pipeline.producer.mock_data import MockDataGenerator
from games_pipeline.producer.publisher import QueuePublisher, sqs_queue_factory
from games_pipeline.shared.database import DatabaseManager, init_database
from games_pipeline.shared.errors import AppendError, GameNotFoundError
from games_pipeline.shared.event_log import EventLogAppender, SqlEventStore
from games_pipeline.shared.logger import setup_logger
from games_pipeline.shared.models import Game, Purchase

SERVICE_NAME = "games-producer"

# Set by the signal handler, checked by the simulation loop
shutdown_event = threading.Event()


def signal_handler(signum, frame):
    """Stop the simulation loop on SIGINT/SIGTERM."""
    print(f"\nShutdown signal received ({signal.Signals(signum).name}), stopping...")
    shutdown_event.set()


@dataclass
class Services:
    games: GameService
    purchases: PurchaseService
    game_repository: GameRepository
    purchase_repository: PurchaseRepository
    games_publisher: QueuePublisher
    payments_publisher: QueuePublisher

    def close(self) -> None:
        self.games_publisher.close(wait=True)
        self.payments_publisher.close(wait=True)


def build_services(config: ProducerConfig, db_manager: DatabaseManager) -> Services:
    """Wire repositories, event log, publishers and services together."""
    game_repository = GameRepository(db_manager)
    purchase_repository = PurchaseRepository(db_manager)
    event_log = EventLogAppender(SqlEventStore(db_manager), policy=config.event_log_policy)

    queue_factory = sqs_queue_factory(config)
    games_publisher = QueuePublisher(
        config.games_events_resolver(), queue_factory, max_workers=config.publish_max_workers
    )
    payments_publisher = QueuePublisher(
        config.payments_resolver(), queue_factory, max_workers=config.publish_max_workers
    )

    engine = RecommendationEngine(game_repository, purchase_repository)

    return Services(
        games=GameService(game_repository, engine, event_log, games_publisher),
        purchases=PurchaseService(purchase_repository, game_repository, event_log, payments_publisher),
        game_repository=game_repository,
        purchase_repository=purchase_repository,
        games_publisher=games_publisher,
        payments_publisher=payments_publisher,
    )


def seed_catalog(services: Services, generator: MockDataGenerator, logger) -> None:
    """Insert the generated catalog and purchase history into an empty database."""
    existing = services.game_repository.count()
    if existing:
        logger.info("Catalog already seeded", extra={"games": existing})
        generator.games = [game.to_dict() for game in _all_games(services)] or generator.games
        return

    games = services.game_repository.add_many(Game(**game) for game in generator.games)
    purchases = services.purchase_repository.add_many(
        Purchase(**purchase) for purchase in generator.generate_purchases(len(generator.users) * 3)
    )
    logger.info("Catalog seeded", extra={"games": games, "purchases": purchases})


def _all_games(services: Services):
    return services.game_repository.search("", page_size=100).items


def run_simulation(config: ProducerConfig, services: Services, generator: MockDataGenerator, logger) -> int:
    """
    Issue simulated start/queue requests at ``producer_rate`` per second.

    Returns:
        Exit code (0 = success, 1 = errors occurred)
    """
    sleep_interval = 1.0 / config.producer_rate
    requests_sent = 0
    errors = 0
    start_time = time.time()

    logger.info(
        "Starting simulation",
        extra={
            "rate": config.producer_rate,
            "duration": config.producer_duration if config.producer_duration > 0 else "infinite",
        },
    )

    while not shutdown_event.is_set():
        if config.producer_duration > 0 and time.time() - start_time >= config.producer_duration:
            logger.info("Duration limit reached, stopping simulation")
            break

        action, game_id, user_id = generator.generate_activity()
        try:
            if action == "start":
                services.games.start_game(game_id, user_id)
            else:
                services.games.queue_game(game_id, user_id)
            requests_sent += 1
        except (GameNotFoundError, AppendError):
            errors += 1
            logger.error(
                "Simulated request failed",
                exc_info=True,
                extra={"action": action, "correlation_id": game_id},
            )

        if requests_sent and requests_sent % 100 == 0:
            elapsed = time.time() - start_time
            logger.info(
                "Simulation progress",
                extra={
                    "requests_sent": requests_sent,
                    "elapsed_seconds": round(elapsed, 2),
                    "actual_rate": round(requests_sent / elapsed, 2) if elapsed > 0 else 0,
                    "errors": errors,
                },
            )

        shutdown_event.wait(sleep_interval)

    elapsed = time.time() - start_time
    logger.info(
        "Simulation finished",
        extra={
            "requests_sent": requests_sent,
            "errors": errors,
            "elapsed_seconds": round(elapsed, 2),
            "messages_sent": services.games_publisher.messages_sent,
            "messages_skipped": services.games_publisher.messages_skipped,
            "messages_failed": services.games_publisher.messages_failed,
        },
    )
    return 0 if errors == 0 else 1


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Games Traffic Simulator - drive the games services and publish events",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Use environment variables (from .env)
  python -m games_pipeline.producer.main

  # 20 requests/second for 2 minutes
  python -m games_pipeline.producer.main --rate 20 --duration 120

  # Seed an empty database and exit
  python -m games_pipeline.producer.main --seed-only --create-tables
        """,
    )

    parser.add_argument("--rate", type=int, help="Requests per second (1-1000, default: from config)")
    parser.add_argument(
        "--duration", type=int, help="Run duration in seconds (0=infinite, default: from config)"
    )
    parser.add_argument(
        "--seed", type=int, help="Random seed for reproducible data (default: from config)"
    )
    parser.add_argument("--seed-only", action="store_true", help="Seed the catalog and exit")
    parser.add_argument(
        "--create-tables", action="store_true", help="Create missing database tables"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: from config)",
    )
    parser.add_argument(
        "--log-format",
        type=str,
        choices=["json", "text"],
        help="Log output format (default: from config)",
    )

    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        config = load_config()
    except Exception as e:
        print(f"ERROR: Failed to load configuration: {e}", file=sys.stderr)
        return 1

    if args.rate:
        config.producer_rate = args.rate
    if args.duration is not None:  # Allow 0
        config.producer_duration = args.duration
    if args.seed is not None:
        config.mock_seed = args.seed
    if args.log_level:
        config.log_level = args.log_level
    if args.log_format:
        config.log_format = args.log_format

    print(config.display_config())

    logger = setup_logger(
        name="games_pipeline",
        service_name=SERVICE_NAME,
        log_level=config.log_level,
        log_format=config.log_format,
    )

    try:
        db_manager = init_database(config, create_tables=args.create_tables)
    except Exception:
        logger.error("Failed to initialize database", exc_info=True)
        return 1

    services = build_services(config, db_manager)
    generator = MockDataGenerator(
        seed=config.mock_seed, catalog_size=config.catalog_size, user_count=config.user_count
    )

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        seed_catalog(services, generator, logger)
        if args.seed_only:
            return 0
        return run_simulation(config, services, generator, logger)
    except Exception:
        logger.error("Unexpected error in simulator", exc_info=True)
        return 1
    finally:
        services.close()
        db_manager.close()


if __name__ == "__main__":
    sys.exit(main())
