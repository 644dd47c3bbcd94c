"""
Games Producer Package

Producer side of the pipeline: publishing game activity to SQS from
request-handling code, plus a traffic simulator for demos.

PUBLISHING MODEL:
┌──────────────┐  publish()   ┌──────────────────┐  SendMessage  ┌──────────────┐
│ GameService  │─────────────▶│  QueuePublisher  │──────────────▶│  SQS queue   │
│ (request)    │ returns now  │ (thread pool)    │               │ games-events │
└──────────────┘              └──────────────────┘               └──────────────┘

- The request never waits for SQS and never fails because of it
- Queue URL: explicit setting → environment variable → SSM parameter
- The event log (domain_events) is the source of truth; the queue only
  drives asynchronous side effects

Package components:
- config.py: Queue, publisher and simulator settings
- publisher.py: Fire-and-forget QueuePublisher
- mock_data.py: Seeded Faker catalog/users/purchases/activity
- main.py: Traffic simulator CLI
"""

__version__ = "1.0.0"

from games_pipeline.producer.config import ProducerConfig, load_config
from games_pipeline.producer.publisher import QueuePublisher

__all__ = [
    "ProducerConfig",
    "QueuePublisher",
    "load_config",
]
