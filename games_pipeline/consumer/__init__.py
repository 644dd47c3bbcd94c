"""
Games Events Worker Package

Long-running SQS consumer that turns game activity notifications into
durable, idempotent state changes:

┌──────────────┐     ┌────────────────────┐     ┌──────────────────────┐
│  SQS queue   │────▶│ GameEventsConsumer │────▶│  PostgreSQL          │
│ games-events │     │ + MessageProcessor │     │  games (play_count)  │
│              │◀────│   delete on OK     │     │  domain_events       │
└──────────────┘     └────────────────────┘     │  processed_messages  │
                                                └──────────────────────┘

DELIVERY GUARANTEES:
1. Receive a batch (long poll)
2. Apply each message inside one transaction guarded by a marker row
3. Delete the message only after the transaction commits
4. Failure → no delete → visibility timeout → redelivery
5. Redelivery of an applied message → DUPLICATE → deleted, no side effects

Package components:
- config.py: Queue, receive and poison-message settings
- processor.py: Idempotent message processor and handlers
- store.py: PostgreSQL unit of work (marker, event, counters)
- consumer.py: Poll loop with backoff and cooperative cancellation
- main.py: Entry point with CLI and signal handling
"""

__version__ = "1.0.0"

from games_pipeline.consumer.config import ConsumerConfig, load_config

__all__ = [
    "ConsumerConfig",
    "load_config",
]
