"""
Fire-and-Forget Queue Publisher

Publishes GameEventMessage envelopes to an SQS queue from request-handling
code without ever slowing it down or failing it.

PUBLISH FLOW:
┌─────────────────────────────────────────────────────────────────────────┐
│  request thread                      │  publisher pool thread          │
├──────────────────────────────────────┼──────────────────────────────────┤
│  1. Build envelope, timestamp = now  │                                  │
│  2. Submit to ThreadPoolExecutor ────┼─▶ 3. Resolve queue URL (cached)  │
│  3. Return Future immediately        │   4. Serialise to JSON           │
│                                      │   5. SendMessage                 │
│                                      │   6. Log outcome, bump counters  │
└──────────────────────────────────────┴──────────────────────────────────┘

FAILURE HANDLING:
- Queue URL cannot be resolved → WARNING "publish skipped", retried on the
  next publish (nothing cached)
- Serialisation or transport failure → ERROR, message dropped
- Neither reaches the caller; the event log remains the source of truth

Messages are not retried and there is no ordering between two publishes.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from games_pipeline.shared.config import PipelineSettings, QueueUrlResolver
from games_pipeline.shared.errors import QueueUrlNotConfiguredError
from games_pipeline.shared.events import GameEventMessage, utcnow
from games_pipeline.shared.logger import CorrelationAdapter
from games_pipeline.shared.sqs import MessageQueue, SqsMessageQueue, create_sqs_client

QueueFactory = Callable[[str], MessageQueue]


def sqs_queue_factory(settings: PipelineSettings) -> QueueFactory:
    """
    Factory building SqsMessageQueue adapters that share one boto3 client.

    The client is created on first use, inside the publisher thread.
    """
    lock = threading.Lock()
    clients = []

    def factory(queue_url: str) -> MessageQueue:
        with lock:
            if not clients:
                clients.append(create_sqs_client(settings))
            return SqsMessageQueue(clients[0], queue_url)

    return factory


# ==============================================================================
# QUEUE PUBLISHER
# ==============================================================================


class QueuePublisher:
    """
    Background publisher bound to one logical queue.

    Args:
        resolver: Layered queue URL resolver
        queue_factory: Builds a MessageQueue for a resolved URL
        max_workers: Threads in the background pool
        clock: Source of envelope timestamps

    Attributes:
        messages_sent: Successful SendMessage calls
        messages_failed: Serialisation/transport/resolution errors
        messages_skipped: Publishes dropped because no queue URL was configured
    """

    def __init__(
        self,
        resolver: QueueUrlResolver,
        queue_factory: QueueFactory,
        max_workers: int = 4,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.resolver = resolver
        self.queue_factory = queue_factory
        self.clock = clock
        self.logger = logging.getLogger(__name__)

        self._executor = ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=f"publisher-{resolver.queue_name}",
        )
        self._lock = threading.Lock()
        self._resolve_lock = threading.Lock()
        self._queue: Optional[MessageQueue] = None
        self._closed = False

        self.messages_sent = 0
        self.messages_failed = 0
        self.messages_skipped = 0

    @property
    def queue_name(self) -> str:
        return self.resolver.queue_name

    def publish(
        self,
        event_type: str,
        subject_id: str,
        actor_id: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> Optional[Future]:
        """
        Schedule one envelope for sending and return immediately.

        Args:
            event_type: Envelope type tag (e.g. "GameStarted")
            subject_id: Game id the event is about
            actor_id: User id that triggered it
            data: Optional free-form payload

        Returns:
            Future resolving to the SQS MessageId (None when the send was
            skipped or failed), or None when nothing was scheduled
        """
        publish_logger = CorrelationAdapter(self.logger, {"correlation_id": subject_id})

        try:
            envelope = GameEventMessage(
                event_type=event_type,
                subject_id=subject_id,
                actor_id=actor_id,
                timestamp=self.clock(),
                data=data,
            )
        except ValidationError as e:
            self._count("messages_failed")
            publish_logger.error(
                "Invalid event envelope, not published",
                extra={"event_type": event_type, "error": str(e)},
            )
            return None

        with self._lock:
            if self._closed:
                publish_logger.warning(
                    "Publisher closed, message dropped",
                    extra={"event_type": event_type, "queue": self.queue_name},
                )
                return None
            return self._executor.submit(self._send, envelope)

    def _send(self, envelope: GameEventMessage) -> Optional[str]:
        publish_logger = CorrelationAdapter(
            self.logger, {"correlation_id": envelope.subject_id}
        )

        try:
            queue = self._get_queue()
        except QueueUrlNotConfiguredError as e:
            self._count("messages_skipped")
            publish_logger.warning(
                "Queue URL not configured, publish skipped",
                extra={"event_type": envelope.event_type, "queue": self.queue_name, "error": str(e)},
            )
            return None
        except Exception:
            self._count("messages_failed")
            publish_logger.error(
                "Queue URL resolution failed, publish skipped",
                exc_info=True,
                extra={"event_type": envelope.event_type, "queue": self.queue_name},
            )
            return None

        try:
            message_id = queue.send(envelope.to_json())
        except Exception:
            self._count("messages_failed")
            publish_logger.error(
                "Failed to publish message",
                exc_info=True,
                extra={"event_type": envelope.event_type, "queue": self.queue_name},
            )
            return None

        self._count("messages_sent")
        publish_logger.debug(
            "Message published",
            extra={
                "event_type": envelope.event_type,
                "queue": self.queue_name,
                "message_id": message_id,
            },
        )
        return message_id

    def _get_queue(self) -> MessageQueue:
        # Separate lock: resolution may call SSM and must not block publish()
        with self._resolve_lock:
            if self._queue is None:
                queue_url = self.resolver.resolve()
                self._queue = self.queue_factory(queue_url)
                self.logger.info(
                    "Publisher queue resolved",
                    extra={"queue": self.queue_name, "queue_url": queue_url},
                )
            return self._queue

    def _count(self, counter: str) -> None:
        with self._lock:
            setattr(self, counter, getattr(self, counter) + 1)

    def close(self, wait: bool = True) -> None:
        """
        Stop accepting messages and optionally wait for pending sends.

        Args:
            wait: Block until every scheduled send has finished
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True

        self._executor.shutdown(wait=wait)
        self.logger.info(
            "Publisher closed",
            extra={
                "queue": self.queue_name,
                "messages_sent": self.messages_sent,
                "messages_failed": self.messages_failed,
                "messages_skipped": self.messages_skipped,
            },
        )
