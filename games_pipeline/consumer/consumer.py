"""
Games Events Consumer Loop

Long-running worker that drains the games events SQS queue and hands each
delivery to the MessageProcessor.

SQS CONSUMER LIFECYCLE:
┌─────────────────────────────────────────────────────────────────────────┐
│  CREATED ──start()──▶ RUNNING ──stop()──▶ DRAINING ──▶ STOPPED          │
├─────────────────────────────────────────────────────────────────────────┤
│  1. ReceiveMessage (long poll, up to max_messages)                      │
│  2. Nothing received → wait poll_interval_ms                            │
│  3. Receive failed  → wait error_backoff_ms                             │
│  4. Process each message in order                                       │
│  5. Success (processed or duplicate) → DeleteMessage                    │
│  6. Failure → leave it; visibility timeout brings it back               │
│  7. stop() → remaining messages of the batch are abandoned              │
└─────────────────────────────────────────────────────────────────────────┘

AT-LEAST-ONCE DELIVERY:
- A message is deleted only AFTER its effects are committed
- Crash before delete → redelivery, absorbed by the processed-message marker
- A failed delete is logged and the redelivery is absorbed the same way

POISON MESSAGES:
A body that never decodes is left for redelivery until its
ApproximateReceiveCount reaches max_receive_count, then deleted and logged
with its body so the failure is visible without blocking the queue.

CANCELLATION:
Every wait goes through ``threading.Event.wait`` so stop() (usually from a
signal handler) interrupts it immediately. A long poll already in flight
returns within wait_time_seconds.
"""

import logging
import threading
from enum import Enum
from typing import Optional

from games_pipeline.consumer.config import ConsumerConfig
from games_pipeline.consumer.processor import MessageProcessor, ProcessOutcome
from games_pipeline.shared.errors import MalformedMessageError, QueueTransportError
from games_pipeline.shared.events import ReceivedMessage
from games_pipeline.shared.logger import CorrelationAdapter
from games_pipeline.shared.sqs import MessageQueue


class ConsumerState(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    DRAINING = "draining"
    STOPPED = "stopped"


# ==============================================================================
# SQS CONSUMER
# ==============================================================================


class GameEventsConsumer:
    """
    Poll loop over one games events queue.

    Attributes:
        config: Receive and timing settings
        queue: Queue adapter (SqsMessageQueue in production)
        processor: Idempotent message processor
        state: Current lifecycle state
        messages_processed: Messages applied and deleted
        messages_skipped: Duplicates deleted without re-applying
        messages_failed: Messages left on the queue after a failure
        messages_discarded: Poison messages deleted after max_receive_count
    """

    def __init__(
        self,
        config: ConsumerConfig,
        queue: MessageQueue,
        processor: MessageProcessor,
        stop_event: Optional[threading.Event] = None,
    ):
        self.config = config
        self.queue = queue
        self.processor = processor
        self.logger = logging.getLogger(__name__)

        self._stop_event = stop_event or threading.Event()
        self.state = ConsumerState.CREATED

        # Metrics counters
        self.messages_processed = 0
        self.messages_skipped = 0
        self.messages_failed = 0
        self.messages_discarded = 0

        self.logger.info(
            "Games events consumer initialized",
            extra={
                "max_messages": config.max_messages,
                "wait_time_seconds": config.wait_time_seconds,
                "visibility_timeout": config.visibility_timeout,
                "poll_interval_ms": config.poll_interval_ms,
            },
        )

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def start(self) -> None:
        """
        Run the consumer loop until stop() is called.

        Each iteration is one poll_once(); errors inside an iteration are
        logged and backed off, never propagated.
        """
        if self.state is not ConsumerState.CREATED:
            raise RuntimeError(f"Consumer cannot start from state {self.state.value}")

        self.state = ConsumerState.RUNNING
        self.logger.info("Starting consumer loop...")

        try:
            while not self._stop_event.is_set():
                self.poll_once()
        finally:
            self._shutdown()

    def poll_once(self) -> int:
        """
        One receive-process-delete cycle.

        Returns:
            Number of messages handed to the processor
        """
        try:
            messages = self.queue.receive(
                max_messages=self.config.max_messages,
                wait_time_seconds=self.config.wait_time_seconds,
                visibility_timeout=self.config.visibility_timeout,
            )
        except QueueTransportError as e:
            self.logger.warning(
                "Queue receive failed, backing off",
                extra={"error": str(e), "backoff_ms": self.config.error_backoff_ms},
            )
            self._wait(self.config.error_backoff_ms)
            return 0
        except Exception:
            self.logger.error(
                "Unexpected error in consumer loop, backing off",
                exc_info=True,
                extra={"backoff_ms": self.config.error_backoff_ms},
            )
            self._wait(self.config.error_backoff_ms)
            return 0

        if not messages:
            self.logger.debug("No messages received")
            self._wait(self.config.poll_interval_ms)
            return 0

        self.logger.debug("Received messages", extra={"count": len(messages)})

        handled = 0
        for message in messages:
            if self._stop_event.is_set():
                self.logger.info(
                    "Stop requested, abandoning rest of batch to redelivery",
                    extra={"abandoned": len(messages) - handled},
                )
                break
            self._handle_message(message)
            handled += 1

        return handled

    def _handle_message(self, message: ReceivedMessage) -> None:
        """Process one delivery and delete it on success."""
        message_logger = CorrelationAdapter(self.logger, {"correlation_id": message.message_id})

        try:
            outcome = self.processor.process(message)

        except MalformedMessageError as e:
            if message.receive_count >= self.config.max_receive_count:
                message_logger.error(
                    "Discarding undecodable message",
                    extra={
                        "error": str(e),
                        "receive_count": message.receive_count,
                        "body": message.body,
                    },
                )
                if self._delete(message, message_logger):
                    self.messages_discarded += 1
                return

            self.messages_failed += 1
            message_logger.warning(
                "Undecodable message left for redelivery",
                extra={
                    "error": str(e),
                    "receive_count": message.receive_count,
                    "max_receive_count": self.config.max_receive_count,
                },
            )
            return

        except Exception:
            # ProcessError or anything unexpected
            self.messages_failed += 1
            message_logger.error(
                "Message processing failed, left for redelivery",
                exc_info=True,
                extra={"messages_failed": self.messages_failed},
            )
            return

        if outcome is ProcessOutcome.DUPLICATE:
            self.messages_skipped += 1
        else:
            self.messages_processed += 1

        self._delete(message, message_logger)

    def _delete(self, message: ReceivedMessage, message_logger: logging.LoggerAdapter) -> bool:
        try:
            self.queue.delete(message.receipt_handle)
            return True
        except QueueTransportError:
            message_logger.error(
                "Failed to delete message, it will be redelivered",
                exc_info=True,
            )
            return False

    def _wait(self, milliseconds: int) -> None:
        self._stop_event.wait(milliseconds / 1000)

    def stop(self) -> None:
        """
        Signal the loop to stop.

        Safe to call from a signal handler or another thread. Pending waits
        return immediately; the message being processed is finished.
        """
        self.logger.info("Stopping consumer...")
        if self.state is ConsumerState.RUNNING:
            self.state = ConsumerState.DRAINING
        self._stop_event.set()

    def _shutdown(self) -> None:
        self.state = ConsumerState.STOPPED
        self.logger.info(
            "Consumer stopped",
            extra={
                "messages_processed": self.messages_processed,
                "messages_skipped": self.messages_skipped,
                "messages_failed": self.messages_failed,
                "messages_discarded": self.messages_discarded,
            },
        )
