"""
SQS and SSM Adapters

Thin boto3 wrappers behind the narrow interfaces the pipeline depends on:

- MessageQueue: receive / delete / send against one queue URL
- SsmParameterReader: read one parameter, None when absent or forbidden

SQS DELIVERY MODEL:
┌───────────────────────────────────────────────────────────────────────┐
│ 1. ReceiveMessage (long poll up to 20s, up to 10 messages)            │
│ 2. Each delivery is hidden from other consumers for VisibilityTimeout │
│ 3. DeleteMessage(receipt handle) → message gone for good              │
│ 4. No delete before the timeout → message visible again (redelivery)  │
└───────────────────────────────────────────────────────────────────────┘

Every botocore failure is re-raised as QueueTransportError so callers can
back off without knowing about boto3.
"""

import logging
from typing import List, Optional, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from games_pipeline.shared.config import PipelineSettings
from games_pipeline.shared.errors import QueueTransportError
from games_pipeline.shared.events import ReceivedMessage

# SSM error codes treated as "parameter not available here"
_SSM_MISSING_CODES = {
    "ParameterNotFound",
    "UnrecognizedClientException",
    "AccessDeniedException",
}


class MessageQueue(Protocol):
    """Queue operations used by the worker and the publisher."""

    def receive(
        self, max_messages: int, wait_time_seconds: int, visibility_timeout: int
    ) -> List[ReceivedMessage]:
        ...

    def delete(self, receipt_handle: str) -> None:
        ...

    def send(self, body: str) -> str:
        ...


def create_sqs_client(settings: PipelineSettings):
    """boto3 SQS client honoring the emulator URL and static credentials."""
    return boto3.client("sqs", **settings.get_boto3_client_kwargs())


def create_ssm_client(settings: PipelineSettings):
    """boto3 SSM client for the configured region."""
    kwargs = {"region_name": settings.aws_region}
    if settings.aws_access_key_id and settings.aws_secret_access_key:
        kwargs["aws_access_key_id"] = settings.aws_access_key_id
        kwargs["aws_secret_access_key"] = settings.aws_secret_access_key
    return boto3.client("ssm", **kwargs)


class SqsMessageQueue:
    """
    MessageQueue bound to one SQS queue URL.

    Args:
        client: boto3 SQS client
        queue_url: Queue to operate on
    """

    def __init__(self, client, queue_url: str):
        self.client = client
        self.queue_url = queue_url
        self.logger = logging.getLogger(__name__)

    def receive(
        self, max_messages: int, wait_time_seconds: int, visibility_timeout: int
    ) -> List[ReceivedMessage]:
        try:
            response = self.client.receive_message(
                QueueUrl=self.queue_url,
                MaxNumberOfMessages=max_messages,
                WaitTimeSeconds=wait_time_seconds,
                VisibilityTimeout=visibility_timeout,
                MessageSystemAttributeNames=["ApproximateReceiveCount"],
            )
        except (BotoCoreError, ClientError) as e:
            raise QueueTransportError(f"ReceiveMessage failed: {e}") from e

        messages = []
        for raw in response.get("Messages", []):
            attributes = raw.get("Attributes", {})
            messages.append(
                ReceivedMessage(
                    message_id=raw["MessageId"],
                    receipt_handle=raw["ReceiptHandle"],
                    body=raw.get("Body", ""),
                    receive_count=int(attributes.get("ApproximateReceiveCount", 1)),
                )
            )
        return messages

    def delete(self, receipt_handle: str) -> None:
        try:
            self.client.delete_message(QueueUrl=self.queue_url, ReceiptHandle=receipt_handle)
        except (BotoCoreError, ClientError) as e:
            raise QueueTransportError(f"DeleteMessage failed: {e}") from e

    def send(self, body: str) -> str:
        """Send one message; returns the queue-assigned MessageId."""
        try:
            response = self.client.send_message(QueueUrl=self.queue_url, MessageBody=body)
        except (BotoCoreError, ClientError) as e:
            raise QueueTransportError(f"SendMessage failed: {e}") from e
        return response["MessageId"]


class SsmParameterReader:
    """
    Read SSM parameters, treating missing/forbidden parameters as absent.

    The boto3 client is created lazily so building a resolver never touches
    the network.
    """

    def __init__(self, settings: PipelineSettings, client=None):
        self.settings = settings
        self._client = client
        self.logger = logging.getLogger(__name__)

    @property
    def client(self):
        if self._client is None:
            self._client = create_ssm_client(self.settings)
        return self._client

    def get(self, name: str, decrypt: bool = True) -> Optional[str]:
        try:
            response = self.client.get_parameter(Name=name, WithDecryption=decrypt)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in _SSM_MISSING_CODES:
                self.logger.warning(
                    "SSM parameter unavailable",
                    extra={"parameter": name, "error_code": code},
                )
                return None
            raise
        return response.get("Parameter", {}).get("Value")
