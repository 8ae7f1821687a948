"""Queue adapter: object notifications over SQS.

Message bodies use the S3 event notification format, so a queue fed by a
bucket notification and a queue fed by `MessageQueue.send` look the same to
the receiver.
"""
import json
import logging
from typing import TYPE_CHECKING, Any, Dict, List, Optional
from urllib.parse import quote_plus, unquote_plus

from botocore.exceptions import BotoCoreError, ClientError

from s3rpc.errors import TransportError
from s3rpc.schemas import QueueMessage

if TYPE_CHECKING:
    from mypy_boto3_sqs import SQSClient

logger = logging.getLogger(__name__)

TEST_EVENT = "s3:TestEvent"


def notification_body(bucket: str, key: str) -> str:
    """An S3 ObjectCreated notification for bucket/key."""
    return json.dumps({
        "Records": [{
            "eventVersion": "2.1",
            "eventSource": "aws:s3",
            "eventName": "ObjectCreated:Put",
            "s3": {
                "bucket": {"name": bucket},
                "object": {"key": quote_plus(key, safe="/")},
            },
        }]
    })


def parse_records(body: str) -> Optional[List[Dict[str, str]]]:
    """Bucket and key of every record in a notification body.

    Returns None for the test event S3 sends when a notification is
    configured. Raises ValueError for anything else that is not a
    notification.
    """
    document = json.loads(body)
    if not isinstance(document, dict):
        raise ValueError("notification body is not an object")
    if document.get("Event") == TEST_EVENT:
        return None
    records = document.get("Records")
    if not isinstance(records, list):
        raise ValueError("notification has no Records")
    parsed = []
    for record in records:
        s3 = record["s3"]
        parsed.append({
            "bucket": s3["bucket"]["name"],
            "key": unquote_plus(s3["object"]["key"]),
        })
    return parsed


class MessageQueue:
    """Notifications on a single SQS queue."""

    def __init__(self, sqs_client: "SQSClient", queue_url: str,
                 wait_seconds: int = 20, max_messages: int = 10):
        self.sqs = sqs_client
        self.queue_url = queue_url
        self.wait_seconds = wait_seconds
        self.max_messages = max_messages

    def send(self, bucket: str, key: str) -> None:
        try:
            response = self.sqs.send_message(
                QueueUrl=self.queue_url,
                MessageBody=notification_body(bucket, key),
            )
        except (ClientError, BotoCoreError) as e:
            raise TransportError("send", self.queue_url, str(e)) from e
        logger.debug(f"Sent notification for {key} with ID: {response.get('MessageId')}")

    def receive(self, wait_seconds: Optional[int] = None) -> List[QueueMessage]:
        """Receive a batch of pending notifications, possibly empty."""
        if wait_seconds is None:
            wait_seconds = self.wait_seconds
        try:
            response = self.sqs.receive_message(
                QueueUrl=self.queue_url,
                MaxNumberOfMessages=self.max_messages,
                WaitTimeSeconds=wait_seconds,
            )
        except (ClientError, BotoCoreError) as e:
            raise TransportError("receive", self.queue_url, str(e)) from e

        messages = []
        for message in response.get("Messages", []):
            messages.extend(self._parse(message))
        return messages

    def _parse(self, message: Dict[str, Any]) -> List[QueueMessage]:
        """Notifications carried by one SQS message.

        Messages that are not object notifications are released and skipped.
        So are messages naming other than exactly one object: records share
        the message's receipt handle, so no call could acknowledge only its
        own record.
        """
        receipt_handle = message["ReceiptHandle"]
        message_id = message.get("MessageId")
        try:
            records = parse_records(message["Body"])
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Skipping message {message_id}: not an object notification: {e}")
            self._release_skipped(message_id, receipt_handle)
            return []
        if records is None:
            logger.info(f"Deleting S3 test event {message_id}")
            self.delete(receipt_handle)
            return []

        objects = {(r["bucket"], r["key"]) for r in records}
        if len(objects) != 1:
            logger.warning(f"Skipping message {message_id}: it names {len(objects)} objects")
            self._release_skipped(message_id, receipt_handle)
            return []
        return [
            QueueMessage(bucket=bucket, key=key, receipt_handle=receipt_handle)
            for bucket, key in objects
        ]

    def _release_skipped(self, message_id: Optional[str], receipt_handle: str) -> None:
        try:
            self.release(receipt_handle)
        except TransportError as e:
            logger.error(f"Could not release skipped message {message_id}: {e}")

    def delete(self, receipt_handle: str) -> None:
        """Acknowledge a delivery permanently."""
        try:
            self.sqs.delete_message(QueueUrl=self.queue_url, ReceiptHandle=receipt_handle)
        except (ClientError, BotoCoreError) as e:
            raise TransportError("delete message", self.queue_url, str(e)) from e

    def release(self, receipt_handle: str) -> None:
        """Make a delivery visible again to every receiver, right away."""
        try:
            self.sqs.change_message_visibility(
                QueueUrl=self.queue_url,
                ReceiptHandle=receipt_handle,
                VisibilityTimeout=0,
            )
        except (ClientError, BotoCoreError) as e:
            raise TransportError("release message", self.queue_url, str(e)) from e
