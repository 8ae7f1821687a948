import json

import pytest

from s3rpc.adapters.queue import MessageQueue, notification_body, parse_records
from s3rpc.errors import TransportError
from tests.consts import TEST_BUCKET_NAME

KEY = "toClient/transform/01abc_report final+v2.txt"


@pytest.fixture
def queue(mocked_aws):
    return MessageQueue(mocked_aws.sqs, mocked_aws.client_queue_url, wait_seconds=0)


def test_parse_records__s3_notification():
    body = json.dumps({
        "Records": [{
            "eventSource": "aws:s3",
            "s3": {"bucket": {"name": TEST_BUCKET_NAME}, "object": {"key": "toServer/op/01abc_a+b%2Bc.txt"}},
        }]
    })

    assert parse_records(body) == [{"bucket": TEST_BUCKET_NAME, "key": "toServer/op/01abc_a b+c.txt"}]


def test_parse_records__test_event():
    assert parse_records(json.dumps({"Service": "Amazon S3", "Event": "s3:TestEvent"})) is None


@pytest.mark.parametrize("body", ['"just a string"', '{"hello": "world"}'])
def test_parse_records__not_a_notification(body):
    with pytest.raises(ValueError):
        parse_records(body)


def test_notification_body__round_trips_key():
    assert parse_records(notification_body(TEST_BUCKET_NAME, KEY)) == [
        {"bucket": TEST_BUCKET_NAME, "key": KEY}
    ]


def test_send_and_receive(queue):
    queue.send(TEST_BUCKET_NAME, KEY)

    [message] = queue.receive()

    assert message.bucket == TEST_BUCKET_NAME
    assert message.key == KEY
    assert message.receipt_handle


def test_receive__empty(queue):
    assert queue.receive() == []


def test_release__visible_again(queue):
    queue.send(TEST_BUCKET_NAME, KEY)
    [message] = queue.receive()
    assert queue.receive() == []

    queue.release(message.receipt_handle)

    [again] = queue.receive()
    assert again.key == KEY


def test_delete__gone(mocked_aws, queue):
    queue.send(TEST_BUCKET_NAME, KEY)
    [message] = queue.receive()

    queue.delete(message.receipt_handle)

    attributes = mocked_aws.sqs.get_queue_attributes(
        QueueUrl=mocked_aws.client_queue_url,
        AttributeNames=["ApproximateNumberOfMessages", "ApproximateNumberOfMessagesNotVisible"],
    )["Attributes"]
    assert attributes["ApproximateNumberOfMessages"] == "0"
    assert attributes["ApproximateNumberOfMessagesNotVisible"] == "0"


def test_receive__deletes_test_events(mocked_aws, queue):
    mocked_aws.sqs.send_message(
        QueueUrl=mocked_aws.client_queue_url,
        MessageBody=json.dumps({"Service": "Amazon S3", "Event": "s3:TestEvent", "Bucket": TEST_BUCKET_NAME}),
    )

    assert queue.receive() == []

    attributes = mocked_aws.sqs.get_queue_attributes(
        QueueUrl=mocked_aws.client_queue_url,
        AttributeNames=["ApproximateNumberOfMessagesNotVisible"],
    )["Attributes"]
    assert attributes["ApproximateNumberOfMessagesNotVisible"] == "0"


def queue_counts(mocked_aws):
    attributes = mocked_aws.sqs.get_queue_attributes(
        QueueUrl=mocked_aws.client_queue_url,
        AttributeNames=["ApproximateNumberOfMessages", "ApproximateNumberOfMessagesNotVisible"],
    )["Attributes"]
    return attributes["ApproximateNumberOfMessages"], attributes["ApproximateNumberOfMessagesNotVisible"]


def test_receive__skips_garbage_body_and_keeps_the_rest(mocked_aws, queue):
    mocked_aws.sqs.send_message(QueueUrl=mocked_aws.client_queue_url, MessageBody="hello from another app")
    queue.send(TEST_BUCKET_NAME, KEY)

    [message] = queue.receive()

    assert message.key == KEY
    # the stray message was released for whoever owns it, not deleted
    assert queue_counts(mocked_aws) == ("1", "1")


def test_receive__skips_multi_object_notification(mocked_aws, queue):
    body = json.loads(notification_body(TEST_BUCKET_NAME, KEY))
    other = json.loads(notification_body(TEST_BUCKET_NAME, "toClient/transform/01abd_b.txt"))
    body["Records"].extend(other["Records"])
    mocked_aws.sqs.send_message(QueueUrl=mocked_aws.client_queue_url, MessageBody=json.dumps(body))

    assert queue.receive() == []
    assert queue_counts(mocked_aws) == ("1", "0")


def test_receive__missing_queue(mocked_aws):
    queue = MessageQueue(mocked_aws.sqs, mocked_aws.client_queue_url + "-gone", wait_seconds=0)

    with pytest.raises(TransportError):
        queue.receive()
