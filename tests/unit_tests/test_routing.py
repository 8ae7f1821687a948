import pytest

from s3rpc.errors import RoutingError
from s3rpc.routing import route_batch
from s3rpc.schemas import QueueMessage
from tests.consts import TEST_BUCKET_NAME

CALL_ID = "01hq3w6v2j8k9m4n5p6q7r8s9t"
OTHER_ID = "01hq3w6v2j8k9m4n5p6q7r8zzz"


def message(key, handle, bucket=TEST_BUCKET_NAME):
    return QueueMessage(bucket=bucket, key=key, receipt_handle=handle)


def test_route_batch__empty():
    routing = route_batch([], TEST_BUCKET_NAME, CALL_ID)

    assert routing.matched is None
    assert routing.foreign == []
    assert routing.duplicates == []


def test_route_batch__partitions():
    foreign = message(f"toClient/transform/{OTHER_ID}_a.txt", "rh-1")
    mine = message(f"toClient/transform/{CALL_ID}_a.txt", "rh-2")
    again = message(f"toClient/transform/{CALL_ID}_a.txt", "rh-3")

    routing = route_batch([foreign, mine, again], TEST_BUCKET_NAME, CALL_ID)

    assert routing.matched == mine
    assert routing.duplicates == [again]
    assert routing.foreign == [foreign]


def test_route_batch__bucket_mismatch_is_fatal():
    batch = [
        message(f"toClient/transform/{CALL_ID}_a.txt", "rh-1"),
        message(f"toClient/transform/{OTHER_ID}_a.txt", "rh-2", bucket="someone-elses"),
    ]

    with pytest.raises(RoutingError) as exc_info:
        route_batch(batch, TEST_BUCKET_NAME, CALL_ID)

    assert exc_info.value.actual_bucket == "someone-elses"
