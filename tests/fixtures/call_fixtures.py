"""In-memory stand-ins for the object store and queue adapters."""
import itertools
import threading
from typing import Callable, Dict, List, Optional, Tuple

import pytest

from s3rpc.correlation import TO_SERVER, response_key
from s3rpc.errors import TransportError
from s3rpc.options import ClientOptions, ServerOptions
from s3rpc.schemas import Output, QueueMessage
from tests.consts import TEST_BUCKET_NAME

SUFFIX = b"\n\n___changed___"


class FakeStore:
    """Objects kept in a dict: key -> (bytes, metadata)."""

    def __init__(self):
        self.objects: Dict[str, Tuple[bytes, Dict[str, str]]] = {}
        self.deleted: List[str] = []
        self.fail_delete = False
        self.on_put: Optional[Callable[[str], None]] = None

    def put(self, key, local_path, metadata=None):
        with open(local_path, "rb") as f:
            self.objects[key] = (f.read(), dict(metadata or {}))
        if self.on_put is not None:
            self.on_put(key)

    def get(self, key, local_path):
        if key not in self.objects:
            raise TransportError("get", key, "NoSuchKey")
        data, metadata = self.objects[key]
        with open(local_path, "wb") as f:
            f.write(data)
        return dict(metadata)

    def delete(self, key):
        if self.fail_delete:
            raise TransportError("delete", key, "AccessDenied")
        self.deleted.append(key)
        self.objects.pop(key, None)


class FakeQueue:
    """A queue with visibility: received messages are hidden until released."""

    _handles = itertools.count(1)

    def __init__(self, bucket=TEST_BUCKET_NAME, batch_size=10):
        self.bucket = bucket
        self.batch_size = batch_size
        self.visible: List[QueueMessage] = []
        self.in_flight: Dict[str, QueueMessage] = {}
        self.sent: List[Tuple[str, str]] = []
        self.deleted: List[str] = []
        self.released: List[str] = []
        self.receive_errors: List[Exception] = []
        self.receive_calls = 0
        self._lock = threading.Lock()

    def push(self, key, bucket=None) -> QueueMessage:
        message = QueueMessage(
            bucket=bucket or self.bucket,
            key=key,
            receipt_handle=f"rh-{next(self._handles)}",
        )
        with self._lock:
            self.visible.append(message)
        return message

    def send(self, bucket, key):
        self.sent.append((bucket, key))
        self.push(key, bucket)

    def receive(self, wait_seconds=None):
        with self._lock:
            self.receive_calls += 1
            if self.receive_errors:
                raise self.receive_errors.pop(0)
            batch = self.visible[:self.batch_size]
            self.visible = self.visible[self.batch_size:]
            for m in batch:
                self.in_flight[m.receipt_handle] = m
            return batch

    def delete(self, receipt_handle):
        with self._lock:
            self.deleted.append(receipt_handle)
            self.in_flight.pop(receipt_handle, None)

    def release(self, receipt_handle):
        with self._lock:
            self.released.append(receipt_handle)
            message = self.in_flight.pop(receipt_handle, None)
            if message is not None:
                self.visible.append(message)


def respond_with(store: FakeStore, queue: FakeQueue, suffix=SUFFIX, metadata=None):
    """Make store answer every toServer upload the way a server would."""
    def on_put(key):
        if not key.startswith(TO_SERVER + "/"):
            return
        data, _ = store.objects[key]
        rkey = response_key(key, "out.txt")
        store.objects[rkey] = (data + suffix, dict(metadata or {}))
        queue.push(rkey)
    store.on_put = on_put


def append_suffix(filename: str) -> Output:
    """Handler appending SUFFIX to the input, written next to it."""
    with open(filename, "rb") as f:
        content = f.read()
    new_filename = filename + "-changed.txt"
    with open(new_filename, "wb") as f:
        f.write(content + SUFFIX)
    return Output(filename=new_filename, metadata={"k": "v"})


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def fake_queue():
    return FakeQueue()


@pytest.fixture
def client_options(aws_config):
    return ClientOptions(
        queue="https://sqs.test/client",
        aws=aws_config,
        timeout=5,
        receive_wait_seconds=0,
    )


@pytest.fixture
def server_options(aws_config):
    return ServerOptions(
        queue="https://sqs.test/server",
        aws=aws_config,
        handlers={"transform": append_suffix},
        receive_wait_seconds=0,
        idle_sleep_seconds=0.01,
        max_backoff_seconds=0.01,
    )


@pytest.fixture
def input_file(tmp_path):
    path = tmp_path / "a.txt"
    path.write_bytes(b"hello")
    return str(path)
