"""Client side of s3rpc: upload a request, wait for the correlated response."""
import asyncio
import logging
from typing import Dict, Optional

from s3rpc.adapters import create_client
from s3rpc.adapters.queue import MessageQueue
from s3rpc.adapters.storage import ObjectStore
from s3rpc.correlation import TO_SERVER, build_key, new_call_id
from s3rpc.decorators import async_log_execution_time
from s3rpc.errors import CallTimeoutError, TransportError
from s3rpc.options import ClientOptions
from s3rpc.routing import route_batch
from s3rpc.schemas import Input, Output, QueueMessage
from s3rpc.tempdir import TempDir

logger = logging.getLogger(__name__)

# Pause between receives that cannot long poll, or that only saw other calls' messages.
POLL_INTERVAL = 0.1


class Client:
    """Executes operations on a server through a bucket and a queue.

    The client listens on `options.queue` for toClient notifications. Many
    clients may share that queue: messages belonging to other calls are
    released back to the queue, never deleted.
    """

    def __init__(self, options: ClientOptions,
                 store: Optional[ObjectStore] = None,
                 queue: Optional[MessageQueue] = None,
                 request_queue: Optional[MessageQueue] = None):
        options.check()
        self.options = options
        self.bucket = options.aws.bucket
        self._log = options.log or logger.log

        sqs = None
        if queue is None or (request_queue is None and options.request_queue):
            sqs = create_client("sqs", options.aws)
        if store is None:
            store = ObjectStore(create_client("s3", options.aws), self.bucket)
        if queue is None:
            queue = MessageQueue(sqs, options.queue, options.receive_wait_seconds, options.max_messages)
        if request_queue is None and options.request_queue:
            request_queue = MessageQueue(sqs, options.request_queue)

        self.store = store
        self.queue = queue
        self.request_queue = request_queue
        self.tempdir = TempDir(prefix="s3rpc_client")

    @async_log_execution_time
    async def execute(self, operation: str, input: Input) -> Output:
        """Execute operation on a server with input.filename as its main input.

        Blocks until the correlated response arrives, the timeout elapses
        (CallTimeoutError) or a transport or routing error occurs. The
        returned Output.filename is temporary and is removed on close().
        """
        call_id = new_call_id()
        key = build_key(TO_SERVER, operation, call_id, input.filename)

        await asyncio.to_thread(self.store.put, key, input.filename, input.metadata)
        if self.request_queue is not None:
            await asyncio.to_thread(self.request_queue.send, self.bucket, key)
        self._log(logging.INFO, f"[{call_id}] uploaded {key}, waiting for response")

        return await self._wait_for_response(operation, call_id, key)

    async def execute_filename(self, operation: str, filename: str,
                               metadata: Optional[Dict[str, str]] = None) -> Output:
        return await self.execute(operation, Input(filename=filename, metadata=metadata or {}))

    async def _wait_for_response(self, operation: str, call_id: str, request_key: str) -> Output:
        loop = asyncio.get_running_loop()
        timeout = self.options.timeout
        deadline = loop.time() + timeout

        while True:
            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            wait = min(self.options.receive_wait_seconds, int(remaining))
            messages = await asyncio.to_thread(self.queue.receive, wait)
            if loop.time() >= deadline:
                # The batch is left alone; it becomes visible again on its own.
                break

            routing = route_batch(messages, self.bucket, call_id)
            for m in routing.foreign:
                await asyncio.to_thread(self.queue.release, m.receipt_handle)

            if routing.matched is None:
                if wait == 0 or routing.foreign:
                    await asyncio.sleep(min(POLL_INTERVAL, max(0.0, deadline - loop.time())))
                continue

            for m in routing.duplicates:
                if m.receipt_handle != routing.matched.receipt_handle:
                    await asyncio.to_thread(self.queue.delete, m.receipt_handle)
            return await self._consume(call_id, request_key, routing.matched)

        self._log(logging.INFO, f"[{call_id}] no response for {operation} within {timeout:.1f}s")
        raise CallTimeoutError(call_id, operation, timeout)

    async def _consume(self, call_id: str, request_key: str, message: QueueMessage) -> Output:
        # Nobody else should see this response again.
        await asyncio.to_thread(self.queue.delete, message.receipt_handle)

        filename = self.tempdir.new_file(message.key)
        metadata = await asyncio.to_thread(self.store.get, message.key, filename)
        self._log(logging.INFO, f"[{call_id}] received {message.key}")

        # Both objects also expire under the bucket's lifecycle policy.
        for key in (message.key, request_key):
            try:
                await asyncio.to_thread(self.store.delete, key)
            except TransportError as e:
                self._log(logging.WARNING, f"[{call_id}] ignoring cleanup failure: {e}")

        return Output(filename=filename, metadata=metadata)

    def close(self) -> None:
        """Remove the temporary directory, including all returned output files."""
        self.tempdir.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
