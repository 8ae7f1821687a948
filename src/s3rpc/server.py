"""Server side of s3rpc: receive requests, run handlers, upload responses."""
import asyncio
import inspect
import logging
import os
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from s3rpc.adapters import create_client
from s3rpc.adapters.queue import MessageQueue
from s3rpc.adapters.storage import ObjectStore
from s3rpc.correlation import (
    TO_SERVER,
    extract_call_id,
    extract_direction,
    extract_operation,
    response_key,
)
from s3rpc.errors import HandlerError, InvalidKeyError, TransportError
from s3rpc.observers import LoggingObserver, ServerObserver
from s3rpc.options import ServerOptions
from s3rpc.schemas import Output, QueueMessage
from s3rpc.tempdir import TempDir

logger = logging.getLogger(__name__)

Handler = Callable[[str], Output]
Handlers = Dict[str, Handler]


class CallState(str, Enum):
    """Progress of one call as seen by the server."""
    RECEIVED = "received"          # Message for a known operation
    ACKNOWLEDGED = "acknowledged"  # Request message deleted from the queue
    DOWNLOADED = "downloaded"      # Request object copied to a local file
    HANDLED = "handled"            # Handler returned an Output
    RESPONDED = "responded"        # Response object uploaded and notified


@dataclass
class Call:
    call_id: str
    operation: str
    request_key: str
    state: CallState = CallState.RECEIVED


class Server:
    """Answers calls for the operations in `options.handlers`.

    Messages for operations this server does not handle are released back
    to the queue; they may belong to a differently configured server sharing
    the same infrastructure.
    """

    def __init__(self, options: ServerOptions,
                 store: Optional[ObjectStore] = None,
                 queue: Optional[MessageQueue] = None,
                 response_queue: Optional[MessageQueue] = None,
                 observers: Optional[List[ServerObserver]] = None):
        options.check()
        self.options = options
        self.bucket = options.aws.bucket
        self.handlers: Handlers = dict(options.handlers)
        self._log = options.log or logger.log

        sqs = None
        if queue is None or (response_queue is None and options.response_queue):
            sqs = create_client("sqs", options.aws)
        if store is None:
            store = ObjectStore(create_client("s3", options.aws), self.bucket)
        if queue is None:
            queue = MessageQueue(sqs, options.queue, options.receive_wait_seconds, options.max_messages)
        if response_queue is None and options.response_queue:
            response_queue = MessageQueue(sqs, options.response_queue)

        self.store = store
        self.queue = queue
        self.response_queue = response_queue
        self.observers = observers if observers is not None else [LoggingObserver()]

        # Track continuous receive failures for the back off
        self.consecutive_errors = 0
        self._stop: Optional[asyncio.Event] = None
        self._stop_requested = False

        self.tempdir = TempDir(prefix="s3rpc_server")

    async def listen_and_serve(self, stop: Optional[asyncio.Event] = None) -> None:
        """Serve calls until `stop` is set or shutdown() is called.

        Stopping is observed between receives and between calls: a call that
        is in flight completes first. Messages of the current batch that
        were not dispatched yet are released.
        """
        self._stop = stop or asyncio.Event()
        if self._stop_requested:
            self._stop.set()
        self._log(logging.INFO, f"Listening on {self.options.queue} for {sorted(self.handlers)}")

        while not self._stop.is_set():
            try:
                messages = await asyncio.to_thread(self.queue.receive)
            except TransportError as e:
                self.consecutive_errors += 1
                backoff_time = min(self.options.max_backoff_seconds, 2 ** self.consecutive_errors)
                self._log(logging.ERROR, f"Receive failed: {e}; backing off for {backoff_time}s")
                await self._sleep(backoff_time)
                continue
            self.consecutive_errors = 0

            if not messages:
                if self.options.receive_wait_seconds == 0:
                    await self._sleep(self.options.idle_sleep_seconds)
                continue

            handled = 0
            for i, message in enumerate(messages):
                if self._stop.is_set():
                    await self._release_all(messages[i:])
                    break
                if await self.dispatch(message) is not None:
                    handled += 1

            # Everything was released; let other receivers pick it up.
            if not handled:
                await self._sleep(self.options.idle_sleep_seconds)

        self._log(logging.INFO, f"Stopped listening on {self.options.queue}")

    def shutdown(self) -> None:
        """Ask listen_and_serve to return. Must be called from the event loop's thread."""
        self._stop_requested = True
        if self._stop is not None:
            self._stop.set()

    async def _sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def _release_all(self, messages: List[QueueMessage]) -> None:
        for message in messages:
            await self._release(message)

    async def _release(self, message: QueueMessage) -> None:
        try:
            await asyncio.to_thread(self.queue.release, message.receipt_handle)
        except TransportError as e:
            self._log(logging.ERROR, f"Could not release {message.key}: {e}")

    async def dispatch(self, message: QueueMessage) -> Optional[Call]:
        """Route one message to its handler.

        Returns the Call for a handled operation, or None if the message was
        released. Failures are reported to the observers, never raised.
        """
        if message.bucket != self.bucket:
            self._log(logging.ERROR,
                      f"Message for {message.key} names bucket {message.bucket!r}, "
                      f"expected {self.bucket!r}; releasing")
            await self._release(message)
            return None

        try:
            direction = extract_direction(message.key)
            operation = extract_operation(message.key)
        except InvalidKeyError as e:
            self._log(logging.WARNING, f"Releasing message: {e}")
            await self._release(message)
            return None

        handler = self.handlers.get(operation)
        if handler is None or direction != TO_SERVER:
            self._log(logging.DEBUG, f"No handler for {message.key}; releasing")
            await self._release(message)
            return None

        call = Call(call_id=extract_call_id(message.key), operation=operation,
                    request_key=message.key)
        self._notify("on_call_start", call)

        start_time = time.monotonic()
        success = False
        try:
            await self._serve(call, message, handler)
            success = True
        except Exception as e:
            # The request object stays orphaned; there is no retry at this layer.
            self._log(logging.ERROR, f"[{call.call_id}] {operation} failed after {call.state.value}: {e}")
            self._notify("on_call_error", call, e)
        finally:
            duration = time.monotonic() - start_time
            self._notify("on_call_complete", call, duration, success)
        return call

    def _notify(self, event: str, *args) -> None:
        for observer in self.observers:
            try:
                getattr(observer, event)(*args)
            except Exception as e:
                self._log(logging.ERROR, f"Observer {type(observer).__name__}.{event} failed: {e}")

    async def _serve(self, call: Call, message: QueueMessage, handler: Handler) -> None:
        await asyncio.to_thread(self.queue.delete, message.receipt_handle)
        call.state = CallState.ACKNOWLEDGED

        filename = self.tempdir.new_file(message.key)
        output = None
        try:
            await asyncio.to_thread(self.store.get, message.key, filename)
            call.state = CallState.DOWNLOADED

            output = await self._invoke(call, handler, filename)
            call.state = CallState.HANDLED

            key = response_key(message.key, output.filename)
            await asyncio.to_thread(self.store.put, key, output.filename, output.metadata)
            if self.response_queue is not None:
                await asyncio.to_thread(self.response_queue.send, self.bucket, key)
            call.state = CallState.RESPONDED
            self._log(logging.INFO, f"[{call.call_id}] responded with {key}")

            try:
                await asyncio.to_thread(self.store.delete, message.key)
            except TransportError as e:
                self._log(logging.WARNING, f"[{call.call_id}] ignoring cleanup failure: {e}")
        finally:
            self._remove_local(filename)
            if output is not None and self._owns(output.filename):
                self._remove_local(output.filename)

    async def _invoke(self, call: Call, handler: Handler, filename: str) -> Output:
        try:
            if inspect.iscoroutinefunction(handler):
                result = await handler(filename)
            else:
                result = await asyncio.to_thread(handler, filename)
            # partials of coroutine functions and async callables
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            raise HandlerError(call.operation, call.call_id, str(e)) from e
        if not isinstance(result, Output):
            raise HandlerError(call.operation, call.call_id,
                               f"expected Output, got {type(result).__name__}")
        return result

    def _owns(self, path: str) -> bool:
        tempdir = os.path.realpath(self.tempdir.path)
        return os.path.realpath(path).startswith(tempdir + os.sep)

    def _remove_local(self, path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            self._log(logging.WARNING, f"Could not delete temp file {path}: {e}")

    def close(self) -> None:
        """Remove the temporary directory."""
        self.tempdir.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
