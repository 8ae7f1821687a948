"""Observer pattern implementation for monitoring the server's calls."""
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from s3rpc.server import Call

logger = logging.getLogger(__name__)


class ServerObserver:
    """Base observer interface for server call notifications."""

    def on_call_start(self, call: "Call") -> None:
        """Called when a request for a known operation has been received."""
        pass

    def on_call_complete(self, call: "Call", duration: float, success: bool) -> None:
        """Called when a call has been answered or has failed."""
        pass

    def on_call_error(self, call: "Call", error: BaseException) -> None:
        """Called with the error that stopped a call, before on_call_complete."""
        pass


class LoggingObserver(ServerObserver):
    """Simple logging implementation of ServerObserver."""

    def on_call_start(self, call: "Call") -> None:
        logger.info(f"[{call.call_id}] Started {call.operation}")

    def on_call_complete(self, call: "Call", duration: float, success: bool) -> None:
        status = "successfully" if success else f"with failure in state {call.state.value}"
        logger.info(f"[{call.call_id}] Completed {call.operation} {status} in {duration:.2f}s")

    def on_call_error(self, call: "Call", error: BaseException) -> None:
        logger.error(f"[{call.call_id}] {call.operation} failed: {error}")
