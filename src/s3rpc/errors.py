"""Exception types raised by the client and server."""
from typing import Optional


class S3RPCError(Exception):
    """Base class for all s3rpc errors."""
    pass


class ConfigurationError(S3RPCError):
    """Options are incomplete. Raised at construction, before any network call."""
    pass


class RoutingError(S3RPCError):
    """A queue message refers to a bucket other than the configured one.

    This is a configuration defect, not a transient condition, so the call
    fails immediately.
    """

    def __init__(self, expected_bucket: str, actual_bucket: str):
        self.expected_bucket = expected_bucket
        self.actual_bucket = actual_bucket
        super().__init__(f"expected bucket {expected_bucket!r}, got {actual_bucket!r}")


class TransportError(S3RPCError):
    """A call against the object store or the queue failed."""

    def __init__(self, operation: str, target: str, message: Optional[str] = None):
        self.operation = operation
        self.target = target
        detail = f": {message}" if message else ""
        super().__init__(f"{operation} {target!r} failed{detail}")


class CallTimeoutError(S3RPCError, TimeoutError):
    """No correlated response arrived before the call's deadline."""

    def __init__(self, call_id: str, operation: str, timeout: float):
        self.call_id = call_id
        self.operation = operation
        self.timeout = timeout
        super().__init__(
            f"call {call_id} ({operation}) got no response within {timeout:.1f}s"
        )


class HandlerError(S3RPCError):
    """A worker handler raised or returned something other than an Output."""

    def __init__(self, operation: str, call_id: str, message: str):
        self.operation = operation
        self.call_id = call_id
        super().__init__(f"handler {operation!r} failed for call {call_id}: {message}")


class InvalidKeyError(S3RPCError, ValueError):
    """An object key is not of the form direction/operation/id_basename."""
    pass
