"""
Request/response calls between processes through an S3 bucket and SQS queues.

A client uploads a request object under a key carrying a fresh call id and
waits on its queue for the notification of the matching response object. A
server receives the request notification, runs the handler registered for
the operation, and uploads the response under the same call id.
"""
from s3rpc.client import Client
from s3rpc.errors import (
    CallTimeoutError,
    ConfigurationError,
    HandlerError,
    InvalidKeyError,
    RoutingError,
    S3RPCError,
    TransportError,
)
from s3rpc.options import AWSConfig, ClientOptions, ServerOptions
from s3rpc.schemas import Input, Output, QueueMessage
from s3rpc.server import Call, CallState, Server

__all__ = [
    "AWSConfig",
    "Call",
    "CallState",
    "CallTimeoutError",
    "Client",
    "ClientOptions",
    "ConfigurationError",
    "HandlerError",
    "Input",
    "InvalidKeyError",
    "Output",
    "QueueMessage",
    "RoutingError",
    "S3RPCError",
    "Server",
    "ServerOptions",
    "TransportError",
]
