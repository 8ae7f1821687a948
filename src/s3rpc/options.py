"""Options for Client and Server.

Options are plain pydantic models so they can be built in code, or from the
environment through `from_settings`. `check()` is called by the Client and
Server constructors and rejects incomplete options before any network call.
"""
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from s3rpc.errors import ConfigurationError
from s3rpc.settings import (
    DEFAULT_RECEIVE_WAIT_SECONDS,
    DEFAULT_REGION,
    DEFAULT_TIMEOUT_SECONDS,
    Settings,
    get_settings,
)

LogFunc = Callable[[int, str], None]


class AWSConfig(BaseModel):
    """Bucket, region and static credentials shared by both sides."""
    bucket: str = ""
    region: str = DEFAULT_REGION
    access_key_id: str = ""
    secret_access_key: str = ""
    endpoint_url: Optional[str] = None

    def check(self) -> None:
        if not self.region:
            self.region = DEFAULT_REGION
        if not self.access_key_id:
            raise ConfigurationError("access key id is required")
        if not self.secret_access_key:
            raise ConfigurationError("secret access key is required")
        if not self.bucket:
            raise ConfigurationError("bucket is required")

    def client_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for boto3.client."""
        kwargs = {
            "region_name": self.region,
            "aws_access_key_id": self.access_key_id,
            "aws_secret_access_key": self.secret_access_key,
        }
        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url
        return kwargs

    @classmethod
    def from_settings(cls, settings: Settings) -> "AWSConfig":
        return cls(
            bucket=settings.s3_bucket_name or "",
            region=settings.aws_region,
            access_key_id=settings.aws_access_key_id or "",
            secret_access_key=settings.aws_secret_access_key or "",
            endpoint_url=settings.aws_endpoint_url,
        )


class _Options(BaseModel):
    # The queue to receive notifications from.
    queue: str = ""

    aws: AWSConfig = Field(default_factory=AWSConfig)

    # Logs informational messages; defaults to the module logger.
    log: Optional[LogFunc] = None

    # Long polling wait per receive, 0-20 seconds.
    receive_wait_seconds: int = Field(default=DEFAULT_RECEIVE_WAIT_SECONDS, ge=0, le=20)

    # Messages fetched per receive, 1-10.
    max_messages: int = Field(default=10, ge=1, le=10)

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def check(self) -> None:
        self.aws.check()
        if not self.queue:
            raise ConfigurationError("queue is required")


class ClientOptions(_Options):
    """Options for a Client.

    `queue` is the queue the client listens on for responses. When
    `request_queue` is set, the client also sends an explicit notification
    there after uploading a request; otherwise it relies on the bucket's own
    event notifications.
    """
    request_queue: Optional[str] = None

    # Maximum time to wait for a response; 0 means the default.
    timeout: float = Field(default=DEFAULT_TIMEOUT_SECONDS, ge=0)

    def check(self) -> None:
        super().check()
        if not self.timeout:
            self.timeout = DEFAULT_TIMEOUT_SECONDS

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **overrides) -> "ClientOptions":
        settings = settings or get_settings()
        values = dict(
            queue=settings.client_queue_url or "",
            request_queue=settings.server_queue_url,
            aws=AWSConfig.from_settings(settings),
            timeout=settings.timeout_seconds,
            receive_wait_seconds=settings.receive_wait_seconds,
        )
        values.update(overrides)
        return cls(**values)


class ServerOptions(_Options):
    """Options for a Server.

    `queue` is the queue the server listens on for requests. `handlers` maps
    an operation name to a callable taking the local path of the request
    file and returning an `Output`; it may be a plain function or a
    coroutine function.
    """
    handlers: Dict[str, Callable[..., Any]] = Field(default_factory=dict)

    response_queue: Optional[str] = None

    # Upper bound for the back off after a failed receive.
    max_backoff_seconds: float = Field(default=30.0, ge=0)

    # Pause between empty receives when long polling is disabled.
    idle_sleep_seconds: float = Field(default=1.0, ge=0)

    def check(self) -> None:
        super().check()
        if not self.handlers:
            raise ConfigurationError("at least one handler is required")

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **overrides) -> "ServerOptions":
        settings = settings or get_settings()
        values = dict(
            queue=settings.server_queue_url or "",
            response_queue=settings.client_queue_url,
            aws=AWSConfig.from_settings(settings),
            receive_wait_seconds=settings.receive_wait_seconds,
        )
        values.update(overrides)
        return cls(**values)
