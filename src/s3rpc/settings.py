# src/s3rpc/settings.py
from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_REGION = "eu-north-1"
DEFAULT_TIMEOUT_SECONDS = 5 * 60
DEFAULT_RECEIVE_WAIT_SECONDS = 20


class Settings(BaseSettings):
    """
    Environment driven settings for clients, servers and the CLI.

    Configuration precedence:
    1. Environment variables (highest priority)
    2. .env file (if exists)
    3. Default values in this class (lowest priority)

    Usage:
        from s3rpc.settings import get_settings
        settings = get_settings()
        bucket_name = settings.s3_bucket_name
    """

    # AWS Core Settings
    aws_region: str = Field(
        default=DEFAULT_REGION,
        alias="AWS_DEFAULT_REGION"
    )

    aws_access_key_id: Optional[str] = Field(
        default=None,
        alias="AWS_ACCESS_KEY_ID"
    )

    aws_secret_access_key: Optional[str] = Field(
        default=None,
        alias="AWS_SECRET_ACCESS_KEY"
    )

    aws_endpoint_url: Optional[str] = Field(
        default=None,
        alias="AWS_ENDPOINT_URL",
        description="Alternative endpoint, e.g. a local moto server"
    )

    # S3 Configuration
    s3_bucket_name: Optional[str] = Field(
        default=None,
        alias="S3RPC_BUCKET",
        description="Bucket holding request and response objects"
    )

    # SQS Configuration
    client_queue_url: Optional[str] = Field(
        default=None,
        alias="S3RPC_CLIENT_QUEUE",
        description="Queue the client listens on for toClient notifications"
    )

    server_queue_url: Optional[str] = Field(
        default=None,
        alias="S3RPC_SERVER_QUEUE",
        description="Queue the server listens on for toServer notifications"
    )

    # Call behaviour
    timeout_seconds: float = Field(
        default=DEFAULT_TIMEOUT_SECONDS,
        alias="S3RPC_TIMEOUT",
        description="Maximum time a client waits for a response"
    )

    receive_wait_seconds: int = Field(
        default=DEFAULT_RECEIVE_WAIT_SECONDS,
        alias="S3RPC_RECEIVE_WAIT",
        description="SQS long polling wait per receive"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level"
    )

    @field_validator("receive_wait_seconds")
    @classmethod
    def validate_receive_wait(cls, v):
        """SQS accepts long polling waits between 0 and 20 seconds."""
        if not 0 <= v <= 20:
            raise ValueError(f"receive wait must be between 0 and 20 seconds, got {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v):
        return v.upper()

    def masked(self) -> dict:
        """Settings as a dictionary with the secret key hidden, for display."""
        values = self.model_dump()
        if values.get("aws_secret_access_key"):
            values["aws_secret_access_key"] = "****"
        return values

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return Settings()
