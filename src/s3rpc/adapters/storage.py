"""Object store adapter: put, get and delete objects with user metadata."""
import logging
from typing import TYPE_CHECKING, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError

from s3rpc.errors import TransportError

if TYPE_CHECKING:
    from mypy_boto3_s3 import S3Client

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 1024 * 1024


class ObjectStore:
    """Objects in a single S3 bucket."""

    def __init__(self, s3_client: "S3Client", bucket: str):
        self.s3 = s3_client
        self.bucket = bucket

    def put(self, key: str, local_path: str, metadata: Optional[Dict[str, str]] = None) -> None:
        """
        Upload a local file under key.

        :param key: object key in the bucket.
        :param local_path: file whose bytes become the object body.
        :param metadata: stored as S3 user metadata and returned by `get`.
        """
        try:
            with open(local_path, "rb") as file_data:
                self.s3.put_object(
                    Bucket=self.bucket,
                    Key=key,
                    Body=file_data,
                    Metadata=dict(metadata or {}),
                    ContentType="application/octet-stream",
                )
        except (ClientError, BotoCoreError) as e:
            raise TransportError("put", key, str(e)) from e
        logger.debug(f"Uploaded {local_path} to s3://{self.bucket}/{key}")

    def get(self, key: str, local_path: str) -> Dict[str, str]:
        """
        Download key into local_path, truncating it, and return the object's metadata.
        """
        try:
            response = self.s3.get_object(Bucket=self.bucket, Key=key)
            body = response["Body"]
            with open(local_path, "wb") as f:
                for chunk in body.iter_chunks(_CHUNK_SIZE):
                    f.write(chunk)
        except (ClientError, BotoCoreError) as e:
            raise TransportError("get", key, str(e)) from e
        logger.debug(f"Downloaded s3://{self.bucket}/{key} to {local_path}")
        return dict(response.get("Metadata") or {})

    def delete(self, key: str) -> None:
        try:
            self.s3.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as e:
            raise TransportError("delete", key, str(e)) from e
