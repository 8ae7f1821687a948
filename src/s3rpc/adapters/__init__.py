"""
Adapter layer for s3rpc.

Thin wrappers over the boto3 S3 and SQS clients exposing only the operations
the protocol needs. botocore errors are translated to TransportError.
"""
import logging
from typing import Any

import boto3

from s3rpc.options import AWSConfig

logger = logging.getLogger(__name__)


def create_client(service_name: str, aws: AWSConfig) -> Any:
    """Create a boto3 client for service_name from static options."""
    try:
        client = boto3.client(service_name, **aws.client_kwargs())
        logger.debug(f"Created {service_name} client in {aws.region}")
        return client
    except Exception as e:
        logger.error(f"Error creating {service_name} client: {str(e)}")
        raise
