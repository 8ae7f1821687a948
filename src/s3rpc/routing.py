"""Partitioning of a received batch for one waiting call."""
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from s3rpc.correlation import contains_id
from s3rpc.errors import RoutingError
from s3rpc.schemas import QueueMessage


@dataclass
class Routing:
    # The response for this call, if the batch holds it.
    matched: Optional[QueueMessage] = None
    # Redeliveries of the same response; safe to delete.
    duplicates: List[QueueMessage] = field(default_factory=list)
    # Messages for other calls; must be released, never deleted.
    foreign: List[QueueMessage] = field(default_factory=list)


def route_batch(messages: Iterable[QueueMessage], bucket: str, call_id: str) -> Routing:
    """Split messages into this call's response, its duplicates and the rest.

    Raises RoutingError if any message names a bucket other than `bucket`,
    before the caller has acted on any message of the batch.
    """
    messages = list(messages)
    for m in messages:
        if m.bucket != bucket:
            raise RoutingError(bucket, m.bucket)

    routing = Routing()
    for m in messages:
        if not contains_id(m.key, call_id):
            routing.foreign.append(m)
        elif routing.matched is None:
            routing.matched = m
        else:
            routing.duplicates.append(m)
    return routing
