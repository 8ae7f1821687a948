"""Call ids and object keys.

Every call is identified by a lowercase ULID. The id is embedded in the object
keys of both the request and the response, so the direction, the operation
and the call id can all be recovered from a key alone::

    toServer/transform/01hq3w6v2j8k9m4n5p6q7r8s9t_report.txt
    toClient/transform/01hq3w6v2j8k9m4n5p6q7r8s9t_report-changed.txt
"""
import os

from ulid import ULID

from s3rpc.errors import InvalidKeyError

TO_SERVER = "toServer"
TO_CLIENT = "toClient"

DIRECTIONS = (TO_SERVER, TO_CLIENT)


def new_call_id() -> str:
    """Return a fresh, time ordered call id.

    ULIDs are case insensitive; lower case is safer in object keys and
    local filenames.
    """
    return str(ULID()).lower()


def basename(filename: str) -> str:
    """Final path segment of a local filename, by the host's path rules."""
    return os.path.basename(filename)


def build_key(direction: str, operation: str, call_id: str, filename: str) -> str:
    if direction not in DIRECTIONS:
        raise ValueError(f"direction must be one of {DIRECTIONS}, got {direction!r}")
    if not operation or "/" in operation:
        raise ValueError(f"invalid operation name: {operation!r}")
    return f"{direction}/{operation}/{call_id}_{basename(filename)}"


def _split(key: str) -> tuple:
    parts = key.split("/", 2)
    if len(parts) != 3 or not all(parts) or "_" not in parts[2]:
        raise InvalidKeyError(f"not an s3rpc object key: {key!r}")
    return parts[0], parts[1], parts[2]


def extract_direction(key: str) -> str:
    return _split(key)[0]


def extract_operation(key: str) -> str:
    return _split(key)[1]


def extract_call_id(key: str) -> str:
    return _split(key)[2].split("_", 1)[0]


def contains_id(key: str, call_id: str) -> bool:
    return call_id in key


def response_key(request_key: str, output_filename: str) -> str:
    """The toClient key answering request_key, sharing its operation and id."""
    _, operation, _ = _split(request_key)
    return build_key(TO_CLIENT, operation, extract_call_id(request_key), output_filename)
