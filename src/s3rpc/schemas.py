###########################################
# --- Call envelopes and queue messages --- #
###########################################

from typing import Dict

from pydantic import BaseModel, ConfigDict, Field


class Input(BaseModel):
    """The request side of a call: a local file plus metadata."""
    filename: str = Field(description="Path of the local file to upload.")
    metadata: Dict[str, str] = Field(
        default_factory=dict,
        description="Stored with the object as S3 user metadata.",
    )


class Output(BaseModel):
    """The response side of a call.

    On the client, `filename` lives in the client's temporary directory and is
    removed when the client is closed.
    """
    filename: str = Field(description="Path of the local result file.")
    metadata: Dict[str, str] = Field(default_factory=dict)


class QueueMessage(BaseModel):
    """One object notification received from the queue."""
    bucket: str
    key: str
    receipt_handle: str

    model_config = ConfigDict(frozen=True)
