"""Discriminated status returned by the extraction status poller."""

from __future__ import annotations

import uuid
from typing import Annotated, Literal

from pydantic import BaseModel, Field, TypeAdapter


class QueuedStatus(BaseModel):
    state: Literal["queued"] = "queued"


class ProcessingStatus(BaseModel):
    state: Literal["processing"] = "processing"
    progress: int = Field(ge=0, le=100)
    message: str


class CompletedStatus(BaseModel):
    state: Literal["completed"] = "completed"
    extraction_id: uuid.UUID
    items_count: int
    quality_score: float


class FailedStatus(BaseModel):
    state: Literal["failed"] = "failed"
    message: str


ExtractionStatus = Annotated[
    QueuedStatus | ProcessingStatus | CompletedStatus | FailedStatus,
    Field(discriminator="state"),
]

extraction_status_adapter: TypeAdapter[ExtractionStatus] = TypeAdapter(ExtractionStatus)

TERMINAL_STATES = frozenset({"completed", "failed"})


def is_terminal(status: QueuedStatus | ProcessingStatus | CompletedStatus | FailedStatus) -> bool:
    """True once polling can stop."""
    return status.state in TERMINAL_STATES
