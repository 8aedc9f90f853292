"""Generation task and stage reporting models."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class TaskStatus(str, Enum):
    """Status of an asynchronous video generation task."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMEOUT = "timeout"


class GenerationTask(BaseModel):
    """Handle for a submitted video generation."""

    task_id: str = Field(..., description="Upstream task identifier")
    status: TaskStatus = Field(default=TaskStatus.PENDING)
    created_at: datetime = Field(default_factory=datetime.now)
    result_url: Optional[str] = Field(None, description="Video URL once completed")
    error: Optional[str] = Field(None, description="Upstream error message")
    polls: int = Field(default=0, description="Status queries made so far")
    unrecognized_status: Optional[str] = Field(
        None,
        description="Status token that kept coming back unrecognized",
    )

    class Config:
        """Pydantic config."""
        frozen = False


class PollResult(BaseModel):
    """One classified status response.

    ``status`` is None when the upstream sent no status or one we do not
    recognize; ``raw_status`` keeps whatever it sent.
    """

    status: Optional[TaskStatus] = None
    raw_status: Optional[str] = None
    result_url: Optional[str] = None
    error: Optional[str] = None


class StageReport(BaseModel):
    """Succeeded/failed counts for one pipeline stage."""

    stage: str
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    cancelled: bool = False

    class Config:
        """Pydantic config."""
        frozen = False

    @property
    def total(self) -> int:
        return self.succeeded + self.failed + self.skipped
