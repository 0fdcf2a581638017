"""
Run result models returned to the trigger (HTTP or CLI).
"""
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class RunStatus(str, Enum):
    SUCCESS = "Success"
    FAILED = "Failed"


class SourceStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"


class SourceOutcome(BaseModel):
    """Per-source contribution to a run."""
    name: str
    status: SourceStatus
    channels: int = 0
    error: Optional[str] = None


class RunResult(BaseModel):
    """Outcome of one end-to-end pipeline run."""
    status: RunStatus
    channels: int = 0
    catalogs: int = 0
    elapsed_ms: int = 0
    sources: list[SourceOutcome] = Field(default_factory=list)
    message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == RunStatus.SUCCESS
