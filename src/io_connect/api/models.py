"""Result DTOs returned by the DataAccess facade."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class RetrievalStatus(str, Enum):
    SUCCESS = "SUCCESS"
    EMPTY = "EMPTY"  # call succeeded, no datapoints
    FAILURE = "FAILURE"


class RetrievalResult(BaseModel):
    """Outcome of one retrieval, keeping "no data" apart from "failed"."""

    device_id: str
    status: RetrievalStatus
    fetched_at_utc: str  # ISO 8601
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    error: Optional[str] = None
    error_kind: Optional[str] = None  # exception class name
    duration_seconds: Optional[float] = None

    @property
    def ok(self) -> bool:
        return self.status != RetrievalStatus.FAILURE
