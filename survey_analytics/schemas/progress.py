from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

from survey_analytics.utils.clock import utc_now

ProgressStatus = Literal["queued", "running", "item", "completed", "failed", "refresh"]


class ProgressEvent(BaseModel):
    """One transient status update on a progress channel.

    ``target`` names the UI region the event replaces (``mode="replace"``)
    or appends to (``mode="append"``, used for item arrivals).
    """
    job_id: str
    survey_id: int
    operation: str
    status: ProgressStatus
    message: str
    percentage: int = Field(0, ge=0, le=100)
    target: str
    mode: Literal["replace", "append"] = "replace"
    current: Optional[int] = None
    total: Optional[int] = None
    result: Optional[Any] = None
    error_kind: Optional[str] = None
    refresh_after_ms: Optional[int] = None
    refresh_url: Optional[str] = None
    update_id: str
    timestamp: datetime = Field(default_factory=utc_now)

    @property
    def is_terminal(self) -> bool:
        return self.status in ("completed", "failed")
