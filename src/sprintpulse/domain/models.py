from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class StatusCategory(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"

    @classmethod
    def parse(cls, value: Any) -> "StatusCategory":
        """
        Lenient mapping from tracker status-category keys.
        Anything unrecognized (including Jira's 'new') lands in TODO.
        """
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().lower().replace("-", "_")
        return _STATUS_ALIASES.get(key, cls.TODO)


_STATUS_ALIASES = {
    "done": StatusCategory.DONE,
    "indeterminate": StatusCategory.IN_PROGRESS,
    "in_progress": StatusCategory.IN_PROGRESS,
    "in progress": StatusCategory.IN_PROGRESS,
    "inprogress": StatusCategory.IN_PROGRESS,
    "review": StatusCategory.IN_PROGRESS,
    "todo": StatusCategory.TODO,
    "to do": StatusCategory.TODO,
    "new": StatusCategory.TODO,
}


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class AssigneeRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Tracker account id")
    display_name: str = Field("", description="Human readable name")


class WorkItem(BaseModel):
    """
    Immutable snapshot of a single tracker issue for one iteration fetch.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Issue key or id")
    status_category: StatusCategory = Field(StatusCategory.TODO, description="Normalized status bucket")
    effort_points: float = Field(0.0, description="Story points; missing or negative values become 0")
    assignee: Optional[AssigneeRef] = None
    last_updated_at: datetime = Field(..., description="Last activity timestamp")

    @field_validator("status_category", mode="before")
    @classmethod
    def parse_status(cls, v: Any) -> StatusCategory:
        return StatusCategory.parse(v)

    @field_validator("effort_points", mode="before")
    @classmethod
    def normalize_effort(cls, v: Any) -> float:
        if v is None or v == "":
            return 0.0
        try:
            points = float(v)
        except (TypeError, ValueError):
            return 0.0
        return max(0.0, points)

    @field_validator("last_updated_at")
    @classmethod
    def ensure_tz(cls, v: datetime) -> datetime:
        return as_utc(v)


class IterationDescriptor(BaseModel):
    """
    A sprint window. end_date > start_date is expected but not enforced;
    the time model degrades to neutral values when it is violated.
    """
    model_config = ConfigDict(frozen=True)

    id: str
    start_date: datetime
    end_date: datetime
    board_id: Optional[str] = None
    name: Optional[str] = None

    @field_validator("id", "board_id", mode="before")
    @classmethod
    def stringify_ids(cls, v: Any) -> Optional[str]:
        if v is None:
            return v
        return str(v).strip()

    @field_validator("start_date", "end_date")
    @classmethod
    def ensure_tz(cls, v: datetime) -> datetime:
        return as_utc(v)
