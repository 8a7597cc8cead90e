from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from sprintpulse.data.dto import HistoricalIteration
from sprintpulse.domain.models import IterationDescriptor, WorkItem, as_utc


class HistoricalIterationIn(BaseModel):
    id: str
    completed_points: float = Field(0.0, ge=0)
    total_points: float = Field(0.0, ge=0)
    name: Optional[str] = None

    def to_dto(self) -> HistoricalIteration:
        return HistoricalIteration(
            id=self.id,
            completed_points=self.completed_points,
            total_points=self.total_points,
            name=self.name,
        )


class AnalysisRequest(BaseModel):
    """
    Offline analysis input: one iteration, its items and optional closed-iteration history
    (chronological, oldest first).
    """
    iteration: IterationDescriptor
    items: List[WorkItem] = Field(default_factory=list)
    history: List[HistoricalIterationIn] = Field(default_factory=list)
    prior_score: Optional[float] = Field(None, ge=0, le=100)
    now: Optional[datetime] = None

    def history_dtos(self) -> List[HistoricalIteration]:
        return [h.to_dto() for h in self.history]

    @field_validator("now")
    @classmethod
    def ensure_tz(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else v
