from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Any


class HealthTrend(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


class VelocityTrend(str, Enum):
    """Direction of completed points across closed iterations."""
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


class ScheduleTrend(str, Enum):
    AHEAD = "ahead"
    BEHIND = "behind"
    ON_TRACK = "on_track"
    UNKNOWN = "unknown"


@dataclass
class TeamMemberLoad:
    id: str
    name: str
    effort_points: float
    task_count: int
    load_percent: int  # effort / standard capacity, 100 == full


@dataclass
class TeamLoadSummary:
    members: List[TeamMemberLoad] = field(default_factory=list)  # sorted by load, highest first
    member_count: int = 0
    average_load: int = 0
    overloaded_count: int = 0
    underutilized_count: int = 0


@dataclass
class TimeWindow:
    """Whole-day figures for an iteration relative to one instant. Not clamped."""
    total_days: int
    elapsed_days: int
    remaining_days: int
    ideal_progress: int  # percent of the window that has elapsed
    # Exact fractional spans behind the whole-day figures, read by the forecaster
    total_span: Optional[float] = None
    elapsed_span: Optional[float] = None
    remaining_span: Optional[float] = None

    @property
    def time_progress(self) -> float:
        """Elapsed fraction of the window in [0, 1]; 0 for malformed windows."""
        if self.total_days <= 0:
            return 0.0
        return min(1.0, max(0, self.elapsed_days) / self.total_days)

    @property
    def exact_time_progress(self) -> float:
        """time_progress over the fractional spans, when they are known."""
        if self.total_span is None or self.elapsed_span is None:
            return self.time_progress
        if self.total_span <= 0:
            return 0.0
        return min(1.0, max(0.0, self.elapsed_span) / self.total_span)


@dataclass
class BurndownPoint:
    day: int
    remaining: int


@dataclass
class MetricsSnapshot:
    iteration_id: str
    captured_at: datetime

    total_items: int
    completed_items: int
    in_progress_items: int
    todo_items: int

    total_points: float
    completed_points: float
    in_progress_points: float
    todo_points: float
    remaining_points: float
    progress_percentage: int

    blocked_count: int
    team: TeamLoadSummary
    time: TimeWindow
    stuck_item_ids: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["captured_at"] = self.captured_at.isoformat()
        payload["time"]["time_progress"] = round(self.time.time_progress, 4)
        return payload


@dataclass
class HealthRecord:
    score: int  # 0-100
    trend: HealthTrend
    previous_score: Optional[int] = None
    factors: Dict[str, float] = field(default_factory=dict)  # factor name -> 0-100 sub-score

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class HistoricalIteration:
    id: str
    completed_points: float
    total_points: float
    name: Optional[str] = None

    @property
    def completion_rate(self) -> float:
        if self.total_points <= 0:
            return 0.0
        return self.completed_points / self.total_points


@dataclass
class HistoricalVelocity:
    iterations: List[HistoricalIteration]  # chronological, oldest first
    avg_velocity: float
    avg_completion_rate: float
    trend: VelocityTrend
    data_points: int


@dataclass
class CurrentProgress:
    """Progress figures of the running iteration as consumed by the predictor."""
    iteration_id: str
    total_points: float
    completed_points: float
    in_progress_points: float
    remaining_points: float
    time_progress: float  # 0..1
    elapsed_days: float
    remaining_days: float
    total_days: float
    item_count: int = 0
    completed_count: int = 0


@dataclass
class ModelEstimate:
    name: str
    value: int  # completion percentage reported by the model (unclamped)
    weight: float


@dataclass
class PredictionRecord:
    current_points: float
    predicted_points: int
    completion_percentage: int  # 0-100
    confidence: float  # 0.5-0.95
    trend: ScheduleTrend
    factors: List[str] = field(default_factory=list)
    model_breakdown: List[ModelEstimate] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Risk:
    type: str
    severity: str  # high | medium
    description: str


@dataclass
class Alert:
    type: str
    severity: str  # critical | warning
    title: str
    message: str
    items: List[str] = field(default_factory=list)
    action_required: bool = False
