from sprintpulse.logic.forecasting import (
    VelocityPredictor,
    build_history,
    current_progress_from_snapshot,
    fallback_prediction,
    predict_velocity,
)
from sprintpulse.logic.metrics import aggregate_items, build_snapshot, summarize_team_load
from sprintpulse.logic.registry import ProjectionRegistry
from sprintpulse.logic.scoring import (
    HealthScorer,
    HistoricalFactorProvider,
    NeutralFactorProvider,
    VelocityHistoryFactorProvider,
    compute_health,
)
from sprintpulse.logic.timeline import compute_time_window, ideal_burndown

__all__ = [
    "HealthScorer",
    "HistoricalFactorProvider",
    "NeutralFactorProvider",
    "ProjectionRegistry",
    "VelocityHistoryFactorProvider",
    "VelocityPredictor",
    "aggregate_items",
    "build_history",
    "build_snapshot",
    "compute_health",
    "compute_time_window",
    "current_progress_from_snapshot",
    "fallback_prediction",
    "ideal_burndown",
    "predict_velocity",
    "summarize_team_load",
]
