"""
Velocity forecasting for the running iteration.

Blends four projection models (registered with fixed weights) into a
completion-percentage forecast when closed-iteration history exists, and
falls back to a single linear projection when it does not.

Usage:
    history = build_history(closed_iterations)
    current = current_progress_from_snapshot(snapshot)
    prediction = predict_velocity(current, history)
"""
from statistics import mean, pvariance
from typing import Iterable, List, Optional
import logging

from sprintpulse.config import EngineSettings, settings
from sprintpulse.data.dto import (
    CurrentProgress,
    HistoricalIteration,
    HistoricalVelocity,
    MetricsSnapshot,
    PredictionRecord,
    ScheduleTrend,
    VelocityTrend,
)
from sprintpulse.logic.registry import ProjectionRegistry
from sprintpulse.logic.trends import classify_schedule_trend, classify_velocity_trend
from sprintpulse.utils.numbers import clamp, round_half_up, safe_ratio

logger = logging.getLogger(__name__)

MIN_CONFIDENCE = 0.5
MAX_CONFIDENCE = 0.95
SIMPLE_PROJECTION_CONFIDENCE = 0.6
CONFIDENCE_PER_DATA_POINT = 0.05
TIME_PROGRESS_CONFIDENCE = 0.2
LOW_VARIANCE = 100.0
VERY_LOW_VARIANCE = 50.0
VARIANCE_BONUS = 0.1

# Share of in-flight points assumed to land before the sprint closes
IN_PROGRESS_LANDING_RATE = 0.7
# Percentage points added/removed by the historical model for a velocity trend
TREND_ADJUSTMENT = 5.0
# Fraction of scope by which progress may lead/trail elapsed time before it is noted
SCHEDULE_DEVIATION = 0.1
DEADLINE_WARNING_DAYS = 2

NO_HISTORY_NOTE = "No historical data available"
CURRENT_ONLY_NOTE = "Prediction based on current sprint progress only"
FALLBACK_NOTE = "Unable to generate prediction"
TYPICAL_NOTE = "On track for typical completion"


def build_history(
    iterations: Iterable[HistoricalIteration],
    lookback: Optional[int] = None,
) -> Optional[HistoricalVelocity]:
    """
    Summarizes the most recent closed iterations (chronological, oldest first).
    Returns None when there is nothing to learn from.
    """
    lookback = settings.engine.lookback_sprints if lookback is None else lookback
    recent = list(iterations)[-lookback:] if lookback > 0 else []
    if not recent:
        return None

    velocities = [it.completed_points for it in recent]
    return HistoricalVelocity(
        iterations=recent,
        avg_velocity=mean(velocities),
        avg_completion_rate=mean(it.completion_rate for it in recent),
        trend=classify_velocity_trend(velocities),
        data_points=len(recent),
    )


def current_progress_from_snapshot(snapshot: MetricsSnapshot) -> CurrentProgress:
    """
    Forecasting runs on fractional days; the whole-day figures of the
    window only serve the health score.
    """
    window = snapshot.time
    total = window.total_span if window.total_span is not None else window.total_days
    elapsed = window.elapsed_span if window.elapsed_span is not None else window.elapsed_days
    remaining = window.remaining_span if window.remaining_span is not None else window.remaining_days
    return CurrentProgress(
        iteration_id=snapshot.iteration_id,
        total_points=snapshot.total_points,
        completed_points=snapshot.completed_points,
        in_progress_points=snapshot.in_progress_points,
        remaining_points=snapshot.remaining_points,
        time_progress=window.exact_time_progress,
        elapsed_days=max(0.0, elapsed),
        remaining_days=max(0.0, remaining),
        total_days=total,
        item_count=snapshot.total_items,
        completed_count=snapshot.completed_items,
    )


# ----- projection models: (current, history) -> completion percentage -----

def linear_velocity_projection(current: CurrentProgress, history: Optional[HistoricalVelocity]) -> float:
    """Current daily velocity extended over the whole window, as a share of commitment."""
    if current.time_progress == 0 or current.elapsed_days <= 0:
        return 0.0
    rate = current.completed_points / current.elapsed_days
    return safe_ratio(rate * current.total_days, current.total_points) * 100


def historical_rate_projection(current: CurrentProgress, history: Optional[HistoricalVelocity]) -> float:
    """Average historical completion rate, nudged by the velocity trend."""
    if history is None:
        return 0.0
    adjustment = {
        VelocityTrend.IMPROVING: TREND_ADJUSTMENT,
        VelocityTrend.DECLINING: -TREND_ADJUSTMENT,
    }.get(history.trend, 0.0)
    return history.avg_completion_rate * 100 + adjustment


def burn_rate_projection(current: CurrentProgress, history: Optional[HistoricalVelocity]) -> float:
    # Same arithmetic as the linear model, reported separately in the breakdown
    if current.elapsed_days <= 0:
        return 0.0
    daily_rate = current.completed_points / current.elapsed_days
    return safe_ratio(daily_rate * current.total_days, current.total_points) * 100


def in_progress_projection(current: CurrentProgress, history: Optional[HistoricalVelocity]) -> float:
    projected = current.completed_points + current.in_progress_points * IN_PROGRESS_LANDING_RATE
    return safe_ratio(projected, current.total_points) * 100


def build_default_registry() -> ProjectionRegistry:
    registry = ProjectionRegistry()
    registry.register("linear", 0.30, linear_velocity_projection)
    registry.register("historical", 0.30, historical_rate_projection)
    registry.register("burn_rate", 0.25, burn_rate_projection)
    registry.register("in_progress", 0.15, in_progress_projection)
    return registry


default_registry = build_default_registry()


class VelocityPredictor:
    """
    Forecasts sprint completion from current progress and closed-iteration history.
    """

    def __init__(
        self,
        registry: Optional[ProjectionRegistry] = None,
        options: Optional[EngineSettings] = None,
    ):
        self.registry = registry or default_registry
        self.options = options or settings.engine

    def predict(
        self,
        current: CurrentProgress,
        history: Optional[HistoricalVelocity] = None,
    ) -> PredictionRecord:
        if history is None or history.data_points == 0:
            return self.simple_projection(current)

        results = self.registry.evaluate(current, history)
        completion = clamp(self.registry.blend(results), 0, 100)

        return PredictionRecord(
            current_points=current.completed_points,
            predicted_points=round_half_up(completion / 100 * current.total_points),
            completion_percentage=round_half_up(completion),
            confidence=self.confidence(current, history, [value for _, value in results]),
            trend=self.determine_trend(current, history),
            factors=self.generate_factors(current, history),
            model_breakdown=self.registry.breakdown(results),
        )

    def simple_projection(self, current: CurrentProgress) -> PredictionRecord:
        """Linear projection used when there is no history to blend against."""
        if current.time_progress == 0:
            return PredictionRecord(
                current_points=0,
                predicted_points=0,
                completion_percentage=0,
                confidence=MIN_CONFIDENCE,
                trend=ScheduleTrend.UNKNOWN,
                factors=[NO_HISTORY_NOTE],
            )

        predicted = round_half_up(current.completed_points / current.time_progress)
        completion = safe_ratio(predicted, current.total_points) * 100

        return PredictionRecord(
            current_points=current.completed_points,
            predicted_points=predicted,
            completion_percentage=round_half_up(clamp(completion, 0, 100)),
            confidence=SIMPLE_PROJECTION_CONFIDENCE,
            trend=ScheduleTrend.UNKNOWN,
            factors=[CURRENT_ONLY_NOTE],
        )

    def confidence(
        self,
        current: CurrentProgress,
        history: Optional[HistoricalVelocity],
        model_values: List[float],
    ) -> float:
        confidence = MIN_CONFIDENCE

        # More history and more elapsed time both tighten the forecast
        if history is not None:
            confidence += min(history.data_points, self.options.lookback_sprints) * CONFIDENCE_PER_DATA_POINT
        confidence += clamp(current.time_progress, 0, 1) * TIME_PROGRESS_CONFIDENCE

        # Models agreeing with each other
        if model_values:
            variance = pvariance(model_values)
            if variance < LOW_VARIANCE:
                confidence += VARIANCE_BONUS
            if variance < VERY_LOW_VARIANCE:
                confidence += VARIANCE_BONUS

        return clamp(confidence, MIN_CONFIDENCE, MAX_CONFIDENCE)

    @staticmethod
    def determine_trend(current: CurrentProgress, history: Optional[HistoricalVelocity]) -> ScheduleTrend:
        if history is None:
            return ScheduleTrend.UNKNOWN
        expected = current.time_progress * history.avg_completion_rate
        actual = safe_ratio(current.completed_points, current.total_points)
        return classify_schedule_trend(actual, expected)

    @staticmethod
    def generate_factors(current: CurrentProgress, history: Optional[HistoricalVelocity]) -> List[str]:
        factors: List[str] = []

        if history is not None:
            if history.trend == VelocityTrend.IMPROVING:
                factors.append("Team velocity is improving")
            elif history.trend == VelocityTrend.DECLINING:
                factors.append("Team velocity is declining")

        progress = safe_ratio(current.completed_points, current.total_points)
        if progress > current.time_progress + SCHEDULE_DEVIATION:
            factors.append("Ahead of schedule")
        elif progress < current.time_progress - SCHEDULE_DEVIATION:
            factors.append("Behind schedule")

        if current.in_progress_points > 0:
            factors.append(f"{_format_points(current.in_progress_points)} points in progress")

        if current.remaining_days <= DEADLINE_WARNING_DAYS:
            factors.append("Sprint ending soon")

        return factors or [TYPICAL_NOTE]


def fallback_prediction() -> PredictionRecord:
    return PredictionRecord(
        current_points=0,
        predicted_points=0,
        completion_percentage=0,
        confidence=MIN_CONFIDENCE,
        trend=ScheduleTrend.UNKNOWN,
        factors=[FALLBACK_NOTE],
    )


def predict_velocity(
    current: CurrentProgress,
    history: Optional[HistoricalVelocity] = None,
    options: Optional[EngineSettings] = None,
) -> PredictionRecord:
    """
    Forecast entry point. Never raises: a failed run yields the canned
    fallback prediction instead.
    """
    try:
        return VelocityPredictor(options=options).predict(current, history)
    except Exception:
        logger.exception(f"Velocity prediction failed for iteration {getattr(current, 'iteration_id', None)}")
        return fallback_prediction()


def _format_points(points: float) -> str:
    return str(int(points)) if float(points).is_integer() else f"{points:g}"
