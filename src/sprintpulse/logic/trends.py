from typing import Optional, Sequence

from sprintpulse.data.dto import HealthTrend, ScheduleTrend, VelocityTrend

# Health score points a new score must move before the trend changes
HEALTH_TREND_DELTA = 5
# Regression slope (points per iteration) separating improving/declining velocity
VELOCITY_SLOPE_THRESHOLD = 1.0
# Completion-rate deviation separating ahead/behind from on-track
COMPLETION_RATE_DEVIATION = 0.1


def classify_health_trend(score: float, prior_score: Optional[float]) -> HealthTrend:
    if prior_score is None:
        return HealthTrend.STABLE
    diff = score - prior_score
    if diff > HEALTH_TREND_DELTA:
        return HealthTrend.IMPROVING
    if diff < -HEALTH_TREND_DELTA:
        return HealthTrend.DECLINING
    return HealthTrend.STABLE


def regression_slope(values: Sequence[float]) -> float:
    """Ordinary least squares slope of values against their index."""
    n = len(values)
    if n < 2:
        return 0.0
    sum_x = sum_y = sum_xy = sum_x2 = 0.0
    for i, v in enumerate(values):
        sum_x += i
        sum_y += v
        sum_xy += i * v
        sum_x2 += i * i
    # x is the iteration index, so the denominator is never zero for n >= 2
    return (n * sum_xy - sum_x * sum_y) / (n * sum_x2 - sum_x * sum_x)


def classify_velocity_trend(completed_points: Sequence[float]) -> VelocityTrend:
    if len(completed_points) < 2:
        return VelocityTrend.STABLE
    slope = regression_slope(completed_points)
    if slope > VELOCITY_SLOPE_THRESHOLD:
        return VelocityTrend.IMPROVING
    if slope < -VELOCITY_SLOPE_THRESHOLD:
        return VelocityTrend.DECLINING
    return VelocityTrend.STABLE


def classify_schedule_trend(actual_progress: float, expected_progress: float) -> ScheduleTrend:
    """Compares completed fraction with the fraction history says we should have."""
    if actual_progress > expected_progress + COMPLETION_RATE_DEVIATION:
        return ScheduleTrend.AHEAD
    if actual_progress < expected_progress - COMPLETION_RATE_DEVIATION:
        return ScheduleTrend.BEHIND
    return ScheduleTrend.ON_TRACK
