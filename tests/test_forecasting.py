import logging
from datetime import timedelta

import pytest

from sprintpulse.data.dto import CurrentProgress, HistoricalIteration, ScheduleTrend, VelocityTrend
from sprintpulse.domain.models import IterationDescriptor
from sprintpulse.logic.forecasting import (
    CURRENT_ONLY_NOTE,
    FALLBACK_NOTE,
    MAX_CONFIDENCE,
    MIN_CONFIDENCE,
    NO_HISTORY_NOTE,
    TYPICAL_NOTE,
    VelocityPredictor,
    build_history,
    current_progress_from_snapshot,
    default_registry,
    predict_velocity,
)
from sprintpulse.logic.metrics import build_snapshot
from sprintpulse.logic.registry import ProjectionRegistry


def _current(total=40, completed=20, in_progress=10, elapsed=5, total_days=10):
    time_progress = min(1.0, max(0, elapsed) / total_days) if total_days > 0 else 0.0
    return CurrentProgress(
        iteration_id="s9",
        total_points=total,
        completed_points=completed,
        in_progress_points=in_progress,
        remaining_points=total - completed,
        time_progress=time_progress,
        elapsed_days=max(0, elapsed),
        remaining_days=max(0, total_days - elapsed),
        total_days=total_days,
    )


def _history(*pairs):
    return build_history(
        [HistoricalIteration(id=str(i), completed_points=c, total_points=t) for i, (c, t) in enumerate(pairs)]
    )


def _stub_registry(values):
    registry = ProjectionRegistry()
    for entry, value in zip(default_registry.get_all(), values):
        registry.register(entry.name, entry.weight, lambda current, history, v=value: v)
    return registry


def test_default_weights_sum_to_one():
    assert default_registry.total_weight == pytest.approx(1.0)
    assert [m.name for m in default_registry.get_all()] == ["linear", "historical", "burn_rate", "in_progress"]


def test_golden_blend():
    registry = _stub_registry([90, 80, 70, 60])
    results = registry.evaluate(_current(), None)
    assert registry.blend(results) == pytest.approx(77.5)

    prediction = VelocityPredictor(registry=registry).predict(_current(), _history((30, 40)))
    assert prediction.completion_percentage == 78
    assert [m.value for m in prediction.model_breakdown] == [90, 80, 70, 60]


def test_blend_is_clamped_to_percentage():
    prediction = VelocityPredictor(registry=_stub_registry([250, 250, 250, 250])).predict(
        _current(), _history((30, 40))
    )
    assert prediction.completion_percentage == 100
    assert prediction.predicted_points == 40


def test_ensemble_prediction():
    prediction = predict_velocity(_current(), _history((30, 40), (30, 40), (30, 40)))

    # linear 100, historical 75, burn rate 100, in progress 67.5
    assert [m.value for m in prediction.model_breakdown] == [100, 75, 100, 68]
    assert prediction.completion_percentage == 88
    assert prediction.predicted_points == 35
    assert prediction.current_points == 20
    assert prediction.confidence == pytest.approx(0.75)
    assert prediction.trend == ScheduleTrend.AHEAD
    assert prediction.factors == ["10 points in progress"]


def test_zero_progress_without_history():
    prediction = predict_velocity(_current(completed=0, elapsed=0), None)

    assert prediction.completion_percentage == 0
    assert prediction.predicted_points == 0
    assert prediction.confidence == MIN_CONFIDENCE
    assert prediction.trend == ScheduleTrend.UNKNOWN
    assert prediction.factors == [NO_HISTORY_NOTE]


def test_simple_projection_without_history():
    prediction = predict_velocity(_current(completed=10), None)

    assert prediction.predicted_points == 20
    assert prediction.completion_percentage == 50
    assert prediction.confidence == 0.6
    assert prediction.factors == [CURRENT_ONLY_NOTE]
    assert prediction.model_breakdown == []


def test_confidence_bounds_in_degenerate_cases():
    predictor = VelocityPredictor()

    low = predictor.confidence(_current(elapsed=0), _history((10, 40)), [0, 300, 0, 300])
    assert low >= MIN_CONFIDENCE

    many = _history(*[(30, 40)] * 10)
    high = predictor.confidence(_current(elapsed=10), many, [80, 80, 80, 80])
    assert high == MAX_CONFIDENCE


def test_zero_length_sprint_with_history_stays_bounded():
    prediction = predict_velocity(_current(total=0, completed=0, in_progress=0, total_days=0), _history((30, 40)))
    assert 0 <= prediction.completion_percentage <= 100
    assert MIN_CONFIDENCE <= prediction.confidence <= MAX_CONFIDENCE


def test_build_history_keeps_most_recent():
    history = _history((10, 20), (20, 20), (30, 40), (40, 40))
    assert history.data_points == 3
    assert [it.completed_points for it in history.iterations] == [20, 30, 40]
    assert history.avg_velocity == pytest.approx(30)
    assert history.trend == VelocityTrend.IMPROVING


def test_build_history_empty():
    assert build_history([]) is None


def test_factors():
    behind = VelocityPredictor.generate_factors(_current(completed=4, in_progress=0, elapsed=9), None)
    assert behind == ["Behind schedule", "Sprint ending soon"]

    ahead = VelocityPredictor.generate_factors(
        _current(completed=30, in_progress=2.5, elapsed=3), _history((10, 40), (20, 40), (30, 40))
    )
    assert ahead == ["Team velocity is improving", "Ahead of schedule", "2.5 points in progress"]

    typical = VelocityPredictor.generate_factors(_current(completed=20, in_progress=0), _history((30, 40)))
    assert typical == [TYPICAL_NOTE]


def test_prediction_failure_returns_fallback(caplog):
    with caplog.at_level(logging.ERROR):
        prediction = predict_velocity(None, None)

    assert prediction.factors == [FALLBACK_NOTE]
    assert prediction.completion_percentage == 0
    assert "Velocity prediction failed" in caplog.text


def test_deadline_note_uses_fractional_days(now):
    def remaining_factors(days_left):
        iteration = IterationDescriptor(
            id="s9", start_date=now - timedelta(days=7), end_date=now + timedelta(days=days_left)
        )
        snapshot = build_snapshot([], iteration, now=now)
        current = current_progress_from_snapshot(snapshot)
        return current, VelocityPredictor.generate_factors(current, None)

    current, factors = remaining_factors(2.9)
    assert current.remaining_days == pytest.approx(2.9)
    assert "Sprint ending soon" not in factors

    current, factors = remaining_factors(1.5)
    assert current.remaining_days == pytest.approx(1.5)
    assert current.time_progress == pytest.approx(7 / 8.5)
    assert "Sprint ending soon" in factors


def test_confidence_is_not_rounded():
    # 0.5 + 0.05 + 1/3 * 0.2, no variance bonus
    current = _current(elapsed=1, total_days=3)
    value = VelocityPredictor().confidence(current, _history((30, 40)), [0, 300, 0, 300])
    assert value == pytest.approx(0.55 + 0.2 / 3)
    assert value != round(value, 2)
