from abc import ABC, abstractmethod
from dataclasses import dataclass, fields
from typing import Dict, Optional

from sprintpulse.data.dto import HealthRecord, HistoricalVelocity, MetricsSnapshot, VelocityTrend
from sprintpulse.logic.trends import classify_health_trend
from sprintpulse.utils.numbers import clamp, round_half_up


@dataclass(frozen=True)
class HealthWeights:
    # Weights for sub-components (Must sum to 1.0)
    progress_on_track: float = 0.25
    no_blockers: float = 0.20
    team_balance: float = 0.15
    velocity_trend: float = 0.15
    scope_stability: float = 0.10
    estimation_accuracy: float = 0.10
    burndown_health: float = 0.05

    def as_dict(self) -> Dict[str, float]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass(frozen=True)
class PenaltyConfig:
    # Points deducted from the 0-100 sub-score per occurrence
    per_blocked_item: float = 20.0
    per_overloaded_member: float = 15.0
    per_underutilized_member: float = 5.0


class HistoricalFactorProvider(ABC):
    """
    Supplies the three factors that need multi-iteration history.
    Every method returns a 0-100 sub-score.
    """

    @abstractmethod
    def velocity_trend(self, snapshot: MetricsSnapshot) -> float:
        ...

    @abstractmethod
    def scope_stability(self, snapshot: MetricsSnapshot) -> float:
        ...

    @abstractmethod
    def estimation_accuracy(self, snapshot: MetricsSnapshot) -> float:
        ...


class NeutralFactorProvider(HistoricalFactorProvider):
    """Fixed stand-ins used when no change history or estimate ledger is wired in."""

    VELOCITY_TREND = 70.0
    SCOPE_STABILITY = 80.0
    ESTIMATION_ACCURACY = 75.0

    def velocity_trend(self, snapshot: MetricsSnapshot) -> float:
        return self.VELOCITY_TREND

    def scope_stability(self, snapshot: MetricsSnapshot) -> float:
        return self.SCOPE_STABILITY

    def estimation_accuracy(self, snapshot: MetricsSnapshot) -> float:
        return self.ESTIMATION_ACCURACY


class VelocityHistoryFactorProvider(NeutralFactorProvider):
    """
    Derives velocity trend and estimation accuracy from closed iterations.
    Scope stability stays neutral: scope-change history is not tracked.
    """

    TREND_SCORES = {
        VelocityTrend.IMPROVING: 90.0,
        VelocityTrend.STABLE: 70.0,
        VelocityTrend.DECLINING: 50.0,
    }

    def __init__(self, history: Optional[HistoricalVelocity]):
        self.history = history

    def velocity_trend(self, snapshot: MetricsSnapshot) -> float:
        if not self.history or not self.history.data_points:
            return super().velocity_trend(snapshot)
        return self.TREND_SCORES[self.history.trend]

    def estimation_accuracy(self, snapshot: MetricsSnapshot) -> float:
        if not self.history or not self.history.data_points:
            return super().estimation_accuracy(snapshot)
        return self.history.avg_completion_rate * 100.0


class HealthScorer:
    """
    Pure logic engine combining sprint metrics into a 0-100 health score.
    """
    def __init__(
        self,
        provider: Optional[HistoricalFactorProvider] = None,
        weights: Optional[HealthWeights] = None,
        penalties: Optional[PenaltyConfig] = None,
    ):
        self.provider = provider or NeutralFactorProvider()
        self.weights = weights or HealthWeights()
        self.penalties = penalties or PenaltyConfig()

    def factor_scores(self, snapshot: MetricsSnapshot) -> Dict[str, float]:
        progress = snapshot.progress_percentage
        ideal = snapshot.time.ideal_progress
        team = snapshot.team

        # 1. Progress vs the elapsed share of the window; max(1, ...) guards zero-length sprints
        progress_on_track = min(100.0, progress / max(1, ideal) * 100)

        # 2. Blockers
        no_blockers = max(0.0, 100 - snapshot.blocked_count * self.penalties.per_blocked_item)

        # 3. Team balance
        imbalance = (
            team.overloaded_count * self.penalties.per_overloaded_member
            + team.underutilized_count * self.penalties.per_underutilized_member
        )
        team_balance = max(0.0, 100 - imbalance)

        # 4. Burndown deviation
        burndown_health = max(0.0, 100 - abs(progress - ideal))

        return {
            "progress_on_track": progress_on_track,
            "no_blockers": no_blockers,
            "team_balance": team_balance,
            "velocity_trend": self._provided(self.provider.velocity_trend, snapshot),
            "scope_stability": self._provided(self.provider.scope_stability, snapshot),
            "estimation_accuracy": self._provided(self.provider.estimation_accuracy, snapshot),
            "burndown_health": burndown_health,
        }

    def score(self, snapshot: MetricsSnapshot, prior_score: Optional[float] = None) -> HealthRecord:
        scores = self.factor_scores(snapshot)
        total = sum(scores[name] * weight for name, weight in self.weights.as_dict().items())
        final_score = round_half_up(clamp(total, 0, 100))

        return HealthRecord(
            score=final_score,
            trend=classify_health_trend(final_score, prior_score),
            previous_score=round_half_up(prior_score) if prior_score is not None else None,
            factors={name: round(value, 1) for name, value in scores.items()},
        )

    def _provided(self, getter, snapshot: MetricsSnapshot) -> float:
        # Provider output is clamped to the 0-100 scale
        return float(clamp(getter(snapshot), 0, 100))


def compute_health(
    snapshot: MetricsSnapshot,
    prior_score: Optional[float] = None,
    provider: Optional[HistoricalFactorProvider] = None,
) -> HealthRecord:
    return HealthScorer(provider=provider).score(snapshot, prior_score=prior_score)
