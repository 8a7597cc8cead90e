from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
import logging

from sprintpulse.config import EngineSettings, ThresholdSettings, settings
from sprintpulse.data.dto import (
    Alert,
    HealthRecord,
    HistoricalIteration,
    MetricsSnapshot,
    PredictionRecord,
    Risk,
)
from sprintpulse.data.repositories import ScoreLedger, ScoreRepository
from sprintpulse.domain.models import IterationDescriptor, WorkItem
from sprintpulse.etl.adapters import JiraPayloadAdapter
from sprintpulse.exceptions import ConfigError, DataSourceError
from sprintpulse.logic import (
    VelocityHistoryFactorProvider,
    build_history,
    build_snapshot,
    compute_health,
    current_progress_from_snapshot,
    fallback_prediction,
    predict_velocity,
)
from sprintpulse.logic.risks import check_alerts, completion_recommendation, health_status, identify_risks
from sprintpulse.logic.timeline import resolve_now
from sprintpulse.sync.provider import TrackerProvider

logger = logging.getLogger(__name__)


@dataclass
class HealthAnalysis:
    snapshot: MetricsSnapshot
    health: HealthRecord
    status: str
    risks: List[Risk] = field(default_factory=list)
    alerts: List[Alert] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "snapshot": self.snapshot.to_dict(),
            "health": self.health.to_dict(),
            "status": self.status,
            "risks": [asdict(r) for r in self.risks],
            "alerts": [asdict(a) for a in self.alerts],
        }


@dataclass
class VelocityAnalysis:
    prediction: PredictionRecord
    recommendation: str
    history_points: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prediction": self.prediction.to_dict(),
            "recommendation": self.recommendation,
            "history_points": self.history_points,
        }


@dataclass
class IterationReport:
    iteration: IterationDescriptor
    health: HealthAnalysis
    velocity: VelocityAnalysis

    def to_dict(self) -> Dict[str, Any]:
        return {
            "iteration": self.iteration.model_dump(mode="json"),
            "health": self.health.to_dict(),
            "velocity": self.velocity.to_dict(),
        }


class SprintAnalysisService:
    """
    Orchestrates the scoring core over already-fetched items (payload mode)
    or over live tracker data (board mode).
    """

    def __init__(
        self,
        provider: Optional[TrackerProvider] = None,
        adapter: Optional[JiraPayloadAdapter] = None,
        ledger: Optional[ScoreRepository] = None,
        options: Optional[EngineSettings] = None,
        thresholds: Optional[ThresholdSettings] = None,
    ):
        self.provider = provider
        self.adapter = adapter or JiraPayloadAdapter()
        self.ledger = ledger if ledger is not None else ScoreLedger()
        self.options = options or settings.engine
        self.thresholds = thresholds or settings.thresholds

    # ----- payload mode -----
    def analyze_health(
        self,
        items: Iterable[WorkItem],
        iteration: IterationDescriptor,
        prior_score: Optional[float] = None,
        now: Optional[datetime] = None,
        history: Optional[List[HistoricalIteration]] = None,
    ) -> HealthAnalysis:
        now = resolve_now(now)
        snapshot = build_snapshot(items, iteration, now=now, options=self.options)

        if prior_score is None:
            prior_score = self.ledger.get_previous(iteration.id)

        velocity = build_history(history or [], lookback=self.options.lookback_sprints)
        provider = VelocityHistoryFactorProvider(velocity) if velocity else None
        health = compute_health(snapshot, prior_score=prior_score, provider=provider)
        self.ledger.record(iteration.id, health.score)

        return HealthAnalysis(
            snapshot=snapshot,
            health=health,
            status=health_status(health.score),
            risks=identify_risks(snapshot, thresholds=self.thresholds),
            alerts=check_alerts(
                snapshot,
                health,
                thresholds=self.thresholds,
                stuck_days=self.options.stuck_task_days,
            ),
        )

    def predict(
        self,
        items: Iterable[WorkItem],
        iteration: IterationDescriptor,
        history: Optional[List[HistoricalIteration]] = None,
        now: Optional[datetime] = None,
    ) -> VelocityAnalysis:
        try:
            snapshot = build_snapshot(items, iteration, now=now, options=self.options)
            velocity = build_history(history or [], lookback=self.options.lookback_sprints)
            prediction = predict_velocity(current_progress_from_snapshot(snapshot), velocity, options=self.options)
        except Exception:
            logger.exception(f"Velocity analysis failed for iteration {iteration.id}")
            prediction = fallback_prediction()
            velocity = None

        return VelocityAnalysis(
            prediction=prediction,
            recommendation=completion_recommendation(prediction.completion_percentage),
            history_points=velocity.data_points if velocity else 0,
        )

    def analyze(
        self,
        items: Iterable[WorkItem],
        iteration: IterationDescriptor,
        history: Optional[List[HistoricalIteration]] = None,
        prior_score: Optional[float] = None,
        now: Optional[datetime] = None,
    ) -> IterationReport:
        """Health and velocity for one iteration against a single instant."""
        now = resolve_now(now)
        items = list(items)
        return IterationReport(
            iteration=iteration,
            health=self.analyze_health(items, iteration, prior_score=prior_score, now=now, history=history),
            velocity=self.predict(items, iteration, history=history, now=now),
        )

    # ----- board mode -----
    def analyze_board(self, board_id: str, now: Optional[datetime] = None) -> IterationReport:
        if self.provider is None:
            raise ConfigError("Tracker is not configured; set TRACKER__BASE_URL.")

        sprint = self.provider.get_active_sprint(board_id)
        if not sprint:
            raise DataSourceError(f"Board {board_id} has no active sprint")
        iteration = self.adapter.to_iteration(sprint)

        # Current items and closed-sprint history are independent reads
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix="sprintpulse-fetch") as pool:
            issues_future = pool.submit(self.provider.get_sprint_issues, iteration.id)
            history_future = pool.submit(self._fetch_history, board_id)
            issues = issues_future.result()
            history = history_future.result()

        logger.info(
            f"Board {board_id}: analyzing sprint {iteration.id} "
            f"({len(issues)} issues, {len(history)} closed sprints)"
        )
        return self.analyze(self.adapter.to_work_items(issues), iteration, history=history, now=now)

    def _fetch_history(self, board_id: str) -> List[HistoricalIteration]:
        """Closed-sprint velocity; failures degrade to an empty history."""
        try:
            sprints = self.provider.get_closed_sprints(board_id, self.options.lookback_sprints)
            return [
                self.adapter.to_historical_iteration(sprint, self.provider.get_sprint_issues(str(sprint.get("id"))))
                for sprint in sprints
            ]
        except DataSourceError as e:
            logger.warning(f"Board {board_id}: history unavailable, forecasting without it ({e})")
            return []
