from typing import List, Optional
import logging

from sprintpulse.config import ThresholdSettings, settings
from sprintpulse.data.dto import Alert, HealthRecord, MetricsSnapshot, Risk

logger = logging.getLogger(__name__)


def health_status(score: int) -> str:
    if score >= 80: return "Excellent"
    if score >= 60: return "Good"
    if score >= 40: return "At Risk"
    return "Critical"


def completion_recommendation(completion_percentage: int) -> str:
    if completion_percentage >= 95:
        return "On track for full completion"
    if completion_percentage >= 80:
        return "Good progress, minor adjustments may help"
    if completion_percentage >= 60:
        return "At risk - consider a pit-stop"
    return "Major adjustments needed"


def identify_risks(snapshot: MetricsSnapshot, thresholds: Optional[ThresholdSettings] = None) -> List[Risk]:
    thresholds = thresholds or settings.thresholds
    risks = []

    if snapshot.blocked_count > 0:
        risks.append(Risk(type="blockers", severity="high", description=f"{snapshot.blocked_count} blocked issues"))

    if snapshot.team.overloaded_count > 0:
        risks.append(Risk(type="overload", severity="medium", description="Team members overloaded"))

    if snapshot.progress_percentage < snapshot.time.ideal_progress - thresholds.behind_schedule_margin:
        risks.append(Risk(type="velocity", severity="high", description="Behind schedule"))

    return risks


def check_alerts(
    snapshot: MetricsSnapshot,
    health: HealthRecord,
    thresholds: Optional[ThresholdSettings] = None,
    stuck_days: Optional[int] = None,
) -> List[Alert]:
    """
    Threshold checks over an already computed snapshot and health record.
    Delivery of the alerts is left to the caller.
    """
    thresholds = thresholds or settings.thresholds
    stuck_days = settings.engine.stuck_task_days if stuck_days is None else stuck_days
    alerts = []

    if health.score < thresholds.health_alert:
        alerts.append(Alert(
            type="sprint_risk",
            severity="critical" if health.score < thresholds.health_critical else "warning",
            title="Sprint Health Critical",
            message=f"Health score dropped to {health.score}/100",
            action_required=True,
        ))

    if snapshot.stuck_item_ids:
        alerts.append(Alert(
            type="stuck_task",
            severity="warning",
            title=f"{len(snapshot.stuck_item_ids)} Task(s) Stuck",
            message=f"Tasks unchanged for {stuck_days}+ days",
            items=list(snapshot.stuck_item_ids),
        ))

    overloaded = [m for m in snapshot.team.members if m.load_percent > thresholds.overload_percent]
    if overloaded:
        alerts.append(Alert(
            type="overload",
            severity="warning",
            title="Team Members Overloaded",
            message=f"{len(overloaded)} member(s) at >{thresholds.overload_percent}% capacity",
            items=[m.name or m.id for m in overloaded],
        ))

    if alerts:
        logger.info(f"Iteration {snapshot.iteration_id}: {len(alerts)} alert(s) raised")
    return alerts
