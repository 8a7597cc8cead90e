"""
Metrics aggregation over a sprint's work items.

Reduces the raw item collection into status partitions, point sums and a
per-assignee load summary, then merges the result with the time model into
the MetricsSnapshot consumed by the health scorer.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sprintpulse.config import EngineSettings, settings
from sprintpulse.data.dto import MetricsSnapshot, TeamLoadSummary, TeamMemberLoad
from sprintpulse.domain.models import IterationDescriptor, StatusCategory, WorkItem
from sprintpulse.logic.timeline import compute_time_window, days_between, resolve_now
from sprintpulse.utils.numbers import round_half_up, safe_ratio

OVERLOAD_PERCENT = 100
UNDERUTILIZED_PERCENT = 50


@dataclass
class StatusPartition:
    items: List[WorkItem] = field(default_factory=list)
    points: float = 0.0

    def add(self, item: WorkItem) -> None:
        self.items.append(item)
        self.points += item.effort_points


@dataclass
class ItemAggregate:
    done: StatusPartition
    in_progress: StatusPartition
    todo: StatusPartition
    blocked_ids: List[str]

    @property
    def total_items(self) -> int:
        return len(self.done.items) + len(self.in_progress.items) + len(self.todo.items)

    @property
    def total_points(self) -> float:
        return self.done.points + self.in_progress.points + self.todo.points


def load_percent(points: float, capacity: float) -> int:
    """Share of a standard iteration capacity, 100 == exactly full."""
    if capacity <= 0:
        return 0
    return max(0, round_half_up(max(0.0, points) / capacity * 100))


def is_stuck(item: WorkItem, now: datetime, stuck_days: int) -> bool:
    """In-progress items without an update for stuck_days whole days."""
    if item.status_category != StatusCategory.IN_PROGRESS:
        return False
    return days_between(item.last_updated_at, now) >= stuck_days


def aggregate_items(
    items: Iterable[WorkItem],
    now: Optional[datetime] = None,
    stuck_days: Optional[int] = None,
) -> ItemAggregate:
    """Partitions items by status category and collects stuck in-progress items."""
    now = resolve_now(now)
    stuck_days = settings.engine.stuck_task_days if stuck_days is None else stuck_days

    partitions = {
        StatusCategory.DONE: StatusPartition(),
        StatusCategory.IN_PROGRESS: StatusPartition(),
        StatusCategory.TODO: StatusPartition(),
    }
    blocked_ids: List[str] = []

    for item in items:
        partitions[item.status_category].add(item)
        if is_stuck(item, now, stuck_days):
            blocked_ids.append(item.id)

    return ItemAggregate(
        done=partitions[StatusCategory.DONE],
        in_progress=partitions[StatusCategory.IN_PROGRESS],
        todo=partitions[StatusCategory.TODO],
        blocked_ids=blocked_ids,
    )


def summarize_team_load(items: Iterable[WorkItem], capacity: Optional[float] = None) -> TeamLoadSummary:
    """
    Groups assigned items per assignee. Unassigned items are skipped here
    but still count toward the sprint totals elsewhere.
    """
    capacity = settings.engine.standard_capacity_points if capacity is None else capacity

    members: Dict[str, TeamMemberLoad] = {}
    for item in items:
        if item.assignee is None:
            continue
        member = members.get(item.assignee.id)
        if member is None:
            member = TeamMemberLoad(
                id=item.assignee.id,
                name=item.assignee.display_name,
                effort_points=0.0,
                task_count=0,
                load_percent=0,
            )
            members[item.assignee.id] = member
        member.effort_points += item.effort_points
        member.task_count += 1

    loads = list(members.values())
    for member in loads:
        member.load_percent = load_percent(member.effort_points, capacity)

    # sorted() is stable, so ties keep first-encounter order
    loads = sorted(loads, key=lambda m: m.load_percent, reverse=True)

    average = round_half_up(sum(m.load_percent for m in loads) / len(loads)) if loads else 0
    return TeamLoadSummary(
        members=loads,
        member_count=len(loads),
        average_load=average,
        overloaded_count=sum(1 for m in loads if m.load_percent > OVERLOAD_PERCENT),
        underutilized_count=sum(1 for m in loads if m.load_percent < UNDERUTILIZED_PERCENT),
    )


def build_snapshot(
    items: Iterable[WorkItem],
    iteration: IterationDescriptor,
    now: Optional[datetime] = None,
    options: Optional[EngineSettings] = None,
) -> MetricsSnapshot:
    """
    Aggregates items and the iteration window against a single instant.
    """
    options = options or settings.engine
    now = resolve_now(now)
    items = list(items)

    aggregate = aggregate_items(items, now=now, stuck_days=options.stuck_task_days)
    team = summarize_team_load(items, capacity=options.standard_capacity_points)
    window = compute_time_window(iteration, now=now)

    total_points = aggregate.total_points
    completed_points = aggregate.done.points
    progress = round_half_up(safe_ratio(completed_points, total_points) * 100)

    return MetricsSnapshot(
        iteration_id=iteration.id,
        captured_at=now,
        total_items=aggregate.total_items,
        completed_items=len(aggregate.done.items),
        in_progress_items=len(aggregate.in_progress.items),
        todo_items=len(aggregate.todo.items),
        total_points=total_points,
        completed_points=completed_points,
        in_progress_points=aggregate.in_progress.points,
        todo_points=aggregate.todo.points,
        remaining_points=total_points - completed_points,
        progress_percentage=min(100, max(0, progress)),
        blocked_count=len(aggregate.blocked_ids),
        team=team,
        time=window,
        stuck_item_ids=aggregate.blocked_ids,
    )
