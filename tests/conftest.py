from datetime import datetime, timedelta, timezone

import pytest

from sprintpulse.domain.models import AssigneeRef, IterationDescriptor, WorkItem

NOW = datetime(2024, 3, 11, 12, 0, tzinfo=timezone.utc)


def make_item(item_id, status="todo", points=None, assignee=None, updated=None):
    return WorkItem(
        id=item_id,
        status_category=status,
        effort_points=points,
        assignee=AssigneeRef(id=assignee, display_name=assignee.title()) if assignee else None,
        last_updated_at=updated or NOW,
    )


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def iteration():
    """Two-week sprint, exactly half elapsed at NOW."""
    return IterationDescriptor(
        id="42",
        name="Sprint 42",
        board_id="7",
        start_date=NOW - timedelta(days=7),
        end_date=NOW + timedelta(days=7),
    )


@pytest.fixture
def items():
    return [
        make_item("PRJ-1", "done", 5, assignee="alice"),
        make_item("PRJ-2", "in_progress", 3, assignee="bob", updated=NOW - timedelta(days=3)),
        make_item("PRJ-3", "todo", None),
        make_item("PRJ-4", "todo", -2, assignee="alice"),
    ]
