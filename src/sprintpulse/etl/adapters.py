import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging

from pydantic import ValidationError

from sprintpulse.config import settings
from sprintpulse.data.dto import HistoricalIteration
from sprintpulse.domain.models import AssigneeRef, IterationDescriptor, StatusCategory, WorkItem
from sprintpulse.exceptions import DataSourceError

logger = logging.getLogger(__name__)

_COMPACT_OFFSET = re.compile(r"([+-]\d{2})(\d{2})$")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parses tracker timestamps such as '2024-03-04T09:15:00.000+0000' or '...Z'.
    Returns None for empty values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _COMPACT_OFFSET.sub(r"\1:\2", text)
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise DataSourceError(f"Unparseable timestamp: {value!r}") from exc
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class JiraPayloadAdapter:
    """
    Maps Jira Agile REST payloads (issues, sprints) to internal domain models.
    """

    def __init__(self, story_points_field: Optional[str] = None):
        self.story_points_field = story_points_field or settings.tracker.story_points_field

    def to_work_item(self, issue: Dict[str, Any]) -> WorkItem:
        fields = issue.get("fields") or {}
        key = issue.get("key") or issue.get("id")
        if not key:
            raise DataSourceError("Issue payload has no key/id")

        status = (fields.get("status") or {}).get("statusCategory") or {}
        assignee = fields.get("assignee")
        updated = parse_timestamp(fields.get("updated")) or datetime.now(timezone.utc)

        return WorkItem(
            id=str(key),
            status_category=StatusCategory.parse(status.get("key")),
            effort_points=fields.get(self.story_points_field),
            assignee=AssigneeRef(
                id=str(assignee.get("accountId") or assignee.get("name") or ""),
                display_name=assignee.get("displayName") or "",
            ) if assignee else None,
            last_updated_at=updated,
        )

    def to_work_items(self, issues: List[Dict[str, Any]]) -> List[WorkItem]:
        items = []
        for issue in issues:
            try:
                items.append(self.to_work_item(issue))
            except (DataSourceError, ValidationError) as e:
                logger.warning(f"Skipping issue {issue.get('key', '?')} due to error: {e}")
                continue
        return items

    def to_iteration(self, sprint: Dict[str, Any]) -> IterationDescriptor:
        start = parse_timestamp(sprint.get("startDate"))
        end = parse_timestamp(sprint.get("endDate"))
        if start is None or end is None:
            raise DataSourceError(f"Sprint {sprint.get('id')} has no start/end date")
        return IterationDescriptor(
            id=sprint.get("id"),
            name=sprint.get("name"),
            start_date=start,
            end_date=end,
            board_id=sprint.get("originBoardId"),
        )

    def to_historical_iteration(self, sprint: Dict[str, Any], issues: List[Dict[str, Any]]) -> HistoricalIteration:
        items = self.to_work_items(issues)
        return HistoricalIteration(
            id=str(sprint.get("id")),
            name=sprint.get("name"),
            completed_points=sum(i.effort_points for i in items if i.status_category == StatusCategory.DONE),
            total_points=sum(i.effort_points for i in items),
        )
