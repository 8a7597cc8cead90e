from typing import Generator, Optional

from sprintpulse.config import settings
from sprintpulse.data.repositories import ScoreLedger
from sprintpulse.etl.adapters import JiraPayloadAdapter
from sprintpulse.services.analysis import SprintAnalysisService
from sprintpulse.sync.provider import JiraProvider

# Shared across requests so health trends see the previous run
_ledger_instance: Optional[ScoreLedger] = None


def get_ledger() -> ScoreLedger:
    global _ledger_instance
    if _ledger_instance is None:
        _ledger_instance = ScoreLedger()
    return _ledger_instance


def get_tracker_provider() -> Optional[JiraProvider]:
    if not settings.tracker.enabled:
        return None
    return JiraProvider.from_settings(settings.tracker)


def get_analysis_service() -> Generator[SprintAnalysisService, None, None]:
    yield SprintAnalysisService(
        provider=get_tracker_provider(),
        adapter=JiraPayloadAdapter(settings.tracker.story_points_field),
        ledger=get_ledger(),
    )
