import threading

import pytest

from conftest import NOW
from sprintpulse.data.dto import HealthTrend, HistoricalIteration, ScheduleTrend
from sprintpulse.data.repositories import ScoreLedger
from sprintpulse.exceptions import ConfigError, DataSourceError, TrackerUnavailableError
from sprintpulse.logic.forecasting import FALLBACK_NOTE
from sprintpulse.services.analysis import SprintAnalysisService


def _issue(key, category, points, updated="2024-03-10T12:00:00.000+0000", assignee="acc-1"):
    return {
        "key": key,
        "fields": {
            "status": {"statusCategory": {"key": category}},
            "customfield_10016": points,
            "updated": updated,
            "assignee": {"accountId": assignee, "displayName": assignee.upper()},
        },
    }


class FakeProvider:
    def __init__(self, active=True, closed_fails=False):
        self.active = active
        self.closed_fails = closed_fails
        self.threads = set()
        self.issues = {
            "42": [_issue("A", "done", 10), _issue("B", "indeterminate", 5), _issue("C", "new", 5)],
            "40": [_issue("H1", "done", 15), _issue("H2", "new", 5)],
            "41": [_issue("H3", "done", 20)],
        }

    def get_active_sprint(self, board_id):
        if not self.active:
            return None
        return {
            "id": 42,
            "name": "Sprint 42",
            "startDate": "2024-03-04T12:00:00.000Z",
            "endDate": "2024-03-18T12:00:00.000Z",
            "originBoardId": int(board_id),
        }

    def get_sprint(self, sprint_id):
        return {"id": sprint_id}

    def get_sprint_issues(self, sprint_id):
        self.threads.add(threading.current_thread().name)
        return self.issues[str(sprint_id)]

    def get_closed_sprints(self, board_id, limit):
        if self.closed_fails:
            raise TrackerUnavailableError("history endpoint down")
        return [{"id": 40, "name": "Sprint 40"}, {"id": 41, "name": "Sprint 41"}][-limit:]


def test_analyze_board_end_to_end():
    provider = FakeProvider()
    service = SprintAnalysisService(provider=provider)

    report = service.analyze_board("7", now=NOW)

    assert report.iteration.id == "42"
    snap = report.health.snapshot
    assert snap.total_points == 20
    assert snap.progress_percentage == 50
    assert 0 <= report.health.health.score <= 100
    assert report.velocity.history_points == 2
    assert report.velocity.prediction.model_breakdown
    assert all(name.startswith("sprintpulse-fetch") for name in provider.threads)


def test_analyze_board_without_history_uses_simple_projection(caplog):
    service = SprintAnalysisService(provider=FakeProvider(closed_fails=True))

    report = service.analyze_board("7", now=NOW)

    assert report.velocity.history_points == 0
    assert report.velocity.prediction.trend == ScheduleTrend.UNKNOWN
    assert "history unavailable" in caplog.text


def test_analyze_board_requires_tracker():
    with pytest.raises(ConfigError):
        SprintAnalysisService().analyze_board("7")


def test_analyze_board_without_active_sprint():
    with pytest.raises(DataSourceError):
        SprintAnalysisService(provider=FakeProvider(active=False)).analyze_board("7")


def test_ledger_feeds_health_trend(items, iteration):
    ledger = ScoreLedger()
    service = SprintAnalysisService(ledger=ledger)

    first = service.analyze_health(items, iteration, now=NOW)
    assert first.health.previous_score is None
    assert ledger.get_previous(iteration.id) == first.health.score

    ledger.record(iteration.id, first.health.score + 20)
    second = service.analyze_health(items, iteration, now=NOW)
    assert second.health.previous_score == first.health.score + 20
    assert second.health.trend == HealthTrend.DECLINING


def test_explicit_prior_score_wins(items, iteration):
    ledger = ScoreLedger()
    ledger.record(iteration.id, 5)
    result = SprintAnalysisService(ledger=ledger).analyze_health(items, iteration, prior_score=100, now=NOW)
    assert result.health.previous_score == 100


def test_history_changes_velocity_factor(items, iteration):
    service = SprintAnalysisService()
    history = [
        HistoricalIteration(id="1", completed_points=10, total_points=20),
        HistoricalIteration(id="2", completed_points=20, total_points=20),
        HistoricalIteration(id="3", completed_points=30, total_points=30),
    ]
    result = service.analyze_health(items, iteration, now=NOW, history=history)
    assert result.health.factors["velocity_trend"] == 90


def test_predict_falls_back_on_failure(monkeypatch, items, iteration, caplog):
    def broken(*args, **kwargs):
        raise RuntimeError("boom")

    monkeypatch.setattr("sprintpulse.services.analysis.build_snapshot", broken)
    result = SprintAnalysisService().predict(items, iteration, now=NOW)

    assert result.prediction.factors == [FALLBACK_NOTE]
    assert result.recommendation == "Major adjustments needed"
    assert "Velocity analysis failed" in caplog.text


def test_report_serializes(items, iteration):
    payload = SprintAnalysisService().analyze(items, iteration, now=NOW).to_dict()

    assert payload["iteration"]["id"] == "42"
    assert payload["health"]["status"] in {"Excellent", "Good", "At Risk", "Critical"}
    assert payload["health"]["snapshot"]["captured_at"] == NOW.isoformat()
    assert payload["velocity"]["prediction"]["trend"] == "unknown"
