import pytest
import requests

from sprintpulse.config import TrackerSettings
from sprintpulse.exceptions import ConfigError, DataSourceError, TrackerUnavailableError
from sprintpulse.sync.provider import JiraProvider


class FakeResponse:
    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.calls = []
        self.headers = {}
        self.auth = None

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, params))
        result = self.responses.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    monkeypatch.setattr("sprintpulse.sync.provider.time.sleep", lambda _: None)


def _provider(responses, **kwargs):
    session = FakeSession(responses)
    provider = JiraProvider(
        "https://example.atlassian.net/",
        email="bot@example.com",
        api_token="secret",
        session=session,
        **kwargs,
    )
    return provider, session


def test_requires_base_url():
    with pytest.raises(ConfigError):
        JiraProvider("")
    with pytest.raises(ConfigError):
        JiraProvider.from_settings(TrackerSettings())


def test_basic_auth_and_active_sprint():
    provider, session = _provider([FakeResponse(payload={"values": [{"id": 9, "state": "active"}]})])

    sprint = provider.get_active_sprint("7")

    assert sprint["id"] == 9
    assert session.auth == ("bot@example.com", "secret")
    url, params = session.calls[0]
    assert url == "https://example.atlassian.net/rest/agile/1.0/board/7/sprint"
    assert params == {"state": "active"}


def test_no_active_sprint():
    provider, _ = _provider([FakeResponse(payload={"values": []})])
    assert provider.get_active_sprint("7") is None


def test_sprint_issues_use_max_results():
    provider, session = _provider([FakeResponse(payload={"issues": [{"key": "A-1"}]})], max_results=50)
    assert provider.get_sprint_issues("9") == [{"key": "A-1"}]
    assert session.calls[0][1] == {"maxResults": 50}


def test_closed_sprints_returns_most_recent():
    values = [{"id": i} for i in range(1, 7)]
    provider, _ = _provider([FakeResponse(payload={"values": values})])
    assert [s["id"] for s in provider.get_closed_sprints("7", 3)] == [4, 5, 6]


def test_closed_sprints_reads_every_page():
    sprints = [{"id": i} for i in range(120)]
    pages = [
        FakeResponse(payload={"values": sprints[start:start + 50], "isLast": start + 50 >= len(sprints)})
        for start in range(0, len(sprints), 50)
    ]
    provider, session = _provider(pages)

    recent = provider.get_closed_sprints("7", 3)

    assert [s["id"] for s in recent] == [117, 118, 119]
    assert [params["startAt"] for _, params in session.calls] == [0, 50, 100]
    assert all(params["state"] == "closed" for _, params in session.calls)


def test_closed_sprints_stops_on_empty_page():
    provider, session = _provider([
        FakeResponse(payload={"values": [{"id": i} for i in range(50)], "isLast": False}),
        FakeResponse(payload={"values": []}),
    ])
    assert [s["id"] for s in provider.get_closed_sprints("7", 2)] == [48, 49]
    assert len(session.calls) == 2


def test_retries_transient_failures():
    provider, session = _provider(
        [FakeResponse(503), requests.ConnectionError("reset"), FakeResponse(payload={"id": 9})],
        max_retries=3,
    )
    assert provider.get_sprint("9") == {"id": 9}
    assert len(session.calls) == 3


def test_gives_up_after_retries():
    provider, session = _provider([FakeResponse(502)] * 3, max_retries=3)
    with pytest.raises(TrackerUnavailableError):
        provider.get_sprint("9")
    assert len(session.calls) == 3


def test_network_failure_is_unavailable():
    provider, _ = _provider([requests.Timeout("slow")] * 2, max_retries=2)
    with pytest.raises(TrackerUnavailableError):
        provider.get_sprint("9")


def test_client_errors_are_not_retried():
    provider, session = _provider([FakeResponse(404)], max_retries=3)
    with pytest.raises(DataSourceError) as exc_info:
        provider.get_sprint("9")
    assert not isinstance(exc_info.value, TrackerUnavailableError)
    assert len(session.calls) == 1


def test_invalid_json():
    provider, _ = _provider([FakeResponse(200, payload=None)])
    with pytest.raises(DataSourceError):
        provider.get_sprint("9")
