import time
from typing import Any, Dict, List, Optional, Protocol
import logging

import requests

from sprintpulse.config import TrackerSettings
from sprintpulse.exceptions import ConfigError, DataSourceError, TrackerUnavailableError

logger = logging.getLogger(__name__)


class TrackerProvider(Protocol):
    def get_active_sprint(self, board_id: str) -> Optional[Dict[str, Any]]:
        ...

    def get_sprint(self, sprint_id: str) -> Dict[str, Any]:
        ...

    def get_sprint_issues(self, sprint_id: str) -> List[Dict[str, Any]]:
        ...

    def get_closed_sprints(self, board_id: str, limit: int) -> List[Dict[str, Any]]:
        ...


class JiraProvider:
    """
    Reads sprints and issues from the Jira Agile REST API using basic auth (email + API token).
    """

    RETRYABLE_STATUS = {429, 500, 502, 503, 504}
    CLOSED_SPRINT_PAGE = 50

    def __init__(
        self,
        base_url: str,
        email: Optional[str] = None,
        api_token: Optional[str] = None,
        max_results: int = 500,
        timeout_seconds: float = 30.0,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
        session: Optional[requests.Session] = None,
    ):
        if not base_url:
            raise ConfigError("Tracker base_url is not configured.")
        self.base_url = base_url.rstrip("/")
        self.max_results = max_results
        self.timeout_seconds = timeout_seconds
        self.max_retries = max(1, max_retries)
        self.backoff_seconds = backoff_seconds
        self.session = session or requests.Session()
        if email and api_token:
            self.session.auth = (email, api_token)
        self.session.headers.update({"Accept": "application/json"})

    @classmethod
    def from_settings(cls, tracker: TrackerSettings) -> "JiraProvider":
        return cls(
            base_url=tracker.base_url or "",
            email=tracker.email,
            api_token=tracker.api_token,
            max_results=tracker.max_results,
            timeout_seconds=tracker.timeout_seconds,
            max_retries=tracker.max_retries,
            backoff_seconds=tracker.backoff_seconds,
        )

    def get_active_sprint(self, board_id: str) -> Optional[Dict[str, Any]]:
        data = self._get(f"/rest/agile/1.0/board/{board_id}/sprint", params={"state": "active"})
        values = data.get("values") or []
        return values[0] if values else None

    def get_sprint(self, sprint_id: str) -> Dict[str, Any]:
        return self._get(f"/rest/agile/1.0/sprint/{sprint_id}")

    def get_sprint_issues(self, sprint_id: str) -> List[Dict[str, Any]]:
        data = self._get(
            f"/rest/agile/1.0/sprint/{sprint_id}/issue",
            params={"maxResults": self.max_results},
        )
        return data.get("issues") or []

    def get_closed_sprints(self, board_id: str, limit: int) -> List[Dict[str, Any]]:
        """
        Most recent closed sprints, oldest first. Jira pages closed sprints
        from the oldest one, so every page is read before taking the tail.
        """
        if limit <= 0:
            return []
        values: List[Dict[str, Any]] = []
        start_at = 0
        while True:
            data = self._get(
                f"/rest/agile/1.0/board/{board_id}/sprint",
                params={"state": "closed", "startAt": start_at, "maxResults": self.CLOSED_SPRINT_PAGE},
            )
            page = data.get("values") or []
            values.extend(page)
            start_at += len(page)
            if not page or data.get("isLast", len(page) < self.CLOSED_SPRINT_PAGE):
                break
        logger.debug(f"Read {len(values)} closed sprints for board {board_id}")
        return values[-limit:]

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        last_error: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                resp = self.session.get(url, params=params, timeout=self.timeout_seconds)
            except requests.RequestException as exc:  # network failure
                last_error = exc
                if attempt < self.max_retries - 1:
                    time.sleep(self.backoff_seconds * (2**attempt))
                    continue
                break

            if resp.status_code == 200:
                try:
                    return resp.json()
                except ValueError as exc:
                    raise DataSourceError(f"Tracker returned invalid JSON for {path}") from exc

            if resp.status_code not in self.RETRYABLE_STATUS:
                # bad ids, auth failures
                raise DataSourceError(f"Tracker rejected {path}: {resp.status_code}")

            last_error = TrackerUnavailableError(f"Tracker request {path} failed: {resp.status_code}")
            if attempt < self.max_retries - 1:
                logger.warning(f"Retrying {path} after status {resp.status_code} (attempt {attempt + 1})")
                time.sleep(self.backoff_seconds * (2**attempt))
                continue
            break

        if isinstance(last_error, DataSourceError):
            raise last_error
        raise TrackerUnavailableError(f"Tracker request {path} failed: {last_error}") from last_error
