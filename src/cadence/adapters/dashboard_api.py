"""Dashboard REST API adapter - HTTP client for series, tasks and events."""

import logging
from datetime import date

import requests

from cadence.core.calendar import CalendarEvent
from cadence.core.series import Series
from cadence.core.tasks import Task
from cadence.ports.occurrence_store import (
    DuplicateOccurrenceError,
    PersistenceError,
    PersistenceUnavailable,
)

logger = logging.getLogger(__name__)


class ConflictError(PersistenceError):
    """HTTP 409 from the API."""


class DashboardApiStore:
    """
    Dashboard API adapter.

    Implements OccurrenceStore protocol. Translates HTTP failures into the
    store errors: 404 -> KeyError, 409 -> DuplicateOccurrenceError,
    5xx / connection errors / timeouts -> PersistenceUnavailable.
    """

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ):
        if not base_url:
            raise ValueError("API_BASE_URL not configured. Add it to cadence.conf")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        if token:
            self._session.headers["Authorization"] = f"Bearer {token}"

    def _request(self, method: str, endpoint: str, **kwargs):
        """Make an API request and return the decoded JSON body (or None)."""
        url = f"{self.base_url}/api{endpoint}"
        try:
            resp = self._session.request(method, url, timeout=self.timeout, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.warning(f"{method} {url} failed: {e}")
            raise PersistenceUnavailable(f"{method} {endpoint}: {e}") from e

        if resp.status_code == 404:
            raise KeyError(f"{endpoint} not found")
        if resp.status_code == 409:
            raise ConflictError(f"{method} {endpoint}: HTTP 409 {resp.text}")
        if resp.status_code >= 500:
            raise PersistenceUnavailable(f"{method} {endpoint}: HTTP {resp.status_code} {resp.text}")
        if resp.status_code >= 400:
            raise PersistenceError(f"{method} {endpoint}: HTTP {resp.status_code} {resp.text}")
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    # ---------- series ----------

    def get_series(self, series_id: str) -> Series:
        return Series.from_api(self._request("GET", f"/recurring-series/{series_id}"))

    def list_series(self) -> list[Series]:
        return [Series.from_api(r) for r in self._request("GET", "/recurring-series")]

    def update_series(self, series_id: str, last_generated_anchor: date) -> None:
        self._request(
            "PATCH",
            f"/recurring-series/{series_id}",
            json={"lastGeneratedAnchor": last_generated_anchor.isoformat()},
        )

    # ---------- occurrences ----------

    def find_occurrences(self, series_id: str) -> list[Task | CalendarEvent]:
        records = self._request("GET", f"/recurring-series/{series_id}/occurrences")
        return [_from_record(r) for r in records]

    def exists_for_anchor(self, series_id: str, anchor: date) -> bool:
        records = self._request(
            "GET",
            f"/recurring-series/{series_id}/occurrences",
            params={"instanceDate": anchor.isoformat()},
        )
        return bool(records)

    def create_occurrence(self, template: dict) -> Task | CalendarEvent:
        endpoint = "/calendar-events" if "start" in template else "/tasks"
        try:
            record = self._request("POST", endpoint, json=template)
        except ConflictError as e:
            raise DuplicateOccurrenceError(
                template.get("recurrenceSeriesId", ""),
                date.fromisoformat(template["recurrenceInstanceDate"]),
            ) from e
        return _from_record(record)

    # ---------- board items ----------

    def list_tasks(self) -> list[Task]:
        return [Task.from_api(r) for r in self._request("GET", "/tasks")]

    def list_events(self) -> list[CalendarEvent]:
        return [CalendarEvent.from_api(r) for r in self._request("GET", "/calendar-events")]

    def get_item(self, item_id: str) -> Task:
        return Task.from_api(self._request("GET", f"/tasks/{item_id}"))

    def mutate_item(self, item_id: str, patch: dict) -> Task:
        return Task.from_api(self._request("PATCH", f"/tasks/{item_id}", json=patch))

    def delete_item(self, item_id: str) -> None:
        self._request("DELETE", f"/tasks/{item_id}")


def _from_record(record: dict) -> Task | CalendarEvent:
    if "start" in record:
        return CalendarEvent.from_api(record)
    return Task.from_api(record)
