"""File-based store adapter - series, tasks and events in one JSON document."""

import json
import logging
import threading
import uuid
from datetime import date, datetime, timezone
from pathlib import Path

from cadence.core.backfill import occurrence_anchor
from cadence.core.calendar import CalendarEvent
from cadence.core.recurrence import InvalidRuleError
from cadence.core.series import Series
from cadence.core.tasks import Task, is_legacy_recurring, parse_datetime, stable_series_id
from cadence.ports.occurrence_store import DuplicateOccurrenceError, PersistenceUnavailable

logger = logging.getLogger(__name__)


class JsonFileStore:
    """
    JSON file storage.

    Implements OccurrenceStore protocol. The whole document is read and
    rewritten on every call under a lock, so concurrent bulk mutations and
    backfill runs in one process see a consistent file.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.RLock()

    # ---------- raw document ----------

    def _load(self) -> dict:
        try:
            if not self.path.exists():
                return {"series": [], "tasks": [], "events": []}
            data = json.loads(self.path.read_text())
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceUnavailable(f"Cannot read {self.path}: {e}") from e
        for key in ("series", "tasks", "events"):
            data.setdefault(key, [])
        return data

    def _save(self, data: dict) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            tmp.write_text(json.dumps(data, indent=2, default=str))
            tmp.replace(self.path)
        except OSError as e:
            raise PersistenceUnavailable(f"Cannot write {self.path}: {e}") from e

    @staticmethod
    def _find(records: list[dict], record_id: str, kind: str) -> dict:
        for record in records:
            if str(record["id"]) == str(record_id):
                return record
        raise KeyError(f"{kind} {record_id} not found")

    # ---------- series ----------

    def add_series(self, record: dict) -> Series:
        """Insert a series record (assigning an id if missing)."""
        with self._lock:
            data = self._load()
            record = {"id": record.get("id") or str(uuid.uuid4()), **record}
            series = Series.from_api(record)
            data["series"].append(series.to_api())
            self._save(data)
            return series

    @staticmethod
    def _legacy_series(data: dict) -> dict[str, Series]:
        """Series implied by recurring task records stored before series ids existed."""
        records = [r for r in data["tasks"] if is_legacy_recurring(r) and (r.get("dueDate") or r.get("createdAt"))]
        records.sort(key=lambda r: parse_datetime(r.get("dueDate") or r["createdAt"]))

        found: dict[str, Series] = {}
        for record in records:
            series_id = stable_series_id(record)
            if series_id in found:
                continue
            try:
                found[series_id] = Series.from_task_record(record)
            except InvalidRuleError as e:
                logger.warning(f"Skipping recurring task {record.get('id')}: {e}")
        return found

    def get_series(self, series_id: str) -> Series:
        with self._lock:
            data = self._load()
        try:
            return Series.from_api(self._find(data["series"], series_id, "Series"))
        except KeyError:
            legacy = self._legacy_series(data)
            if series_id in legacy:
                return legacy[series_id]
            raise

    def list_series(self) -> list[Series]:
        with self._lock:
            data = self._load()
        stored = [Series.from_api(r) for r in data["series"]]
        known = {s.id for s in stored}
        return stored + [s for s in self._legacy_series(data).values() if s.id not in known]

    def update_series(self, series_id: str, last_generated_anchor: date) -> None:
        with self._lock:
            data = self._load()
            try:
                record = self._find(data["series"], series_id, "Series")
            except KeyError:
                legacy = self._legacy_series(data)
                if series_id not in legacy:
                    raise
                # First run over a legacy series writes its record
                record = legacy[series_id].to_api()
                data["series"].append(record)
            record["lastGeneratedAnchor"] = last_generated_anchor.isoformat()
            self._save(data)

    # ---------- occurrences ----------

    @staticmethod
    def _anchors(data: dict, series_id: str) -> set[date]:
        """Anchor dates already taken by the series' tasks and events."""
        anchors = {occurrence_anchor(t) for t in map(Task.from_api, data["tasks"]) if t.series_id == series_id}
        anchors.update(
            date.fromisoformat(r["recurrenceInstanceDate"][:10])
            for r in data["events"]
            if r.get("recurrenceSeriesId") == series_id and r.get("recurrenceInstanceDate")
        )
        anchors.discard(None)
        return anchors

    def find_occurrences(self, series_id: str) -> list[Task | CalendarEvent]:
        with self._lock:
            data = self._load()
        found: list[Task | CalendarEvent] = [
            t for t in map(Task.from_api, data["tasks"]) if t.series_id == series_id
        ]
        found.extend(
            CalendarEvent.from_api(r) for r in data["events"] if r.get("recurrenceSeriesId") == series_id
        )
        return found

    def exists_for_anchor(self, series_id: str, anchor: date) -> bool:
        with self._lock:
            return anchor in self._anchors(self._load(), series_id)

    def create_occurrence(self, template: dict) -> Task | CalendarEvent:
        """Insert an occurrence; enforces one occurrence per series and anchor date."""
        with self._lock:
            data = self._load()
            series_id = template.get("recurrenceSeriesId")
            instance = template.get("recurrenceInstanceDate")
            if series_id and instance:
                anchor = date.fromisoformat(instance)
                if anchor in self._anchors(data, series_id):
                    raise DuplicateOccurrenceError(series_id, anchor)

            record = {
                "id": str(uuid.uuid4()),
                "createdAt": datetime.now(timezone.utc).isoformat(),
                **template,
            }
            if "start" in template:
                data["events"].append(record)
                item = CalendarEvent.from_api(record)
            else:
                data["tasks"].append(record)
                item = Task.from_api(record)
            self._save(data)
            logger.debug(f"Created occurrence {record['id']} for series {series_id} on {instance}")
            return item

    # ---------- board items ----------

    def add_task(self, record: dict) -> Task:
        """Insert a plain task record (assigning id and createdAt if missing)."""
        with self._lock:
            data = self._load()
            record = {
                "id": record.get("id") or str(uuid.uuid4()),
                "createdAt": record.get("createdAt") or datetime.now(timezone.utc).isoformat(),
                **record,
            }
            data["tasks"].append(record)
            self._save(data)
            return Task.from_api(record)

    def list_tasks(self) -> list[Task]:
        with self._lock:
            return [Task.from_api(r) for r in self._load()["tasks"]]

    def list_events(self) -> list[CalendarEvent]:
        with self._lock:
            return [CalendarEvent.from_api(r) for r in self._load()["events"]]

    def get_item(self, item_id: str) -> Task:
        with self._lock:
            return Task.from_api(self._find(self._load()["tasks"], item_id, "Task"))

    def mutate_item(self, item_id: str, patch: dict) -> Task:
        with self._lock:
            data = self._load()
            record = self._find(data["tasks"], item_id, "Task")
            candidate = {**record, **patch}
            # Validate before writing so a bad patch leaves the record untouched
            task = Task.from_api(candidate)
            record.update(patch)
            self._save(data)
            return task

    def delete_item(self, item_id: str) -> None:
        with self._lock:
            data = self._load()
            record = self._find(data["tasks"], item_id, "Task")
            data["tasks"].remove(record)
            self._save(data)
