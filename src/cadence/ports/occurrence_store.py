"""Persistence interface for series and their occurrences."""

from datetime import date
from typing import Protocol

from cadence.core.calendar import CalendarEvent
from cadence.core.series import Series
from cadence.core.tasks import Task


class PersistenceError(Exception):
    """Base class for store failures."""


class DuplicateOccurrenceError(PersistenceError):
    """An occurrence for this series and anchor date already exists."""

    def __init__(self, series_id: str, anchor: date):
        super().__init__(f"Occurrence for series {series_id} on {anchor.isoformat()} already exists")
        self.series_id = series_id
        self.anchor = anchor


class PersistenceUnavailable(PersistenceError):
    """The backing store could not be reached or refused the call."""


class OccurrenceStore(Protocol):
    """
    Interface for the canonical storage of series, tasks and events.

    Implementations enforce uniqueness of (series id, anchor date) and raise
    DuplicateOccurrenceError when a create would violate it. Unknown ids
    raise KeyError.
    """

    def get_series(self, series_id: str) -> Series:
        """Fetch one series."""
        ...

    def list_series(self) -> list[Series]:
        """Fetch every series, recurring or not."""
        ...

    def find_occurrences(self, series_id: str) -> list[Task | CalendarEvent]:
        """All occurrences generated for a series."""
        ...

    def exists_for_anchor(self, series_id: str, anchor: date) -> bool:
        """Whether an occurrence for this series and anchor date exists."""
        ...

    def create_occurrence(self, template: dict) -> Task | CalendarEvent:
        """Create an occurrence from a series template."""
        ...

    def update_series(self, series_id: str, last_generated_anchor: date) -> None:
        """Record the anchor of the most recently generated occurrence."""
        ...

    def list_tasks(self) -> list[Task]:
        """Snapshot of every task, for the board."""
        ...

    def list_events(self) -> list[CalendarEvent]:
        """Snapshot of every calendar event."""
        ...

    def get_item(self, item_id: str) -> Task:
        """Fetch one task."""
        ...

    def mutate_item(self, item_id: str, patch: dict) -> Task:
        """Apply a field patch to a task and return the updated task."""
        ...

    def delete_item(self, item_id: str) -> None:
        """Delete a task."""
        ...
