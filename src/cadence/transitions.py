"""Board status transitions (drag between columns, status edits)."""

import logging
from dataclasses import dataclass

from .backfill import BackfillEngine, BackfillResult
from .core.board import transition_patch, valid_transition
from .core.recurrence import ScheduleFrom
from .core.tasks import Status, Task
from .ports.clock import Clock
from .ports.occurrence_store import OccurrenceStore, PersistenceError

logger = logging.getLogger(__name__)


class TaskNotFound(KeyError):
    """The task being changed does not exist."""

    def __init__(self, task_id: str):
        super().__init__(task_id)
        self.task_id = task_id

    def __str__(self) -> str:
        return f"task {self.task_id} not found"


@dataclass
class MoveResult:
    task: Task
    backfill: BackfillResult | None = None


class TransitionService:
    """
    Applies status changes to tasks.

    Every move is allowed. Completing an occurrence of a completion-anchored
    series generates that series' next occurrence; reopening a task does not
    retract it. A failure while generating is logged and leaves the move in
    place; the scheduled backfill run creates the occurrence later.
    """

    def __init__(self, store: OccurrenceStore, clock: Clock, engine: BackfillEngine | None = None):
        self.store = store
        self.clock = clock
        self.engine = engine

    def move(self, task_id: str, to_status: Status) -> MoveResult:
        """Move a task to a column. Raises TaskNotFound / PersistenceError from the store."""
        try:
            task = self.store.get_item(task_id)
        except KeyError as e:
            raise TaskNotFound(task_id) from e
        if not valid_transition(task.status, to_status):
            raise ValueError(f"Cannot move {task_id} from {task.status.value} to {to_status.value}")

        try:
            updated = self.store.mutate_item(task_id, transition_patch(task, to_status, self.clock.now()))
        except KeyError as e:
            raise TaskNotFound(task_id) from e
        result = MoveResult(task=updated)

        if to_status is Status.COMPLETED and not task.is_completed and updated.series_id:
            result.backfill = self._after_completion(updated.series_id)
        return result

    def _after_completion(self, series_id: str) -> BackfillResult | None:
        if self.engine is None:
            return None
        try:
            series = self.store.get_series(series_id)
        except KeyError:
            logger.info(f"Series {series_id} no longer exists; occurrence is orphaned")
            return None
        except (PersistenceError, ValueError) as e:
            logger.warning(f"Could not load series {series_id} after completion, next backfill run will catch up: {e}")
            return None

        if series.rule.schedule_from is not ScheduleFrom.COMPLETION_DATE:
            return None
        try:
            return self.engine.backfill(series_id)
        except Exception as e:
            logger.error(f"Backfill of {series_id} after completion failed, next run will catch up: {e}")
            return None
