"""Selection and bulk actions over board tasks."""

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable

from .core.tasks import Priority, Status
from .ports.occurrence_store import OccurrenceStore
from .transitions import TaskNotFound, TransitionService

logger = logging.getLogger(__name__)


class MutationKind(Enum):
    SET_STATUS = "status"
    SET_PRIORITY = "priority"
    DELETE = "delete"


@dataclass(frozen=True)
class Mutation:
    """One change applied to every selected task."""

    kind: MutationKind
    value: Status | Priority | None = None

    @classmethod
    def set_status(cls, status: Status) -> "Mutation":
        return cls(MutationKind.SET_STATUS, status)

    @classmethod
    def set_priority(cls, priority: Priority) -> "Mutation":
        return cls(MutationKind.SET_PRIORITY, priority)

    @classmethod
    def delete(cls) -> "Mutation":
        return cls(MutationKind.DELETE)

    def describe(self) -> str:
        if self.kind is MutationKind.DELETE:
            return "delete"
        return f"set {self.kind.value} to {self.value.value}"


@dataclass
class MutationFailure:
    """A task the mutation could not be applied to, and why."""

    id: str
    reason: str


@dataclass
class BulkResult:
    succeeded: list[str] = field(default_factory=list)
    failed: list[MutationFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    @property
    def failed_ids(self) -> list[str]:
        return [f.id for f in self.failed]


class Selection:
    """
    Task ids selected on the board. Local to one board view, never persisted.

    Keeps selection order so bulk results read in the order items were picked.
    """

    def __init__(self, ids: Iterable[str] = ()):
        self._ids: dict[str, None] = dict.fromkeys(ids)

    def select(self, item_id: str) -> None:
        self._ids[item_id] = None

    def deselect(self, item_id: str) -> None:
        self._ids.pop(item_id, None)

    def toggle(self, item_id: str) -> None:
        if item_id in self._ids:
            self.deselect(item_id)
        else:
            self.select(item_id)

    def select_all(self, ids: Iterable[str]) -> None:
        self._ids.update(dict.fromkeys(ids))

    def clear(self) -> None:
        self._ids.clear()

    @property
    def ids(self) -> list[str]:
        return list(self._ids)

    def settle(self, result: BulkResult) -> None:
        """Clear after a fully successful batch; otherwise keep only the failures."""
        if result.ok:
            self.clear()
            return
        for item_id in result.succeeded:
            self.deselect(item_id)

    def __contains__(self, item_id: str) -> bool:
        return item_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def __iter__(self):
        return iter(list(self._ids))


class BulkOperations:
    """
    Applies one mutation to many tasks.

    Each id is mutated independently and concurrently; the result is
    reported once every id has settled. A mutation that does not finish
    within `timeout` seconds counts as failed.
    """

    def __init__(
        self,
        store: OccurrenceStore,
        transitions: TransitionService,
        max_workers: int = 4,
        timeout: float = 30.0,
    ):
        self.store = store
        self.transitions = transitions
        self.max_workers = max_workers
        self.timeout = timeout

    def _apply_one(self, item_id: str, mutation: Mutation) -> None:
        if mutation.kind is MutationKind.SET_STATUS:
            self.transitions.move(item_id, mutation.value)
            return
        try:
            match mutation.kind:
                case MutationKind.SET_PRIORITY:
                    self.store.mutate_item(item_id, {"priority": mutation.value.value})
                case MutationKind.DELETE:
                    self.store.delete_item(item_id)
        except KeyError as e:
            raise TaskNotFound(item_id) from e

    def apply(self, ids: Iterable[str], mutation: Mutation) -> BulkResult:
        """Apply `mutation` to each id. Never raises; failures are collected."""
        ids = list(dict.fromkeys(ids))
        result = BulkResult()
        if not ids:
            return result

        pool = ThreadPoolExecutor(max_workers=min(self.max_workers, len(ids)))
        try:
            futures = [(item_id, pool.submit(self._apply_one, item_id, mutation)) for item_id in ids]
            for item_id, future in futures:
                try:
                    future.result(timeout=self.timeout)
                    result.succeeded.append(item_id)
                except FutureTimeout:
                    result.failed.append(MutationFailure(item_id, f"timed out after {self.timeout:g}s"))
                except TaskNotFound:
                    result.failed.append(MutationFailure(item_id, "task not found"))
                except Exception as e:
                    result.failed.append(MutationFailure(item_id, str(e) or type(e).__name__))
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        for failure in result.failed:
            logger.warning(f"Bulk {mutation.describe()} failed for {failure.id}: {failure.reason}")
        logger.info(
            f"Bulk {mutation.describe()}: {len(result.succeeded)} succeeded, {len(result.failed)} failed"
        )
        return result

    def apply_selection(self, selection: Selection, mutation: Mutation) -> BulkResult:
        """Apply to the current selection, then settle the selection."""
        result = self.apply(selection.ids, mutation)
        selection.settle(result)
        return result
