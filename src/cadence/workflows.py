"""Shared wiring between the CLI and the scheduler.

Each get_* function resolves a collaborator from config.
"""

from pathlib import Path

from .adapters.clock import SystemClock
from .adapters.dashboard_api import DashboardApiStore
from .adapters.json_store import JsonFileStore
from .backfill import BackfillEngine
from .bulk import BulkOperations
from .config import DATA_DIR, Config
from .ports.clock import Clock
from .ports.occurrence_store import OccurrenceStore
from .transitions import TransitionService


def get_store(config: Config) -> OccurrenceStore:
    """Resolve the persistence adapter from config."""
    if config.store == "api":
        return DashboardApiStore(
            base_url=config.api_base_url,
            token=config.api_token,
            timeout=config.api_timeout,
        )
    if config.store_path:
        return JsonFileStore(Path(config.store_path).expanduser())
    return JsonFileStore(DATA_DIR / "cadence.json")


def get_clock(config: Config) -> Clock:
    return SystemClock(config.timezone)


def get_engine(config: Config, store: OccurrenceStore | None = None, clock: Clock | None = None) -> BackfillEngine:
    return BackfillEngine(store or get_store(config), clock or get_clock(config))


def get_transitions(
    config: Config,
    store: OccurrenceStore | None = None,
    clock: Clock | None = None,
) -> TransitionService:
    store = store or get_store(config)
    clock = clock or get_clock(config)
    return TransitionService(store, clock, BackfillEngine(store, clock))


def get_bulk(
    config: Config,
    store: OccurrenceStore | None = None,
    clock: Clock | None = None,
) -> BulkOperations:
    store = store or get_store(config)
    return BulkOperations(
        store,
        get_transitions(config, store, clock),
        max_workers=config.bulk_workers,
        timeout=config.mutation_timeout,
    )
