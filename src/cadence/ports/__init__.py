"""Ports - interfaces/protocols for external dependencies."""

from .clock import Clock
from .occurrence_store import (
    DuplicateOccurrenceError,
    OccurrenceStore,
    PersistenceError,
    PersistenceUnavailable,
)

__all__ = [
    "Clock",
    "OccurrenceStore",
    "PersistenceError",
    "DuplicateOccurrenceError",
    "PersistenceUnavailable",
]
