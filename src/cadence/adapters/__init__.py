"""Adapters - I/O implementations of ports."""

from .clock import FixedClock, SystemClock
from .dashboard_api import DashboardApiStore
from .json_store import JsonFileStore

__all__ = [
    "FixedClock",
    "SystemClock",
    "DashboardApiStore",
    "JsonFileStore",
]
