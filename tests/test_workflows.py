"""Tests for the shared workflow layer."""

from pathlib import Path

import pytest

from cadence.adapters.dashboard_api import DashboardApiStore
from cadence.adapters.json_store import JsonFileStore
from cadence.config import Config
from cadence.workflows import get_bulk, get_engine, get_store, get_transitions


class TestGetStore:
    def test_uses_configured_path(self, tmp_path):
        store = get_store(Config(store_path=str(tmp_path / "tasks.json")))
        assert isinstance(store, JsonFileStore)
        assert store.path == tmp_path / "tasks.json"

    def test_expands_user_path(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOME", str(tmp_path))
        store = get_store(Config(store_path="~/cadence/tasks.json"))
        assert "~" not in str(store.path)
        assert store.path == Path.home() / "cadence" / "tasks.json"

    def test_falls_back_to_default(self, monkeypatch, tmp_path):
        monkeypatch.setattr("cadence.workflows.DATA_DIR", tmp_path)
        store = get_store(Config())
        assert store.path == tmp_path / "cadence.json"

    def test_api_store(self):
        store = get_store(Config(store="api", api_base_url="https://dash.example.com", api_timeout=3))
        assert isinstance(store, DashboardApiStore)
        assert store.timeout == 3

    def test_api_store_requires_url(self):
        with pytest.raises(ValueError):
            get_store(Config(store="api"))


class TestWiring:
    @pytest.fixture
    def config(self, tmp_path):
        return Config(store_path=str(tmp_path / "cadence.json"), timezone="Europe/Paris",
                      bulk_workers=2, mutation_timeout=5)

    def test_engine_uses_config_timezone(self, config):
        assert get_engine(config).timezone == "Europe/Paris"

    def test_transitions_can_backfill(self, config):
        transitions = get_transitions(config)
        assert transitions.engine is not None
        assert transitions.engine.store is transitions.store

    def test_bulk_settings(self, config):
        bulk = get_bulk(config)
        assert bulk.max_workers == 2
        assert bulk.timeout == 5
        assert bulk.transitions.store is bulk.store
