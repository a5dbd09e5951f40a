"""
Unit tests for the key-value stores and the state repository.
"""

import json
from datetime import timedelta
from unittest import mock

import psycopg2
import pytest

from conftest import NOW
from laundry_watchdog.errors import InvalidTransition, PersistenceError
from laundry_watchdog.models import EPOCH, AlertLedger, HistoryEntry, LaundryStatus, RiskLevel
from laundry_watchdog.sql_io import PostgresStore, build_dsn
from laundry_watchdog.state_store import (
    JsonFileStore,
    MemoryStore,
    StateRepository,
    open_store,
)


class TestJsonFileStore:
    def test_missing_file_reads_default(self, tmp_path):
        store = JsonFileStore(str(tmp_path / "state.json"))
        assert store.get("anything", 7) == 7

    def test_writes_are_visible_to_new_instances(self, tmp_path):
        path = str(tmp_path / "state.json")
        JsonFileStore(path).set("key", {"a": 1})
        assert JsonFileStore(path).get("key") == {"a": 1}
        assert list(tmp_path.iterdir()) == [tmp_path / "state.json"]

    def test_corrupt_file_raises_persistence_error(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json")
        with pytest.raises(PersistenceError):
            JsonFileStore(str(path)).get("key")

    def test_unserializable_value_leaves_no_temp_file(self, tmp_path):
        store = JsonFileStore(str(tmp_path / "state.json"))
        with pytest.raises(PersistenceError):
            store.set("key", object())
        assert list(tmp_path.iterdir()) == []


class TestOpenStore:
    def test_backends(self, tmp_path):
        assert isinstance(open_store({"backend": "memory"}), MemoryStore)
        json_store = open_store({"backend": "json", "path": str(tmp_path / "s.json")})
        assert isinstance(json_store, JsonFileStore)
        pg_store = open_store({"backend": "postgres", "params": {"dbname": "x"}})
        assert isinstance(pg_store, PostgresStore)
        assert "dbname=x" in pg_store.dsn


class TestStateRepository:
    def test_defaults(self):
        repo = StateRepository(MemoryStore())
        assert repo.load_state().status is LaundryStatus.NOT_HANGING
        assert repo.load_ledger() == AlertLedger(0, EPOCH)
        assert repo.stored_location() is None
        assert repo.history() == []

    def test_update_status_persists(self, tmp_path):
        path = str(tmp_path / "state.json")
        StateRepository(JsonFileStore(path)).update_status(LaundryStatus.HANGING, NOW)
        state = StateRepository(JsonFileStore(path)).load_state()
        assert state.status is LaundryStatus.HANGING
        assert state.hang_time == NOW
        assert state.changed_at == NOW

    def test_invalid_transition_not_persisted(self):
        repo = StateRepository(MemoryStore())
        with pytest.raises(InvalidTransition):
            repo.update_status(LaundryStatus.BROUGHT_IN, NOW)
        assert repo.load_state().status is LaundryStatus.NOT_HANGING

    def test_unknown_status_reads_as_not_hanging(self):
        repo = StateRepository(MemoryStore({"laundry_state": {"status": "FOLDED"}}))
        assert repo.load_state().status is LaundryStatus.NOT_HANGING

    def test_ledger_round_trip_through_json_file(self, tmp_path):
        path = str(tmp_path / "state.json")
        StateRepository(JsonFileStore(path)).save_ledger(AlertLedger(75, NOW))
        with open(path) as f:
            raw = json.load(f)
        assert raw["alert_ledger"]["last_alert_probability"] == 75
        assert StateRepository(JsonFileStore(path)).load_ledger() == AlertLedger(75, NOW)

    def test_store_failure_wrapped(self):
        store = mock.Mock()
        store.get.side_effect = RuntimeError("boom")
        with pytest.raises(PersistenceError):
            StateRepository(store).load_ledger()

    def test_history_is_capped(self):
        repo = StateRepository(MemoryStore(), history_limit=3)
        for i in range(5):
            repo.append_history(
                HistoryEntry(NOW + timedelta(minutes=i), "rain_alert", LaundryStatus.HANGING, 60 + i, RiskLevel.LOW, i)
            )
        history = repo.history()
        assert [e.probability for e in history] == [62, 63, 64]
        assert history[0].risk_level is RiskLevel.LOW
        assert history[-1].time == NOW + timedelta(minutes=4)

    def test_ledger_guard_is_exclusive(self):
        repo = StateRepository(MemoryStore())
        with repo.ledger_guard():
            assert repo._ledger_lock.locked()
        assert not repo._ledger_lock.locked()


class TestPostgresStore:
    """Database access is mocked; only the SQL traffic is checked."""

    @mock.patch("laundry_watchdog.sql_io.psycopg2.connect")
    def test_get_returns_stored_value(self, mock_connect):
        cur = mock_connect.return_value.cursor.return_value.__enter__.return_value
        cur.fetchone.return_value = ({"status": "HANGING"},)

        store = PostgresStore({"dbname": "laundry_test"})
        assert store.get("laundry_state") == {"status": "HANGING"}
        sql, args = cur.execute.call_args[0]
        assert "SELECT value FROM public.laundry_kv" in sql
        assert args == ("laundry_state",)

    @mock.patch("laundry_watchdog.sql_io.psycopg2.connect")
    def test_get_missing_key_returns_default(self, mock_connect):
        cur = mock_connect.return_value.cursor.return_value.__enter__.return_value
        cur.fetchone.return_value = None
        assert PostgresStore().get("nothing", "fallback") == "fallback"

    @mock.patch("laundry_watchdog.sql_io.psycopg2.connect")
    def test_set_upserts_json(self, mock_connect):
        cur = mock_connect.return_value.cursor.return_value.__enter__.return_value
        store = PostgresStore()
        store.set("alert_ledger", {"last_alert_probability": 80})
        sql, args = cur.execute.call_args[0]
        assert "ON CONFLICT (key) DO UPDATE" in sql
        assert args[0] == "alert_ledger"
        assert args[1].adapted == {"last_alert_probability": 80}
        mock_connect.return_value.close.assert_called()

    @mock.patch("laundry_watchdog.sql_io.psycopg2.connect")
    def test_schema_created_once(self, mock_connect):
        cur = mock_connect.return_value.cursor.return_value.__enter__.return_value
        cur.fetchone.return_value = None
        store = PostgresStore()
        store.get("a")
        store.get("b")
        ddl_calls = [c for c in cur.execute.call_args_list if "CREATE TABLE" in c[0][0]]
        assert len(ddl_calls) == 1

    @mock.patch("laundry_watchdog.sql_io.psycopg2.connect")
    def test_connection_failure_raises_persistence_error(self, mock_connect):
        mock_connect.side_effect = psycopg2.OperationalError("could not connect")
        with pytest.raises(PersistenceError):
            PostgresStore().set("k", 1)

    def test_build_dsn_merges_defaults(self):
        dsn = build_dsn({"dbname": "other", "password": "secret"})
        assert "dbname=other" in dsn
        assert "host=localhost" in dsn
        assert "password=secret" in dsn
