"""Key-value stores and the repository that maps laundry state, ledger and history onto them."""

import json
import os
import tempfile
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from laundry_watchdog.errors import PersistenceError
from laundry_watchdog.log_util import app_logger
from laundry_watchdog.models import (
    EPOCH,
    AlertLedger,
    HistoryEntry,
    LaundryState,
    LaundryStatus,
    RiskLevel,
)

logger = app_logger(__name__)

KEY_STATE = "laundry_state"
KEY_LEDGER = "alert_ledger"
KEY_LOCATION = "location"
KEY_HISTORY = "history"

HISTORY_LIMIT = 500


class MemoryStore:
    """Process-local store, used for tests and one-shot runs."""

    def __init__(self, initial: Optional[Dict] = None):
        self._data = dict(initial or {})

    def get(self, key: str, default=None):
        return self._data.get(key, default)

    def set(self, key: str, value) -> None:
        self._data[key] = value


class JsonFileStore:
    """
    Whole-document JSON file store.

    Every read goes back to disk so separate CLI invocations see each other's
    writes. Writes land in a temp file first and replace the document atomically.
    """

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.Lock()

    def _read(self) -> Dict:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r") as f:
                doc = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Cannot read state file {self.path}: {e}") from e
        if not isinstance(doc, dict):
            raise PersistenceError(f"State file {self.path} does not hold a JSON object")
        return doc

    def get(self, key: str, default=None):
        with self._lock:
            return self._read().get(key, default)

    def set(self, key: str, value) -> None:
        with self._lock:
            doc = self._read()
            doc[key] = value
            directory = os.path.dirname(os.path.abspath(self.path))
            tmp_path = None
            try:
                fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
                with os.fdopen(fd, "w") as f:
                    json.dump(doc, f, indent=2)
                os.replace(tmp_path, self.path)
            except (OSError, TypeError, ValueError) as e:
                if tmp_path is not None and os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise PersistenceError(f"Cannot write state file {self.path}: {e}") from e


def open_store(storage: Dict):
    """Build the key-value store named by the settings' storage block."""
    backend = storage.get("backend", "json")
    if backend == "memory":
        return MemoryStore()
    if backend == "postgres":
        from laundry_watchdog.sql_io import PostgresStore

        return PostgresStore(storage.get("params"))
    return JsonFileStore(storage.get("path", "laundry_state.json"))


def _dump_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _load_time(value, default: Optional[datetime] = None) -> Optional[datetime]:
    if not value:
        return default
    try:
        return datetime.fromisoformat(value)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring unreadable timestamp in store: {value!r}")
        return default


class StateRepository:
    """
    Owns every persisted record: laundry state, alert ledger, last location and history.

    The ledger lock is shared by all cycles using this repository; callers hold it
    across ledger read, decision and write.
    """

    def __init__(self, store, history_limit: int = HISTORY_LIMIT):
        self.store = store
        self.history_limit = history_limit
        self._ledger_lock = threading.Lock()
        self._history_lock = threading.Lock()

    def _get(self, key: str, default=None):
        try:
            return self.store.get(key, default)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to read '{key}': {e}") from e

    def _set(self, key: str, value) -> None:
        try:
            self.store.set(key, value)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError(f"Failed to write '{key}': {e}") from e

    # --- laundry state ---
    def load_state(self) -> LaundryState:
        raw = self._get(KEY_STATE) or {}
        try:
            status = LaundryStatus[raw.get("status", LaundryStatus.NOT_HANGING.name)]
        except KeyError:
            status = LaundryStatus.NOT_HANGING
        return LaundryState(
            status=status,
            changed_at=_load_time(raw.get("changed_at"), EPOCH),
            hang_time=_load_time(raw.get("hang_time")),
        )

    def save_state(self, state: LaundryState) -> None:
        self._set(
            KEY_STATE,
            {
                "status": state.status.name,
                "changed_at": _dump_time(state.changed_at),
                "hang_time": _dump_time(state.hang_time),
            },
        )

    def update_status(self, status: LaundryStatus, now: datetime) -> LaundryState:
        current = self.load_state()
        updated = current.transition(status, now)
        if updated is not current:
            self.save_state(updated)
        return updated

    # --- alert ledger ---
    @contextmanager
    def ledger_guard(self):
        with self._ledger_lock:
            yield

    def load_ledger(self) -> AlertLedger:
        raw = self._get(KEY_LEDGER) or {}
        return AlertLedger(
            last_alert_probability=int(raw.get("last_alert_probability", 0) or 0),
            last_alert_time=_load_time(raw.get("last_alert_time"), EPOCH),
        )

    def save_ledger(self, ledger: AlertLedger) -> None:
        # One record so a failed write never leaves half a ledger behind
        self._set(
            KEY_LEDGER,
            {
                "last_alert_probability": int(ledger.last_alert_probability),
                "last_alert_time": _dump_time(ledger.last_alert_time),
            },
        )

    # --- location ---
    def stored_location(self) -> Optional[Tuple[float, float, datetime]]:
        loc = self._get(KEY_LOCATION)
        if not loc:
            return None
        try:
            return float(loc["lat"]), float(loc["lon"]), _load_time(loc.get("timestamp"), EPOCH)
        except (KeyError, TypeError, ValueError):
            logger.warning(f"Ignoring unreadable stored location: {loc!r}")
            return None

    def save_location(self, lat: float, lon: float, now: datetime) -> None:
        self._set(KEY_LOCATION, {"lat": lat, "lon": lon, "timestamp": _dump_time(now)})

    # --- history ---
    def append_history(self, entry: HistoryEntry) -> None:
        record = {
            "time": _dump_time(entry.time),
            "event": entry.event,
            "status": entry.status.name,
            "probability": entry.probability,
            "risk_level": entry.risk_level.name if entry.risk_level is not None else None,
            "minutes_until_rain": entry.minutes_until_rain,
        }
        with self._history_lock:
            entries = list(self._get(KEY_HISTORY, []) or [])
            entries.append(record)
            self._set(KEY_HISTORY, entries[-self.history_limit:])

    def history(self) -> List[HistoryEntry]:
        out = []
        for raw in self._get(KEY_HISTORY, []) or []:
            try:
                out.append(
                    HistoryEntry(
                        time=_load_time(raw["time"], EPOCH),
                        event=raw["event"],
                        status=LaundryStatus[raw["status"]],
                        probability=raw.get("probability"),
                        risk_level=RiskLevel[raw["risk_level"]] if raw.get("risk_level") else None,
                        minutes_until_rain=raw.get("minutes_until_rain"),
                    )
                )
            except (KeyError, TypeError):
                logger.warning(f"Skipping unreadable history entry: {raw!r}")
        return out
