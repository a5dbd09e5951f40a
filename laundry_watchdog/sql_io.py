# sql_io.py
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Optional

import psycopg2
from psycopg2.extensions import ISOLATION_LEVEL_AUTOCOMMIT
from psycopg2.extras import Json

from laundry_watchdog.errors import PersistenceError

# ---------------------------------------------------------------------
# Connection settings & helpers
# ---------------------------------------------------------------------

# Defaults, overridden by the "params" block of the storage settings
DB_PARAMS = {
    "dbname": "laundrydb",
    "user": "laundry_user",
    "host": "localhost",
    "port": "5432",
}


def build_dsn(params: Optional[Dict[str, Any]] = None) -> str:
    merged = dict(DB_PARAMS, **(params or {}))
    return " ".join(f"{k}={v}" for k, v in merged.items())


@contextmanager
def get_conn(dsn: str, autocommit: bool = True):
    """
    Context manager that yields a psycopg2 connection.
    Raises PersistenceError if the connection cannot be opened.
    """
    conn = None
    try:
        try:
            conn = psycopg2.connect(dsn)
        except psycopg2.Error as e:
            raise PersistenceError(f"Failed to connect to database: {str(e).strip()}") from e

        if autocommit:
            conn.set_isolation_level(ISOLATION_LEVEL_AUTOCOMMIT)
        yield conn

    finally:
        if conn is not None:
            conn.close()


# ---------------------------------------------------------------------
# Schema bootstrap (safe to run multiple times)
# ---------------------------------------------------------------------
SCHEMA_DDL = """
CREATE TABLE IF NOT EXISTS public.laundry_kv (
  key TEXT PRIMARY KEY,
  value JSONB,
  updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""

SELECT_SQL = "SELECT value FROM public.laundry_kv WHERE key = %s;"

UPSERT_SQL = """
INSERT INTO public.laundry_kv (key, value)
VALUES (%s, %s)
ON CONFLICT (key) DO UPDATE
  SET value = EXCLUDED.value,
      updated_at = now();
"""


class PostgresStore:
    """Key-value store over a single JSONB table."""

    def __init__(self, params: Optional[Dict[str, Any]] = None):
        self.dsn = build_dsn(params)
        self._schema_ready = False

    def ensure_schema(self):
        """Create the table if it doesn't exist."""
        if self._schema_ready:
            return
        self._execute(SCHEMA_DDL)
        self._schema_ready = True

    def _execute(self, sql: str, args=None, fetch: bool = False):
        try:
            with get_conn(self.dsn) as conn, conn.cursor() as cur:
                cur.execute(sql, args)
                return cur.fetchone() if fetch else None
        except psycopg2.Error as e:
            raise PersistenceError(f"Database error: {str(e).strip()}") from e

    def get(self, key: str, default=None):
        self.ensure_schema()
        row = self._execute(SELECT_SQL, (key,), fetch=True)
        if row is None or row[0] is None:
            return default
        return row[0]

    def set(self, key: str, value) -> None:
        self.ensure_schema()
        self._execute(UPSERT_SQL, (key, Json(value)))
