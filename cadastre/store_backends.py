from __future__ import annotations

import json
import re
import sqlite3
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from cadastre.db.postgres import PostgresTxRunner
from cadastre.settings import Settings
from cadastre.store import InMemoryStore


def _validate_identifier(name: str) -> str:
    if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
        raise ValueError(f"invalid SQL identifier: {name}")
    return name


def _decode_payload(payload_raw: Any) -> dict[str, Any] | None:
    if isinstance(payload_raw, dict):
        return payload_raw
    if not isinstance(payload_raw, str):
        return None
    try:
        payload = json.loads(payload_raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None
    return payload


def _encode_payload(snapshot: dict[str, Any]) -> str:
    return json.dumps(snapshot, sort_keys=True, ensure_ascii=True, separators=(",", ":"))


class SqliteBackedStore(InMemoryStore):
    """Persistent store backend that snapshots state to SQLite.

    Each transaction takes the database write lock (``BEGIN IMMEDIATE``),
    reloads the latest snapshot, and writes the new one on commit, so
    several processes sharing one file still serialise their updates.
    """

    def __init__(self, db_path: str) -> None:
        super().__init__()
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn: sqlite3.Connection | None = None
        self._initialize_database()
        self._load_state()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(str(self._db_path), isolation_level=None, timeout=30.0)

    def _initialize_database(self) -> None:
        conn = self._connect()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS store_state (
                  id INTEGER PRIMARY KEY CHECK (id = 1),
                  payload TEXT NOT NULL
                )
                """
            )
            conn.execute(
                "INSERT OR IGNORE INTO store_state(id, payload) VALUES (1, ?)",
                (_encode_payload(self._state_snapshot()),),
            )
        finally:
            conn.close()

    def _load_state(self) -> None:
        conn = self._connect()
        try:
            row = conn.execute("SELECT payload FROM store_state WHERE id = 1").fetchone()
        finally:
            conn.close()
        payload = _decode_payload(row[0]) if row is not None else None
        if payload is not None:
            self._restore_state(payload)

    def _refresh_state(self) -> None:
        self._load_state()

    def _begin_tx(self) -> None:
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute("SELECT payload FROM store_state WHERE id = 1").fetchone()
        except BaseException:
            conn.close()
            raise
        self._conn = conn
        payload = _decode_payload(row[0]) if row is not None else None
        if payload is not None:
            self._restore_state(payload)

    def _commit_tx(self) -> None:
        conn = self._conn
        if conn is None:
            return
        conn.execute(
            """
            INSERT INTO store_state(id, payload)
            VALUES (1, ?)
            ON CONFLICT(id) DO UPDATE SET payload = excluded.payload
            """,
            (_encode_payload(self._state_snapshot()),),
        )
        conn.execute("COMMIT")
        conn.close()
        self._conn = None

    def _rollback_tx(self) -> None:
        conn = self._conn
        if conn is None:
            return
        try:
            conn.execute("ROLLBACK")
        finally:
            conn.close()
            self._conn = None

    def reset(self) -> None:
        with self.transaction():
            super().reset()


class PostgresBackedStore(InMemoryStore):
    """Persistent store backend that snapshots state to PostgreSQL.

    The single state row is locked with ``SELECT ... FOR UPDATE`` for the
    duration of each transaction.
    """

    def __init__(self, *, dsn: str, table_name: str = "cadastre_store_state") -> None:
        super().__init__()
        self._table_name = _validate_identifier(table_name.strip() or "cadastre_store_state")
        self._tx_runner = PostgresTxRunner(dsn)
        self._conn: Any = None
        self._initialize_database()
        self._load_state()

    def _initialize_database(self) -> None:
        create_sql = f"""
                CREATE TABLE IF NOT EXISTS {self._table_name} (
                  id SMALLINT PRIMARY KEY,
                  payload JSONB NOT NULL
                )
                """
        seed_sql = f"""
                INSERT INTO {self._table_name}(id, payload)
                VALUES (1, %s::jsonb)
                ON CONFLICT(id) DO NOTHING
                """
        blob = _encode_payload(self._state_snapshot())

        def _op(conn: Any) -> None:
            with conn.cursor() as cur:
                cur.execute(create_sql)
                cur.execute(seed_sql, (blob,))

        self._tx_runner.run_in_tx(fn=_op)

    def _load_state(self) -> None:
        select_sql = f"SELECT payload::text FROM {self._table_name} WHERE id = 1"

        def _op(conn: Any) -> Any:
            with conn.cursor() as cur:
                cur.execute(select_sql)
                return cur.fetchone()

        row = self._tx_runner.run_in_tx(fn=_op)
        payload = _decode_payload(row[0]) if row is not None else None
        if payload is not None:
            self._restore_state(payload)

    def _refresh_state(self) -> None:
        self._load_state()

    def _begin_tx(self) -> None:
        lock_sql = f"SELECT payload::text FROM {self._table_name} WHERE id = 1 FOR UPDATE"

        def _op(conn: Any) -> Any:
            with conn.cursor() as cur:
                cur.execute(lock_sql)
                return cur.fetchone()

        conn, row = self._tx_runner.begin(fn=_op)
        self._conn = conn
        payload = _decode_payload(row[0]) if row is not None else None
        if payload is not None:
            self._restore_state(payload)

    def _commit_tx(self) -> None:
        conn = self._conn
        if conn is None:
            return
        upsert_sql = f"""
                    INSERT INTO {self._table_name}(id, payload)
                    VALUES (1, %s::jsonb)
                    ON CONFLICT(id) DO UPDATE SET payload = EXCLUDED.payload
                    """
        self._conn = None
        try:
            with conn.cursor() as cur:
                cur.execute(upsert_sql, (_encode_payload(self._state_snapshot()),))
        except BaseException:
            self._tx_runner.rollback(conn)
            raise
        self._tx_runner.commit(conn)

    def _rollback_tx(self) -> None:
        conn = self._conn
        if conn is None:
            return
        self._conn = None
        self._tx_runner.rollback(conn)

    def reset(self) -> None:
        with self.transaction():
            super().reset()


def create_store_from_env(environ: Mapping[str, str] | None = None) -> InMemoryStore:
    settings = Settings.from_env(environ)
    backend = settings.store_backend
    if backend == "sqlite":
        return SqliteBackedStore(settings.sqlite_path)
    if backend == "postgres":
        if not settings.postgres_dsn:
            raise ValueError("POSTGRES_DSN must be set when CADASTRE_STORE_BACKEND=postgres")
        return PostgresBackedStore(dsn=settings.postgres_dsn, table_name=settings.postgres_table)
    if backend != "memory":
        raise ValueError(f"unsupported CADASTRE_STORE_BACKEND: {backend}")
    return InMemoryStore()
