from __future__ import annotations

from collections.abc import Callable
from typing import Any


def _import_psycopg() -> Any:
    try:
        import psycopg  # type: ignore
    except ImportError as exc:
        raise RuntimeError("psycopg is required for the postgres store backend; install psycopg[binary]") from exc
    return psycopg


class PostgresTxRunner:
    """Opens, finishes and closes connections for the snapshot row.

    ``begin`` hands back a connection whose transaction has already run the
    opening statement; the caller ends it with ``commit`` or ``rollback``,
    both of which close the connection.
    """

    def __init__(self, dsn: str) -> None:
        if not dsn.strip():
            raise ValueError("POSTGRES_DSN must not be empty")
        self._dsn = dsn.strip()

    def connect(self) -> Any:
        psycopg = _import_psycopg()
        return psycopg.connect(self._dsn)

    def begin(self, *, fn: Callable[[Any], Any] | None = None) -> tuple[Any, Any]:
        conn = self.connect()
        try:
            result = fn(conn) if fn is not None else None
        except BaseException:
            self.rollback(conn)
            raise
        return conn, result

    @staticmethod
    def commit(conn: Any) -> None:
        try:
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def rollback(conn: Any) -> None:
        try:
            conn.rollback()
        finally:
            conn.close()

    def run_in_tx(self, *, fn: Callable[[Any], Any]) -> Any:
        conn, result = self.begin(fn=fn)
        self.commit(conn)
        return result
