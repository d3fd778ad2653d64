"""
DuckDB connection via ibis.

Sessions are DuckDB cursors: they share the database (in-memory databases
included) and can be interrupted independently.
"""

import re
import threading
from pathlib import Path
from typing import Any

import duckdb
import ibis

from strata.connections.base import BaseConnection, WarehouseSession, fetch_rows
from strata.exceptions import ConnectionError_, TaskExecutionError
from strata.utils.logging import get_logger

logger = get_logger("strata.connections.duckdb")

# Schema DDL that concurrent cursors would otherwise race on
_SCHEMA_DDL = re.compile(r"\s*(create|drop)\s+schema\b", re.IGNORECASE)


class DuckDBSession(WarehouseSession):
    """A DuckDB cursor used by one execution node."""

    supports_cancellation = True

    def __init__(self, cursor: duckdb.DuckDBPyConnection, catalog_lock: "threading.Lock | None" = None):
        self._cursor = cursor
        self._catalog_lock = catalog_lock

    def execute(self, sql: str) -> list[tuple]:
        if self._catalog_lock is not None and _SCHEMA_DDL.match(sql):
            # One schema change at a time across cursors; each commits before the next starts
            with self._catalog_lock:
                return self._execute(sql)
        return self._execute(sql)

    def _execute(self, sql: str) -> list[tuple]:
        try:
            self._cursor.execute(sql)
            return fetch_rows(self._cursor)
        except duckdb.Error as e:
            raise TaskExecutionError(sql, str(e), cause=e) from e

    def cancel(self) -> None:
        self._cursor.interrupt()

    def close(self) -> None:
        self._cursor.close()


class DuckDBConnection(BaseConnection):
    """DuckDB connection wrapper using ibis."""

    def __init__(self, name: str, config: dict[str, Any]):
        super().__init__(name, config)
        self._catalog_lock = threading.Lock()

    @property
    def connection(self) -> ibis.BaseBackend:
        """
        Get DuckDB connection via ibis (lazy initialization).

        Returns:
            ibis.BaseBackend: ibis DuckDB backend
        """
        if self._connection is None:
            path = str(self.config.get("path", ":memory:"))

            if path == ":memory:":
                self._connection = ibis.duckdb.connect()
            else:
                # Ensure directory exists for file-based databases
                Path(path).parent.mkdir(parents=True, exist_ok=True)
                try:
                    self._connection = ibis.duckdb.connect(path)
                except duckdb.Error as e:
                    error_str = str(e)
                    if "lock" in error_str.lower() or "conflicting" in error_str.lower():
                        pid_match = re.search(r"PID\s+(\d+)", error_str)
                        pid_info = f" (PID: {pid_match.group(1)})" if pid_match else ""
                        raise ConnectionError_(
                            f"Cannot connect to DuckDB database '{path}': File is locked by another process{pid_info}",
                            details={"connection": self.name, "path": path},
                        ) from e
                    raise ConnectionError_(
                        f"Cannot connect to DuckDB database '{path}': {error_str}",
                        details={"connection": self.name, "path": path},
                    ) from e
            logger.debug(f"Connected to DuckDB database '{path}' for connection '{self.name}'")

        return self._connection

    @property
    def supports_cancellation(self) -> bool:
        return True

    @property
    def _raw(self) -> duckdb.DuckDBPyConnection:
        # Underlying DuckDB connection owned by the ibis backend
        return self.connection.con

    def session(self) -> DuckDBSession:
        return DuckDBSession(self._raw.cursor(), self._catalog_lock)

    def cancel(self) -> None:
        if self._connection is not None:
            self._raw.interrupt()

    def execute(self, sql: str) -> list[tuple]:
        with self.session() as session:
            return session.execute(sql)
