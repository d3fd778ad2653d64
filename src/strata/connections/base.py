"""
Abstract base connection class for ibis-backed warehouse connections.

A connection hands out sessions; the runner gives every execution node its
own session so statements of independent nodes can run side by side.
"""

from abc import ABC, abstractmethod
from typing import Any

import ibis

from strata.core.target import TableMetadata, Target
from strata.exceptions import TaskExecutionError
from strata.utils.logging import get_logger
from strata.utils.sql_escape import escape_sql_string

logger = get_logger("strata.connections.base")

# information_schema.tables.table_type -> object kind
_TABLE_TYPES = {
    "BASE TABLE": "table",
    "TABLE": "table",
    "LOCAL TEMPORARY": "table",
    "VIEW": "view",
}


def fetch_rows(result: Any) -> list[tuple]:
    """Rows from a DB-API cursor or row iterator; empty for statements without output."""
    if result is None:
        return []
    if hasattr(result, "fetchall"):
        if getattr(result, "description", None) is None:
            return []
        return [tuple(row) for row in result.fetchall()]
    return [tuple(row.values()) if hasattr(row, "values") else tuple(row) for row in result]


def execute_sql(backend: ibis.BaseBackend, sql: str) -> list[tuple]:
    """Run one statement through an ibis backend's raw_sql and collect its rows."""
    try:
        result = backend.raw_sql(sql)
        try:
            return fetch_rows(result)
        finally:
            if hasattr(result, "close"):
                result.close()
    except Exception as e:
        raise TaskExecutionError(sql, str(e), cause=e) from e


class WarehouseSession(ABC):
    """One logical session on a warehouse, used by a single execution node."""

    #: Whether ``cancel()`` can interrupt an in-flight statement
    supports_cancellation: bool = False

    @abstractmethod
    def execute(self, sql: str) -> list[tuple]:
        """
        Execute one SQL statement.

        Returns:
            Result rows (empty for DDL/DML)

        Raises:
            TaskExecutionError: If the warehouse rejects the statement
        """

    def cancel(self) -> None:
        """Interrupt the in-flight statement, if the driver supports it."""

    def close(self) -> None:
        """Release the session."""

    def __enter__(self) -> "WarehouseSession":
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: Any) -> None:
        self.close()


class BaseConnection(ABC):
    """
    Base class for all warehouse connections using ibis.

    Subclasses provide the ibis backend and per-node sessions; statement
    execution and metadata lookups are shared.
    """

    def __init__(self, name: str, config: dict[str, Any]):
        """
        Initialize connection.

        Args:
            name: Connection name (from config)
            config: Connection configuration dictionary
        """
        self.name = name
        self.config = config
        self._connection: ibis.BaseBackend | None = None

    @property
    @abstractmethod
    def connection(self) -> ibis.BaseBackend:
        """
        Get ibis backend connection (lazy initialization).

        Raises:
            ConnectionError_: If the warehouse cannot be reached
        """

    @property
    def supports_cancellation(self) -> bool:
        return False

    @abstractmethod
    def session(self) -> WarehouseSession:
        """Open a session for one execution node."""

    def cancel(self) -> None:
        """Interrupt statements running on the connection's own backend."""

    def execute(self, sql: str) -> list[tuple]:
        """
        Execute SQL via the ibis backend and return the result rows.

        Raises:
            TaskExecutionError: If the warehouse rejects the statement
        """
        return execute_sql(self.connection, sql)

    def information_schema(self, target: Target) -> str:
        """Qualifier of the information schema holding ``target``."""
        return "information_schema"

    def describe(self, target: Target) -> TableMetadata | None:
        """
        Look up the current state of a warehouse object.

        Returns:
            TableMetadata, or None when the object does not exist
        """
        schema = self.information_schema(target)
        conditions = [
            f"table_schema = {escape_sql_string(target.schema)}",
            f"table_name = {escape_sql_string(target.name)}",
        ]
        if target.database:
            conditions.append(f"table_catalog = {escape_sql_string(target.database)}")
        predicate = " and ".join(conditions)

        rows = self.execute(f"select table_type from {schema}.tables where {predicate}")
        if not rows:
            return None
        table_type = _TABLE_TYPES.get(str(rows[0][0]).upper(), "table")

        columns = self.execute(
            f"select column_name from {schema}.columns where {predicate} order by ordinal_position"
        )
        logger.debug(f"Described {target}: {table_type} with {len(columns)} column(s)")
        return TableMetadata(type=table_type, columns=tuple(str(c[0]) for c in columns))

    def close(self) -> None:
        """Close connection and cleanup resources."""
        if self._connection is not None:
            try:
                self._connection.disconnect()
            except Exception as e:
                logger.debug(f"Error during disconnect() for {self.name}: {e}")
            self._connection = None

    def __enter__(self) -> "BaseConnection":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: Any) -> None:
        """Context manager exit - closes connection."""
        try:
            self.close()
        except Exception as e:
            # Don't override the original exception if one occurred
            if exc_type is None:
                raise
            logger.warning(f"Error closing connection {self.name} during context exit: {e}")

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"
