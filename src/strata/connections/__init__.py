"""
Warehouse connections.

A run talks to exactly one warehouse. DuckDB is specialised; the other
warehouses go through the generic ibis connection.
"""

from typing import Any

from strata.connections.base import BaseConnection, WarehouseSession
from strata.connections.duckdb import DuckDBConnection, DuckDBSession
from strata.connections.ibis_generic import IbisConnection, IbisSession
from strata.exceptions import ConfigurationError
from strata.utils.logging import get_logger

__all__ = [
    "BaseConnection",
    "DuckDBConnection",
    "DuckDBSession",
    "IbisConnection",
    "IbisSession",
    "WarehouseSession",
    "create_connection",
]

logger = get_logger("strata.connections")


def create_connection(config: dict[str, Any], name: str = "warehouse") -> BaseConnection:
    """
    Create a connection from the ``connection`` section of the project config.

    Example::

        connection:
          type: duckdb
          path: warehouse.duckdb
    """
    conn_type = config.get("type", "duckdb")
    if conn_type == "duckdb":
        return DuckDBConnection(name, config)
    if IbisConnection.supports_type(conn_type):
        logger.debug(f"Using generic ibis backend for {conn_type} connection '{name}'")
        return IbisConnection(name, config)
    raise ConfigurationError(
        f"Unknown connection type '{conn_type}' for connection '{name}'",
        details={"supported": ["duckdb", *sorted(IbisConnection.BACKEND_MAP)]},
    )
