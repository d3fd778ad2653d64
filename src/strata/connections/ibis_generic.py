"""
Generic ibis connection for the remaining warehouses.

Each session opens its own backend connection; cloud warehouses handle the
concurrency themselves. Redshift speaks the Postgres protocol and is reached
through the ibis Postgres backend.

Install backend extras as needed:
    pip install ibis-framework[postgres]
    pip install ibis-framework[snowflake]
    pip install ibis-framework[bigquery]
"""

import importlib
from typing import Any

import ibis

from strata.connections.base import BaseConnection, WarehouseSession, execute_sql
from strata.core.target import Target
from strata.exceptions import ConnectionError_
from strata.utils.logging import get_logger

logger = get_logger("strata.connections.ibis_generic")


class IbisSession(WarehouseSession):
    """Session backed by a dedicated connection of the parent's backend."""

    def __init__(self, parent: "IbisConnection"):
        self._parent = parent
        self._backend = parent.connect()

    def execute(self, sql: str) -> list[tuple]:
        return execute_sql(self._backend, sql)

    def close(self) -> None:
        try:
            self._backend.disconnect()
        except Exception as e:
            logger.debug(f"Error closing session for {self._parent.name}: {e}")


class IbisConnection(BaseConnection):
    """
    Connection wrapper for ibis-supported warehouses.

    Config example (Snowflake)::

        connection:
          type: snowflake
          config:
            account: myorg-myaccount
            user: ${SNOWFLAKE_USER}
            password: ${SNOWFLAKE_PASSWORD}
            database: ANALYTICS
            warehouse: COMPUTE_WH
    """

    # Map of connection type -> ibis module path
    BACKEND_MAP: dict[str, str] = {
        "postgres": "ibis.postgres",
        "redshift": "ibis.postgres",
        "snowflake": "ibis.snowflake",
        "bigquery": "ibis.bigquery",
    }

    def __init__(self, name: str, config: dict[str, Any]):
        super().__init__(name, config)
        self._backend_type: str = config.get("type", "")
        if self._backend_type not in self.BACKEND_MAP:
            raise ValueError(
                f"Unsupported ibis backend type '{self._backend_type}' for connection '{name}'. "
                f"Supported types: {', '.join(sorted(self.BACKEND_MAP))}"
            )

    @classmethod
    def supports_type(cls, conn_type: str | None) -> bool:
        return conn_type in cls.BACKEND_MAP

    @property
    def backend_type(self) -> str:
        return self._backend_type

    @property
    def connection(self) -> ibis.BaseBackend:
        if self._connection is None:
            self._connection = self.connect()
            logger.info(f"Connected to {self._backend_type} backend for connection '{self.name}'")
        return self._connection

    def connect(self) -> ibis.BaseBackend:
        """
        Create a fresh connection to the backend.

        Raises:
            ConnectionError_: If the backend extra is missing or the warehouse is unreachable
        """
        module_path = self.BACKEND_MAP[self._backend_type]
        connect_kwargs = dict(self.config.get("config", {}))
        try:
            module = importlib.import_module(module_path)
        except ImportError as e:
            raise ConnectionError_(
                f"Cannot import ibis backend '{self._backend_type}' for connection '{self.name}'. "
                f"Install the required extra: pip install 'ibis-framework[{self._backend_type}]'",
                details={"connection": self.name},
            ) from e
        try:
            return module.connect(**connect_kwargs)
        except Exception as e:
            raise ConnectionError_(
                f"Failed to connect to {self._backend_type} backend for connection '{self.name}': {e}",
                details={"connection": self.name, "config_keys": list(connect_kwargs)},
            ) from e

    def session(self) -> IbisSession:
        return IbisSession(self)

    def information_schema(self, target: Target) -> str:
        if self._backend_type == "bigquery":
            dataset = ".".join(p for p in (target.database, target.schema) if p)
            return f"`{dataset}`.INFORMATION_SCHEMA"
        return super().information_schema(target)
