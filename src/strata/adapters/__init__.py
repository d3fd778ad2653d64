"""
Warehouse adapters.

Each adapter turns compiled actions into the ordered SQL tasks for one
warehouse dialect.
"""

from strata.adapters.base import Adapter
from strata.adapters.bigquery import BigQueryAdapter
from strata.adapters.duckdb import DuckDBAdapter
from strata.adapters.postgres import PostgresAdapter
from strata.adapters.redshift import RedshiftAdapter
from strata.adapters.snowflake import SnowflakeAdapter
from strata.core.project import ProjectConfig
from strata.exceptions import ConfigurationError

__all__ = [
    "Adapter",
    "BigQueryAdapter",
    "DuckDBAdapter",
    "PostgresAdapter",
    "RedshiftAdapter",
    "SnowflakeAdapter",
    "ADAPTERS",
    "create_adapter",
]

# Adapter registry
ADAPTERS = {
    "bigquery": BigQueryAdapter,
    "duckdb": DuckDBAdapter,
    "postgres": PostgresAdapter,
    "redshift": RedshiftAdapter,
    "snowflake": SnowflakeAdapter,
}


def create_adapter(project_config: ProjectConfig) -> Adapter:
    """Get the adapter for the project's warehouse."""
    warehouse = project_config.warehouse.lower()
    if warehouse not in ADAPTERS:
        raise ConfigurationError(
            f"Unknown warehouse: {project_config.warehouse}",
            details={"supported": sorted(ADAPTERS)},
        )
    return ADAPTERS[warehouse](project_config)
