"""
DuckDB adapter.

The default, locally runnable backend. DuckDB replaces tables and views
atomically and does not create schemas implicitly, so the schema is created
whenever the target object is absent.
"""

from strata.adapters.base import assertion_tasks, base_table_type, drop_if_exists, publish_table
from strata.core.actions import Assertion, Table
from strata.core.project import ProjectConfig, RunConfig
from strata.core.target import TableMetadata, Target
from strata.core.tasks import Task, Tasks
from strata.utils.sql_escape import escape_qualified_name


class DuckDBAdapter:
    """Task generation for DuckDB."""

    name = "duckdb"
    quote = '"'

    def __init__(self, project_config: ProjectConfig):
        self.project_config = project_config

    def resolve_target(self, target: Target) -> str:
        return escape_qualified_name(target.database, target.schema or self.project_config.default_schema, target.name)

    def normalize_identifier(self, identifier: str) -> str:
        return identifier

    def create_schema(self, target: Target) -> str:
        schema = escape_qualified_name(target.database, target.schema or self.project_config.default_schema)
        return f"create schema if not exists {schema}"

    def publish_tasks(self, table: Table, run_config: RunConfig, table_metadata: TableMetadata | None) -> Tasks:
        tasks = Tasks()
        if table_metadata is None:
            tasks.add(Task.statement_task(self.create_schema(table.target)))
        return tasks.add_all(publish_table(self, table, run_config, table_metadata))

    def assert_tasks(self, assertion: Assertion, project_config: ProjectConfig) -> Tasks:
        return (
            Tasks()
            .add(Task.statement_task(self.create_schema(assertion.target)))
            .add_all(assertion_tasks(self, assertion))
        )

    def drop_if_exists(self, target: Target, object_type: str) -> str:
        return drop_if_exists(self.resolve_target(target), object_type)

    def create_or_replace(self, table: Table) -> Tasks:
        object_type = base_table_type(table.type)
        return Tasks().add(
            Task.statement_task(f"create or replace {object_type} {self.resolve_target(table.target)} as {table.query}")
        )
