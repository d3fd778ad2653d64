"""
Postgres adapter.

Like Redshift, tables are rebuilt with the temporary-table swap.
"""

from strata.adapters.base import assertion_tasks, base_table_type, drop_if_exists, publish_table
from strata.core.actions import Assertion, Table
from strata.core.project import ProjectConfig, RunConfig
from strata.core.target import TableMetadata, Target
from strata.core.tasks import Task, Tasks
from strata.utils.sql_escape import escape_identifier, escape_qualified_name


class PostgresAdapter:
    """Task generation for PostgreSQL."""

    name = "postgres"
    quote = '"'

    def __init__(self, project_config: ProjectConfig):
        self.project_config = project_config

    def resolve_target(self, target: Target) -> str:
        # Cross-database references are not supported; the database is the connection's
        return escape_qualified_name(target.schema or self.project_config.default_schema, target.name)

    def normalize_identifier(self, identifier: str) -> str:
        return identifier

    def publish_tasks(self, table: Table, run_config: RunConfig, table_metadata: TableMetadata | None) -> Tasks:
        return publish_table(self, table, run_config, table_metadata)

    def assert_tasks(self, assertion: Assertion, project_config: ProjectConfig) -> Tasks:
        return assertion_tasks(self, assertion)

    def drop_if_exists(self, target: Target, object_type: str) -> str:
        return drop_if_exists(self.resolve_target(target), object_type)

    def create_or_replace(self, table: Table) -> Tasks:
        resolved = self.resolve_target(table.target)
        if base_table_type(table.type) == "view":
            return Tasks().add(Task.statement_task(f"create or replace view {resolved} as {table.query}"))

        temp_target = Target(schema=table.target.schema, name=f"{table.target.name}_temp", database=table.target.database)
        return (
            Tasks()
            .add(Task.statement_task(self.drop_if_exists(temp_target, "table")))
            .add(Task.statement_task(f"create table {self.resolve_target(temp_target)} as {table.query}"))
            .add(Task.statement_task(self.drop_if_exists(table.target, "table")))
            .add(
                Task.statement_task(
                    f"alter table {self.resolve_target(temp_target)} rename to {escape_identifier(table.target.name)}"
                )
            )
        )
