"""
BigQuery adapter.

Targets resolve to ``project.dataset.name`` quoted with backticks. BigQuery
has no ``cascade`` on drops.
"""

from strata.adapters.base import assertion_tasks, base_table_type, drop_if_exists, publish_table
from strata.core.actions import Assertion, Table
from strata.core.project import ProjectConfig, RunConfig
from strata.core.target import TableMetadata, Target
from strata.core.tasks import Task, Tasks
from strata.utils.sql_escape import escape_qualified_name


class BigQueryAdapter:
    """Task generation for Google BigQuery."""

    name = "bigquery"
    quote = "`"

    def __init__(self, project_config: ProjectConfig):
        self.project_config = project_config

    def resolve_target(self, target: Target) -> str:
        return escape_qualified_name(
            target.database, target.schema or self.project_config.default_schema, target.name, quote=self.quote
        )

    def normalize_identifier(self, identifier: str) -> str:
        return identifier

    def publish_tasks(self, table: Table, run_config: RunConfig, table_metadata: TableMetadata | None) -> Tasks:
        return publish_table(self, table, run_config, table_metadata)

    def assert_tasks(self, assertion: Assertion, project_config: ProjectConfig) -> Tasks:
        return assertion_tasks(self, assertion)

    def drop_if_exists(self, target: Target, object_type: str) -> str:
        return drop_if_exists(self.resolve_target(target), object_type, cascade=False)

    def create_or_replace(self, table: Table) -> Tasks:
        object_type = base_table_type(table.type)
        statement = f"create or replace {object_type} {self.resolve_target(table.target)}"
        options = table.bigquery
        if object_type == "table" and options is not None:
            if options.partition_by:
                statement = f"{statement} partition by {options.partition_by}"
            if options.cluster_by:
                statement = f"{statement} cluster by {', '.join(options.cluster_by)}"
        return Tasks().add(Task.statement_task(f"{statement} as {table.query}"))
