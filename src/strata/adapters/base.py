"""
Warehouse adapter contract and shared task-generation helpers.

Adapters are pure: (action, run config, observed metadata) -> ordered tasks.
Logic common to every backend lives here as free functions; each backend
module only supplies its dialect (quoting, casing, replace strategy).
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from strata.core.actions import Assertion, Table
from strata.core.project import ProjectConfig, RunConfig
from strata.core.target import TableMetadata, Target
from strata.core.tasks import Task, Tasks
from strata.core.types import TableType
from strata.utils.logging import get_logger
from strata.utils.sql_escape import escape_identifier

logger = get_logger("strata.adapters")


class Adapter(Protocol):
    """Capability contract implemented by every warehouse backend."""

    name: str
    #: Quote character used for identifiers
    quote: str

    def resolve_target(self, target: Target) -> str:
        """Fully-qualified, quoted identifier for a target."""
        ...

    def normalize_identifier(self, identifier: str) -> str:
        """Identifier as the warehouse stores it (e.g. upper-cased)."""
        ...

    def publish_tasks(self, table: Table, run_config: RunConfig, table_metadata: TableMetadata | None) -> Tasks:
        """Tasks that (re)build a dataset given what currently exists."""
        ...

    def assert_tasks(self, assertion: Assertion, project_config: ProjectConfig) -> Tasks:
        """Tasks that evaluate an assertion."""
        ...

    def create_or_replace(self, table: Table) -> Tasks:
        """Tasks that fully rebuild a dataset."""
        ...

    def drop_if_exists(self, target: Target, object_type: str) -> str:
        """Statement dropping an object of the given type if present."""
        ...


def base_table_type(table_type: TableType | str) -> str:
    """Physical object kind a table type is stored as."""
    match TableType(table_type):
        case TableType.VIEW | TableType.INLINE:
            return "view"
        case TableType.TABLE | TableType.INCREMENTAL:
            return "table"
    raise ValueError(f"Unrecognized table type: {table_type!r}")


def drop_if_exists(resolved_target: str, object_type: str, cascade: bool = True) -> str:
    statement = f"drop {object_type} if exists {resolved_target}"
    return f"{statement} cascade" if cascade else statement


def where(query: str, *predicates: str | None) -> str:
    """Wrap a query with its row and incremental predicates, if any."""
    conditions = [p for p in predicates if p]
    if not conditions:
        return query
    clause = " and ".join(f"({p})" for p in conditions)
    return f"select * from ({query}) as subquery where {clause}"


def insert_into(resolved_target: str, columns: Sequence[str], query: str, quote: str = '"') -> str:
    column_list = ", ".join(escape_identifier(c, quote) for c in columns)
    return f"insert into {resolved_target} ({column_list}) select {column_list} from ({query}) as insertions"


def create_or_replace_view(resolved_target: str, query: str) -> str:
    return f"create or replace view {resolved_target} as {query}"


def should_write_incrementally(run_config: RunConfig, table_metadata: TableMetadata | None) -> bool:
    """Incremental tables append only when a table already exists and no full refresh was asked for."""
    return not run_config.full_refresh and table_metadata is not None and table_metadata.type == "table"


def publish_table(
    adapter: Adapter,
    table: Table,
    run_config: RunConfig,
    table_metadata: TableMetadata | None,
) -> Tasks:
    """
    Generate the publish sequence for a dataset.

    1. If the existing object is of the other kind, drop it first.
    2. Incremental tables that already exist get one INSERT of the
       incremental query filtered by the action's predicates.
    3. Everything else is rebuilt with the adapter's create-or-replace.
    4. Pre-operations run before and post-operations after the sequence.
    """
    tasks = Tasks()
    tasks.add_all(Task.statement_task(op) for op in table.pre_operations)

    target_type = base_table_type(table.type)
    if table_metadata is not None and table_metadata.type != target_type:
        tasks.add(Task.statement_task(adapter.drop_if_exists(table.target, table_metadata.type)))

    if table.type == TableType.INCREMENTAL and should_write_incrementally(run_config, table_metadata):
        logger.debug(f"Incremental insert into {table.target} ({len(table_metadata.columns)} columns)")
        query = where(table.incremental_query or table.query, table.where, table.incremental_where)
        tasks.add(
            Task.statement_task(
                insert_into(adapter.resolve_target(table.target), table_metadata.columns, query, adapter.quote)
            )
        )
    else:
        tasks.add_all(adapter.create_or_replace(table))

    tasks.add_all(Task.statement_task(op) for op in table.post_operations)
    return tasks


def assertion_tasks(adapter: Adapter, assertion: Assertion, count_expression: str = "count(*)") -> Tasks:
    """Create the assertion view, then count its rows; any row is a failure."""
    resolved = adapter.resolve_target(assertion.target)
    return (
        Tasks()
        .add(Task.statement_task(create_or_replace_view(resolved, assertion.query)))
        .add(Task.assertion_task(f"select {count_expression} as row_count from {resolved}"))
    )
