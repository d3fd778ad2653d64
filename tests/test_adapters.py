"""
Tests for warehouse adapters and their shared task-generation helpers.
"""

import pytest

from strata.adapters import (
    BigQueryAdapter,
    DuckDBAdapter,
    PostgresAdapter,
    RedshiftAdapter,
    SnowflakeAdapter,
    create_adapter,
)
from strata.adapters.base import base_table_type, drop_if_exists, insert_into, should_write_incrementally, where
from strata.core.actions import Assertion, BigQueryOptions, RedshiftOptions, SnowflakeOptions, Table
from strata.core.project import ProjectConfig, RunConfig
from strata.core.target import TableMetadata, Target
from strata.core.types import TableType, TaskType
from strata.exceptions import ConfigurationError


def make_table(name="t", table_type=TableType.TABLE, query="select 1 as a", **kwargs):
    return Table(name=name, type=table_type, target=Target(schema="s", name=name), query=query, **kwargs)


def statements(tasks):
    return [task.statement for task in tasks]


EXISTING_TABLE = TableMetadata(type="table", columns=("a", "b"))
EXISTING_VIEW = TableMetadata(type="view", columns=("a", "b"))


class TestHelpers:
    """Dialect-independent helpers."""

    @pytest.mark.parametrize(
        "table_type, expected",
        [(TableType.VIEW, "view"), (TableType.INLINE, "view"), (TableType.TABLE, "table"), (TableType.INCREMENTAL, "table")],
    )
    def test_base_table_type(self, table_type, expected):
        assert base_table_type(table_type) == expected

    def test_drop_if_exists(self):
        assert drop_if_exists('"s"."t"', "view") == 'drop view if exists "s"."t" cascade'
        assert drop_if_exists('"s"."t"', "table", cascade=False) == 'drop table if exists "s"."t"'

    def test_where_without_predicates(self):
        assert where("select 1", None, "") == "select 1"

    def test_where_with_predicates(self):
        assert where("select 1", "a > 0", "b > 0") == "select * from (select 1) as subquery where (a > 0) and (b > 0)"

    def test_insert_into(self):
        assert insert_into('"s"."t"', ["a", "b"], "q") == (
            'insert into "s"."t" ("a", "b") select "a", "b" from (q) as insertions'
        )

    def test_should_write_incrementally(self):
        assert should_write_incrementally(RunConfig(), EXISTING_TABLE)
        assert not should_write_incrementally(RunConfig(full_refresh=True), EXISTING_TABLE)
        assert not should_write_incrementally(RunConfig(), None)
        assert not should_write_incrementally(RunConfig(), EXISTING_VIEW)


class TestRedshiftAdapter:
    """Redshift: swap pattern and dist/sort options."""

    adapter = RedshiftAdapter(ProjectConfig())

    def test_resolve_target(self):
        assert self.adapter.resolve_target(Target(schema="s", name="t")) == '"s"."t"'

    def test_new_table_uses_swap(self):
        table = make_table(
            redshift=RedshiftOptions(dist_key="id", dist_style="key", sort_keys=("a", "b"), sort_style="compound")
        )

        tasks = self.adapter.publish_tasks(table, RunConfig(), None)

        assert statements(tasks) == [
            'drop table if exists "s"."t_temp" cascade',
            'create table "s"."t_temp" diststyle key distkey (id) compound sortkey (a, b) as select 1 as a',
            'drop table if exists "s"."t" cascade',
            'alter table "s"."t_temp" rename to "t"',
        ]
        assert all(task.type == TaskType.STATEMENT for task in tasks)

    def test_view_replacing_table_drops_table_first(self):
        view = make_table(name="v", table_type=TableType.VIEW)

        tasks = self.adapter.publish_tasks(view, RunConfig(), EXISTING_TABLE)

        assert statements(tasks) == [
            'drop table if exists "s"."v" cascade',
            'create or replace view "s"."v" as select 1 as a',
        ]

    def test_table_replacing_view_drops_view_first(self):
        tasks = self.adapter.publish_tasks(make_table(), RunConfig(), EXISTING_VIEW)

        assert statements(tasks)[0] == 'drop view if exists "s"."t" cascade'
        assert len(tasks) == 5

    def test_existing_incremental_is_single_insert(self):
        table = make_table(
            name="inc",
            table_type=TableType.INCREMENTAL,
            query="select * from src",
            where="a is not null",
            incremental_where="ts > (select max(ts) from inc)",
        )

        tasks = self.adapter.publish_tasks(table, RunConfig(), EXISTING_TABLE)

        assert statements(tasks) == [
            'insert into "s"."inc" ("a", "b") select "a", "b" from '
            "(select * from (select * from src) as subquery where (a is not null) "
            "and (ts > (select max(ts) from inc))) as insertions"
        ]

    def test_incremental_query_overrides_query(self):
        table = make_table(name="inc", table_type=TableType.INCREMENTAL, incremental_query="select new")

        tasks = self.adapter.publish_tasks(table, RunConfig(), EXISTING_TABLE)

        assert "from (select new) as insertions" in tasks[0].statement

    def test_incremental_full_refresh_rebuilds(self):
        table = make_table(name="inc", table_type=TableType.INCREMENTAL)

        tasks = self.adapter.publish_tasks(table, RunConfig(full_refresh=True), EXISTING_TABLE)

        assert not any(s.startswith("insert") for s in statements(tasks))
        assert statements(tasks)[-1] == 'alter table "s"."inc_temp" rename to "inc"'

    def test_incremental_over_view_drops_and_rebuilds(self):
        table = make_table(name="inc", table_type=TableType.INCREMENTAL)

        tasks = self.adapter.publish_tasks(table, RunConfig(), EXISTING_VIEW)

        assert statements(tasks)[0] == 'drop view if exists "s"."inc" cascade'
        assert not any(s.startswith("insert") for s in statements(tasks))

    def test_pre_and_post_operations_wrap_sequence(self):
        view = make_table(name="v", table_type=TableType.VIEW, pre_operations=("set a",), post_operations=("grant b",))

        tasks = self.adapter.publish_tasks(view, RunConfig(), None)

        assert statements(tasks) == ["set a", 'create or replace view "s"."v" as select 1 as a', "grant b"]

    def test_assert_tasks(self):
        assertion = Assertion(name="chk", target=Target(schema="checks", name="chk"), query="select * from x")

        tasks = self.adapter.assert_tasks(assertion, ProjectConfig())

        assert [task.type for task in tasks] == [TaskType.STATEMENT, TaskType.ASSERTION]
        assert statements(tasks) == [
            'create or replace view "checks"."chk" as select * from x',
            'select count(*) as row_count from "checks"."chk"',
        ]


class TestPostgresAdapter:
    adapter = PostgresAdapter(ProjectConfig())

    def test_table_swap_without_layout(self):
        tasks = self.adapter.publish_tasks(make_table(), RunConfig(), None)

        assert statements(tasks)[1] == 'create table "s"."t_temp" as select 1 as a'
        assert len(tasks) == 4

    def test_database_not_part_of_target(self):
        assert self.adapter.resolve_target(Target(schema="s", name="t", database="db")) == '"s"."t"'


class TestSnowflakeAdapter:
    adapter = SnowflakeAdapter(ProjectConfig())

    def test_normalize_identifier(self):
        assert self.adapter.normalize_identifier("orders") == "ORDERS"

    def test_resolve_target_with_database(self):
        assert self.adapter.resolve_target(Target(schema="s", name="t", database="DB")) == '"DB"."s"."t"'

    def test_atomic_replace_with_options(self):
        table = make_table(snowflake=SnowflakeOptions(cluster_by=("a", "b"), transient=True))

        tasks = self.adapter.publish_tasks(table, RunConfig(), None)

        assert statements(tasks) == ['create or replace transient table "s"."t" cluster by (a, b) as select 1 as a']

    def test_view(self):
        tasks = self.adapter.publish_tasks(make_table(name="v", table_type=TableType.VIEW), RunConfig(), None)

        assert statements(tasks) == ['create or replace view "s"."v" as select 1 as a']

    def test_assertion_uses_sum(self):
        assertion = Assertion(name="chk", target=Target(schema="c", name="chk"), query="q")

        tasks = self.adapter.assert_tasks(assertion, ProjectConfig())

        assert tasks[1].statement == 'select sum(1) as row_count from "c"."chk"'


class TestBigQueryAdapter:
    adapter = BigQueryAdapter(ProjectConfig())

    def test_resolve_target(self):
        assert self.adapter.resolve_target(Target(schema="ds", name="t", database="proj")) == "`proj`.`ds`.`t`"

    def test_partition_and_cluster(self):
        table = make_table(bigquery=BigQueryOptions(partition_by="date(ts)", cluster_by=("a",)))

        tasks = self.adapter.publish_tasks(table, RunConfig(), None)

        assert statements(tasks) == [
            "create or replace table `s`.`t` partition by date(ts) cluster by a as select 1 as a"
        ]

    def test_drop_without_cascade(self):
        tasks = self.adapter.publish_tasks(make_table(), RunConfig(), EXISTING_VIEW)

        assert statements(tasks)[0] == "drop view if exists `s`.`t`"


class TestDuckDBAdapter:
    adapter = DuckDBAdapter(ProjectConfig())

    def test_new_object_creates_schema(self):
        tasks = self.adapter.publish_tasks(make_table(), RunConfig(), None)

        assert statements(tasks) == [
            'create schema if not exists "s"',
            'create or replace table "s"."t" as select 1 as a',
        ]

    def test_existing_object_skips_schema(self):
        tasks = self.adapter.publish_tasks(make_table(), RunConfig(), EXISTING_TABLE)

        assert statements(tasks) == ['create or replace table "s"."t" as select 1 as a']

    def test_assertion_creates_schema(self):
        assertion = Assertion(name="chk", target=Target(schema="c", name="chk"), query="q")

        tasks = self.adapter.assert_tasks(assertion, ProjectConfig())

        assert statements(tasks)[0] == 'create schema if not exists "c"'
        assert tasks[-1].type == TaskType.ASSERTION


class TestRegistry:
    @pytest.mark.parametrize(
        "warehouse, adapter_cls",
        [
            ("redshift", RedshiftAdapter),
            ("postgres", PostgresAdapter),
            ("snowflake", SnowflakeAdapter),
            ("bigquery", BigQueryAdapter),
            ("DuckDB", DuckDBAdapter),
        ],
    )
    def test_create_adapter(self, warehouse, adapter_cls):
        assert isinstance(create_adapter(ProjectConfig(warehouse=warehouse)), adapter_cls)

    def test_unknown_warehouse(self):
        with pytest.raises(ConfigurationError, match="Unknown warehouse"):
            create_adapter(ProjectConfig(warehouse="oracle"))
