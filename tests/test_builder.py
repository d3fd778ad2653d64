"""
Tests for the execution graph builder.
"""

from unittest.mock import Mock

import pytest

from strata.adapters import RedshiftAdapter
from strata.core.builder import build, connection_metadata_lookup
from strata.core.project import ProjectConfig, RunConfig
from strata.core.session import compile_graph
from strata.core.target import TableMetadata, Target
from strata.core.types import TaskType
from strata.exceptions import GraphBuildError

REDSHIFT = ProjectConfig(warehouse="redshift", default_schema="df")


def project(*declarations, config=REDSHIFT):
    return compile_graph(list(declarations), config)


def names(graph):
    return [node.name for node in graph.nodes]


class TestBuild:
    """Turning compiled graphs into execution graphs."""

    def test_nodes_in_dependency_order(self):
        compiled = project(
            {"name": "report", "type": "view", "query": "q", "dependencies": ["orders"]},
            {"name": "orders", "type": "table", "query": "q"},
        )

        graph = build(compiled)

        assert graph.ok
        assert names(graph) == ["orders", "report"]
        assert graph.get("report").dependencies == ("orders",)

    def test_compile_errors_block_build(self):
        compiled = project({"name": "x", "type": "view"})

        graph = build(compiled)

        assert not graph.ok
        assert graph.nodes == ()
        assert "must contain a query" in graph.errors[0]
        with pytest.raises(GraphBuildError):
            graph.raise_for_errors()

    def test_missing_dependency_is_build_error(self):
        compiled = project({"name": "a", "type": "table", "query": "q", "dependencies": ["ghost"]})

        graph = build(compiled)

        assert graph.nodes == ()
        assert graph.errors == ('Missing dependency detected: Action "a" depends on "ghost" which does not exist.',)

    def test_cycle_is_build_error(self):
        compiled = project(
            {"name": "a", "type": "table", "query": "q", "dependencies": ["b"]},
            {"name": "b", "type": "table", "query": "q", "dependencies": ["a"]},
        )

        graph = build(compiled)

        assert len(graph.errors) == 1
        assert graph.errors[0].startswith("Circular dependency detected: ")
        assert "a" in graph.errors[0] and "b" in graph.errors[0]

    def test_metadata_lookup_drives_tasks(self):
        compiled = project({"name": "inc", "type": "incremental", "query": "select a from src"})
        lookup = Mock(return_value=TableMetadata(type="table", columns=("a",)))

        graph = build(compiled, RunConfig(), lookup)

        lookup.assert_called_once_with(Target(schema="df", name="inc"))
        tasks = graph.get("inc").tasks
        assert len(tasks) == 1
        assert tasks[0].statement.startswith('insert into "df"."inc" ("a")')

    def test_lookup_failure_propagates(self):
        compiled = project({"name": "a", "type": "table", "query": "q"})
        lookup = Mock(side_effect=RuntimeError("warehouse unreachable"))

        with pytest.raises(RuntimeError, match="unreachable"):
            build(compiled, RunConfig(), lookup)

    def test_operations_use_literal_statements(self):
        compiled = project({"name": "op", "type": "operations", "statements": ["grant a", "grant b"]})

        tasks = build(compiled).get("op").tasks

        assert [t.statement for t in tasks] == ["grant a", "grant b"]
        assert {t.type for t in tasks} == {TaskType.STATEMENT}

    def test_assertions_use_assert_tasks(self):
        compiled = project({"name": "chk", "type": "assertion", "query": "select 1 where false"})

        tasks = build(compiled).get("chk").tasks

        assert tasks[-1].type == TaskType.ASSERTION

    def test_tests_are_not_scheduled(self):
        compiled = project(
            {"name": "orders", "type": "table", "query": "q"},
            {"name": "orders_test", "type": "test", "dataset": "orders", "expected": "q"},
        )

        assert names(build(compiled)) == ["orders"]

    def test_explicit_adapter(self):
        compiled = project({"name": "t", "type": "table", "query": "q"}, config=ProjectConfig(warehouse="duckdb"))

        graph = build(compiled, adapter=RedshiftAdapter(compiled.project_config))

        assert graph.get("t").tasks[-1].statement.startswith("alter table")

    def test_to_dict(self):
        graph = build(project({"name": "t", "type": "view", "query": "q"}))

        data = graph.to_dict()

        assert data["errors"] == []
        assert data["nodes"][0]["name"] == "t"
        assert data["nodes"][0]["type"] == "table"
        assert data["nodes"][0]["target"] == {"schema": "df", "name": "t", "database": None}


class TestSelection:
    """Choosing which actions a run executes."""

    compiled = project(
        {"name": "raw_a", "type": "table", "query": "q"},
        {"name": "raw_b", "type": "table", "query": "q", "tags": ["nightly"]},
        {"name": "mart", "type": "view", "query": "q", "dependencies": ["raw_*"]},
        {"name": "off", "type": "table", "query": "q", "disabled": True},
    )

    def test_default_selects_all_enabled(self):
        assert set(names(build(self.compiled))) == {"raw_a", "raw_b", "mart"}

    def test_pattern_selects_exactly(self):
        graph = build(self.compiled, RunConfig(actions=("mart",)))

        assert names(graph) == ["mart"]
        # Unselected dependencies are not scheduled
        assert graph.get("mart").dependencies == ()

    def test_include_dependencies(self):
        graph = build(self.compiled, RunConfig(actions=("mart",), include_dependencies=True))

        assert set(names(graph)) == {"raw_a", "raw_b", "mart"}
        assert names(graph)[-1] == "mart"

    def test_wildcard_selection(self):
        assert set(names(build(self.compiled, RunConfig(actions=("raw_*",))))) == {"raw_a", "raw_b"}

    def test_tag_selection(self):
        assert names(build(self.compiled, RunConfig(tags=("nightly",)))) == ["raw_b"]

    def test_disabled_never_runs(self):
        assert names(build(self.compiled, RunConfig(actions=("off",)))) == []


class TestConnectionMetadataLookup:
    def test_identifiers_normalized(self):
        connection = Mock()
        connection.describe.return_value = None
        adapter = Mock()
        adapter.normalize_identifier.side_effect = str.upper

        lookup = connection_metadata_lookup(connection, adapter)
        assert lookup(Target(schema="s", name="t", database="d")) is None

        connection.describe.assert_called_once_with(Target(schema="S", name="T", database="D"))
