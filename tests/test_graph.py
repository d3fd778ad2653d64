"""
Tests for compiled graph records and serialization.
"""

import json

from strata.core.graph import CompiledGraph
from strata.core.project import ProjectConfig
from strata.core.session import compile_graph


def sample_graph():
    return compile_graph(
        [
            {"name": "orders", "type": "table", "query": "q", "redshift": {"dist_key": "id", "sort_keys": ["a"]}},
            {"name": "report", "type": "view", "query": "q", "dependencies": ["orders"], "tags": ["daily"]},
            {"name": "op", "type": "operations", "statements": ["a", "b"]},
            {"name": "chk", "type": "assertion", "query": "q"},
            {"name": "t", "type": "test", "dataset": "orders", "expected": "q", "input": {"src": "q"}},
            {"name": "bad", "type": "assertion", "query": "q", "disabled": True, "file_name": "bad.sqlx"},
        ],
        ProjectConfig(schema_suffix="dev"),
    )


class TestCompiledGraph:
    def test_to_dict_shape(self):
        data = sample_graph().to_dict()

        assert set(data) == {"project_config", "tables", "operations", "assertions", "tests", "graph_errors"}
        assert data["tables"][0]["target"] == {"schema": "strata_dev", "name": "orders", "database": None}
        assert data["tables"][0]["type"] == "table"
        assert data["tables"][0]["redshift"] == {
            "dist_key": "id",
            "dist_style": None,
            "sort_keys": ["a"],
            "sort_style": None,
        }
        assert data["operations"][0]["target"] is None
        assert data["graph_errors"]["compilation_errors"] == [
            {
                "file_name": "bad.sqlx",
                "message": "Actions may only specify 'disabled: true' if they create a dataset.",
                "action_name": "bad",
            }
        ]

    def test_json_round_trip(self):
        graph = sample_graph()

        restored = CompiledGraph.from_json(graph.to_json())

        assert restored == graph
        assert json.loads(restored.to_json()) == graph.to_dict()

    def test_lookup(self):
        graph = sample_graph()

        assert graph.get("t").dataset == "orders"
        assert graph.get("missing") is None
        assert graph.action_names() == {"orders", "report", "op", "chk", "bad"}
        assert not graph.ok
