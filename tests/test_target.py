"""
Tests for target resolution.
"""

from strata.core.project import ProjectConfig
from strata.core.target import Target, target_for


class TestTargetFor:
    def test_default_schema(self):
        assert target_for("orders", ProjectConfig(default_schema="df")) == Target(schema="df", name="orders")

    def test_action_schema_wins(self):
        target = target_for("orders", ProjectConfig(), schema="sales", default_schema="checks")
        assert target.schema == "sales"

    def test_supplied_default_schema(self):
        assert target_for("a", ProjectConfig(), default_schema="checks").schema == "checks"

    def test_literal_schema_name(self):
        target = target_for("raw.orders.v2", ProjectConfig())
        assert target == Target(schema="raw", name="orders.v2")

    def test_suffix_appended_everywhere(self):
        config = ProjectConfig(default_schema="df", schema_suffix="dev")

        assert target_for("a", config).schema == "df_dev"
        assert target_for("raw.a", config).schema == "raw_dev"
        assert target_for("a", config, schema="sales").schema == "sales_dev"

    def test_database(self):
        config = ProjectConfig(default_database="proj")

        assert target_for("a", config).database == "proj"
        assert target_for("a", config, database="other").database == "other"
        assert target_for("a", ProjectConfig()).database is None


class TestTarget:
    def test_str(self):
        assert str(Target(schema="s", name="n")) == "s.n"
        assert str(Target(schema="s", name="n", database="d")) == "d.s.n"

    def test_from_dict(self):
        assert Target.from_dict({"schema": "s", "name": "n"}) == Target(schema="s", name="n")
        assert Target.from_dict(None) is None
