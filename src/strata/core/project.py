"""
Project and run configuration records.

ProjectConfig is supplied alongside the raw action declarations; RunConfig
selects what a single run builds.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from strata.exceptions import ConfigurationError

DEFAULT_SCHEMA = "strata"
DEFAULT_ASSERTION_SCHEMA = "strata_assertions"
DEFAULT_WAREHOUSE = "duckdb"


@dataclass(frozen=True)
class ProjectConfig:
    """Project-wide settings that affect compilation and task generation."""

    warehouse: str = DEFAULT_WAREHOUSE
    default_schema: str = DEFAULT_SCHEMA
    assertion_schema: str = DEFAULT_ASSERTION_SCHEMA
    schema_suffix: str | None = None
    default_database: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ProjectConfig":
        """Create from a mapping, ignoring unknown keys."""
        data = dict(data or {})
        if not isinstance(data.get("warehouse", DEFAULT_WAREHOUSE), str):
            raise ConfigurationError(f"Project 'warehouse' must be a string, got {data['warehouse']!r}")
        return cls(
            warehouse=data.get("warehouse") or DEFAULT_WAREHOUSE,
            default_schema=data.get("default_schema") or DEFAULT_SCHEMA,
            assertion_schema=data.get("assertion_schema") or DEFAULT_ASSERTION_SCHEMA,
            schema_suffix=data.get("schema_suffix") or None,
            default_database=data.get("default_database") or None,
        )

    @classmethod
    def from_config(cls, config: Any) -> "ProjectConfig":
        """Create from a loaded ``Config`` (reads the ``project`` section)."""
        return cls.from_dict(config.get("project", {}))

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RunConfig:
    """
    Options for a single run.

    Attributes:
        actions: Action names or wildcard patterns to run (empty = everything)
        tags: Run actions carrying any of these tags
        include_dependencies: Also run the transitive dependencies of the selection
        full_refresh: Rebuild incremental tables from scratch
    """

    actions: tuple[str, ...] = ()
    tags: tuple[str, ...] = ()
    include_dependencies: bool = False
    full_refresh: bool = False
    metadata: dict[str, Any] = field(default_factory=dict, compare=False)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "RunConfig":
        data = dict(data or {})
        actions = data.get("actions") or ()
        tags = data.get("tags") or ()
        if isinstance(actions, str):
            actions = [actions]
        if isinstance(tags, str):
            tags = [tags]
        return cls(
            actions=tuple(actions),
            tags=tuple(tags),
            include_dependencies=bool(data.get("include_dependencies", False)),
            full_refresh=bool(data.get("full_refresh", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "actions": list(self.actions),
            "tags": list(self.tags),
            "include_dependencies": self.include_dependencies,
            "full_refresh": self.full_refresh,
        }
