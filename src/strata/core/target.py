"""
Target resolution: logical action names to warehouse object references.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from strata.core.project import ProjectConfig


@dataclass(frozen=True)
class Target:
    """Fully-qualified warehouse object reference."""

    schema: str
    name: str
    database: str | None = None

    def __str__(self) -> str:
        parts = [p for p in (self.database, self.schema, self.name) if p]
        return ".".join(parts)

    def to_dict(self) -> dict[str, Any]:
        return {"schema": self.schema, "name": self.name, "database": self.database}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Target | None":
        if not data:
            return None
        return cls(schema=data["schema"], name=data["name"], database=data.get("database"))


@dataclass(frozen=True)
class TableMetadata:
    """Observed state of a warehouse object that already exists."""

    type: str  # "view" or "table"
    columns: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "columns": list(self.columns)}


def target_for(
    name: str,
    project_config: ProjectConfig,
    schema: str | None = None,
    database: str | None = None,
    default_schema: str | None = None,
) -> Target:
    """
    Assign the warehouse target for an action.

    A ``schema.name`` literal splits on the first ``.``; otherwise the schema
    is the action's own, then ``default_schema`` (e.g. the assertion schema),
    then the project default. The project schema suffix is appended to the
    schema component in every case.

    Args:
        name: Action name, optionally in ``schema.name`` form
        project_config: Project configuration
        schema: Schema configured on the action
        database: Database configured on the action
        default_schema: Fallback schema for this kind of action

    Returns:
        Target for the action
    """
    suffix = f"_{project_config.schema_suffix}" if project_config.schema_suffix else ""
    database = database or project_config.default_database

    if "." in name:
        explicit_schema, object_name = name.split(".", 1)
        return Target(schema=explicit_schema + suffix, name=object_name, database=database)

    resolved_schema = schema or default_schema or project_config.default_schema
    return Target(schema=resolved_schema + suffix, name=name, database=database)
