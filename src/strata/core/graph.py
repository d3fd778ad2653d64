"""
Compiled graph: the immutable output of one compile invocation.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from strata.core.actions import (
    Action,
    Assertion,
    Operation,
    Table,
    Test,
    assertion_from_dict,
    operation_from_dict,
    table_from_dict,
    unit_test_from_dict,
)
from strata.core.project import ProjectConfig
from strata.exceptions import CompilationFailedError


@dataclass(frozen=True)
class CompilationError:
    """A non-fatal compile error, attributed to the file that declared it."""

    message: str
    file_name: str | None = None
    action_name: str | None = None

    def __str__(self) -> str:
        location = f"{self.file_name}: " if self.file_name else ""
        return f"{location}{self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {"file_name": self.file_name, "message": self.message, "action_name": self.action_name}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CompilationError":
        return cls(message=data["message"], file_name=data.get("file_name"), action_name=data.get("action_name"))


@dataclass(frozen=True)
class CompiledGraph:
    """Validated actions of each kind plus accumulated compile errors."""

    project_config: ProjectConfig = field(default_factory=ProjectConfig)
    tables: tuple[Table, ...] = ()
    operations: tuple[Operation, ...] = ()
    assertions: tuple[Assertion, ...] = ()
    tests: tuple[Test, ...] = ()
    compilation_errors: tuple[CompilationError, ...] = ()

    @property
    def ok(self) -> bool:
        """Whether compilation finished without errors."""
        return not self.compilation_errors

    @property
    def actions(self) -> tuple[Table | Operation | Assertion, ...]:
        """All runnable actions (tables, operations, assertions)."""
        return self.tables + self.operations + self.assertions

    def action_names(self) -> set[str]:
        return {action.name for action in self.actions}

    def get(self, name: str) -> Action | None:
        """Look up any action, tests included, by name."""
        for action in self.actions + self.tests:
            if action.name == name:
                return action
        return None

    def raise_for_errors(self) -> None:
        """Raise CompilationFailedError if the graph carries compile errors."""
        if self.compilation_errors:
            raise CompilationFailedError(list(self.compilation_errors))

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a structured document with stable field names."""
        return {
            "project_config": self.project_config.to_dict(),
            "tables": [t.to_dict() for t in self.tables],
            "operations": [o.to_dict() for o in self.operations],
            "assertions": [a.to_dict() for a in self.assertions],
            "tests": [t.to_dict() for t in self.tests],
            "graph_errors": {"compilation_errors": [e.to_dict() for e in self.compilation_errors]},
        }

    def to_json(self, **kwargs: Any) -> str:
        return json.dumps(self.to_dict(), **kwargs)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CompiledGraph":
        errors = data.get("graph_errors", {}).get("compilation_errors", [])
        return cls(
            project_config=ProjectConfig.from_dict(data.get("project_config")),
            tables=tuple(table_from_dict(t) for t in data.get("tables", [])),
            operations=tuple(operation_from_dict(o) for o in data.get("operations", [])),
            assertions=tuple(assertion_from_dict(a) for a in data.get("assertions", [])),
            tests=tuple(unit_test_from_dict(t) for t in data.get("tests", [])),
            compilation_errors=tuple(CompilationError.from_dict(e) for e in errors),
        )

    @classmethod
    def from_json(cls, text: str) -> "CompiledGraph":
        return cls.from_dict(json.loads(text))
