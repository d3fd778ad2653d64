"""
strata exception hierarchy.

All domain-specific exceptions inherit from StrataError, making it easy
to catch any framework error with a single base class while still allowing
fine-grained handling when needed.

Compile-time and build-time problems are reported as values (see
``CompiledGraph.graph_errors`` and ``ExecutionGraph.errors``); the exceptions
below for those stages only exist for callers who prefer to raise.

Hierarchy::

    StrataError
    ├── ConfigurationError        - config loading, parsing, validation
    ├── CompilationFailedError    - raised on demand for a graph with compile errors
    ├── GraphBuildError           - execution graph could not be built
    ├── ConnectionError_          - warehouse unreachable, bad credentials
    └── ExecutionError            - run-time failures
        ├── TaskExecutionError    - a single SQL statement failed
        └── CancellationError     - run was cancelled (not a failure)
"""

from __future__ import annotations

from typing import Any


class StrataError(Exception):
    """Base exception for all strata errors."""

    def __init__(self, message: str, *, details: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


# --- Configuration -----------------------------------------------------------


class ConfigurationError(StrataError):
    """Raised when configuration loading, parsing, or validation fails."""


# --- Compilation / build -----------------------------------------------------


class CompilationFailedError(StrataError):
    """Raised when a caller asks to fail on a compiled graph with errors."""

    def __init__(self, errors: list[Any]) -> None:
        lines = [f"  - {e}" for e in errors]
        super().__init__(
            f"Compilation produced {len(errors)} error(s):\n" + "\n".join(lines),
            details={"errors": [str(e) for e in errors]},
        )
        self.errors = list(errors)


class GraphBuildError(StrataError):
    """Raised when an execution graph cannot be built.

    ``errors`` holds the compile errors or build problems (missing
    dependencies, cycles) that prevented the build.
    """

    def __init__(self, errors: list[Any]) -> None:
        lines = [f"  - {e}" for e in errors]
        super().__init__(
            f"Execution graph could not be built ({len(errors)} error(s)):\n" + "\n".join(lines),
            details={"errors": [str(e) for e in errors]},
        )
        self.errors = list(errors)


# --- Connections -------------------------------------------------------------


class ConnectionError_(StrataError):
    """Raised when a warehouse connection cannot be established.

    Named with trailing underscore to avoid shadowing the builtin
    ``ConnectionError``; the public alias ``StrataConnectionError``
    is preferred for external use.
    """


# Public alias so callers don't need the underscore
StrataConnectionError = ConnectionError_


# --- Execution ---------------------------------------------------------------


class ExecutionError(StrataError):
    """Raised when action execution fails."""


class TaskExecutionError(ExecutionError):
    """Raised when a single SQL statement fails at the warehouse."""

    def __init__(self, statement: str, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message, details={"statement": statement})
        self.statement = statement
        if cause is not None:
            self.__cause__ = cause


class CancellationError(ExecutionError):
    """Raised inside a node when the run has been cancelled."""
