"""
Type definitions for strata.

Closed enumerations used at every decision point (validation matrix,
adapter dispatch, task execution).
"""

from __future__ import annotations

from enum import StrEnum


class ActionType(StrEnum):
    """Declared action type, as written by the author of an action."""

    VIEW = "view"
    TABLE = "table"
    INLINE = "inline"
    INCREMENTAL = "incremental"
    OPERATIONS = "operations"
    ASSERTION = "assertion"
    TEST = "test"

    @property
    def is_dataset(self) -> bool:
        """Whether this action type publishes a dataset."""
        return self in DATASET_TYPES


class TableType(StrEnum):
    """Kind of dataset a table action publishes."""

    VIEW = "view"
    TABLE = "table"
    INLINE = "inline"
    INCREMENTAL = "incremental"


class TaskType(StrEnum):
    """Kind of SQL task; assertion tasks fail when they count offending rows."""

    STATEMENT = "statement"
    ASSERTION = "assertion"


DATASET_TYPES = frozenset({ActionType.VIEW, ActionType.TABLE, ActionType.INLINE, ActionType.INCREMENTAL})
