"""
SQL tasks produced by warehouse adapters.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any

from strata.core.types import TaskType


@dataclass(frozen=True)
class Task:
    """One SQL statement to execute."""

    type: TaskType
    statement: str

    @classmethod
    def statement_task(cls, statement: str) -> "Task":
        return cls(type=TaskType.STATEMENT, statement=statement)

    @classmethod
    def assertion_task(cls, statement: str) -> "Task":
        return cls(type=TaskType.ASSERTION, statement=statement)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, "statement": self.statement}


class Tasks:
    """Ordered list of tasks with a chaining builder interface."""

    def __init__(self, tasks: Iterable[Task] | None = None):
        self._tasks: list[Task] = list(tasks or [])

    def add(self, task: Task) -> "Tasks":
        self._tasks.append(task)
        return self

    def add_all(self, tasks: Iterable[Task]) -> "Tasks":
        self._tasks.extend(tasks)
        return self

    def build(self) -> tuple[Task, ...]:
        return tuple(self._tasks)

    def __iter__(self) -> Iterator[Task]:
        return iter(self._tasks)

    def __len__(self) -> int:
        return len(self._tasks)

    def __getitem__(self, index: int) -> Task:
        return self._tasks[index]

    def __repr__(self) -> str:
        return f"Tasks({self._tasks!r})"
