"""
Execution graph and run tracking.

An ExecutionGraph is the immutable, fully-planned unit of work handed to the
runner. An ExecutedGraph records what happened to each of its nodes.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from strata.core.actions import Assertion, Operation, Table
from strata.core.project import ProjectConfig, RunConfig
from strata.core.tasks import Task
from strata.exceptions import GraphBuildError


class NodeStatus(StrEnum):
    """Execution node status."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"  # A dependency did not succeed

    @property
    def is_terminal(self) -> bool:
        return self not in (NodeStatus.PENDING, NodeStatus.RUNNING)


@dataclass(frozen=True)
class ExecutionNode:
    """
    One action together with the tasks that realise it.

    ``dependencies`` only lists nodes that are part of the same run.
    """

    action: Table | Operation | Assertion
    tasks: tuple[Task, ...] = ()
    dependencies: tuple[str, ...] = ()

    @property
    def name(self) -> str:
        return self.action.name

    def to_dict(self) -> dict[str, Any]:
        target = getattr(self.action, "target", None)
        return {
            "name": self.name,
            "type": type(self.action).__name__.lower(),
            "target": target.to_dict() if target else None,
            "dependencies": list(self.dependencies),
            "tasks": [task.to_dict() for task in self.tasks],
        }


@dataclass(frozen=True)
class ExecutionGraph:
    """Nodes to run, or the errors that prevented the graph from being built."""

    project_config: ProjectConfig = field(default_factory=ProjectConfig)
    run_config: RunConfig = field(default_factory=RunConfig)
    nodes: tuple[ExecutionNode, ...] = ()
    errors: tuple[str, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.errors

    def get(self, name: str) -> ExecutionNode | None:
        for node in self.nodes:
            if node.name == name:
                return node
        return None

    def raise_for_errors(self) -> None:
        """Raise GraphBuildError if the graph could not be built."""
        if self.errors:
            raise GraphBuildError(list(self.errors))

    def to_dict(self) -> dict[str, Any]:
        return {
            "project_config": self.project_config.to_dict(),
            "run_config": self.run_config.to_dict(),
            "nodes": [node.to_dict() for node in self.nodes],
            "errors": list(self.errors),
        }


@dataclass(frozen=True)
class ExecutedTask:
    """Outcome of one task."""

    task: Task
    ok: bool
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.task.type.value,
            "statement": self.task.statement,
            "ok": self.ok,
            "error": self.error,
        }


@dataclass
class ExecutedNode:
    """Outcome of one execution node."""

    name: str
    status: NodeStatus = NodeStatus.PENDING
    tasks: list[ExecutedTask] = field(default_factory=list)
    error: str | None = None
    started_at: float | None = None
    completed_at: float | None = None

    def start(self) -> None:
        """Mark node as started."""
        self.status = NodeStatus.RUNNING
        self.started_at = time.time()

    def complete(self, success: bool = True, error: str | None = None) -> None:
        """Mark node as succeeded or failed."""
        self.status = NodeStatus.SUCCEEDED if success else NodeStatus.FAILED
        self.error = error
        self.completed_at = time.time()

    def skip(self, reason: str | None = None) -> None:
        """Mark node as skipped."""
        self.status = NodeStatus.SKIPPED
        self.error = reason
        self.completed_at = time.time()

    def cancel(self) -> None:
        """Mark node as cancelled."""
        self.status = NodeStatus.CANCELLED
        self.completed_at = time.time()

    def get_duration(self) -> float | None:
        """Get node duration in seconds."""
        if self.started_at and self.completed_at:
            return self.completed_at - self.started_at
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "tasks": [task.to_dict() for task in self.tasks],
            "error": self.error,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
        }


@dataclass
class ExecutedGraph:
    """Result of a run: every node of the execution graph in a terminal state."""

    nodes: dict[str, ExecutedNode] = field(default_factory=dict)
    cancelled: bool = False
    started_at: float | None = None
    completed_at: float | None = None

    @property
    def ok(self) -> bool:
        """Whether every node succeeded."""
        return all(node.status == NodeStatus.SUCCEEDED for node in self.nodes.values())

    def get(self, name: str) -> ExecutedNode | None:
        return self.nodes.get(name)

    def get_duration(self) -> float | None:
        if self.started_at and self.completed_at:
            return self.completed_at - self.started_at
        return None

    def get_summary(self) -> dict[str, Any]:
        """Get run summary statistics."""
        counts = {status.value: 0 for status in NodeStatus}
        for node in self.nodes.values():
            counts[node.status.value] += 1
        return {
            "ok": self.ok,
            "cancelled": self.cancelled,
            "total_nodes": len(self.nodes),
            **counts,
            "duration": self.get_duration(),
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "cancelled": self.cancelled,
            "nodes": [node.to_dict() for node in self.nodes.values()],
        }
