"""
Core engine: action model, graph compiler, dependency handling and execution graphs.
"""

from strata.core.actions import ActionDeclaration, Assertion, Operation, Table, Test
from strata.core.dependencies import DependencyGraph, expand_dependencies, match_patterns
from strata.core.flow import ExecutedGraph, ExecutedNode, ExecutionGraph, ExecutionNode, NodeStatus
from strata.core.graph import CompilationError, CompiledGraph
from strata.core.project import ProjectConfig, RunConfig
from strata.core.session import Session, compile_graph
from strata.core.target import TableMetadata, Target, target_for
from strata.core.tasks import Task, Tasks
from strata.core.types import ActionType, TableType, TaskType

__all__ = [
    "ActionDeclaration",
    "ActionType",
    "Assertion",
    "CompilationError",
    "CompiledGraph",
    "DependencyGraph",
    "ExecutedGraph",
    "ExecutedNode",
    "ExecutionGraph",
    "ExecutionNode",
    "NodeStatus",
    "Operation",
    "ProjectConfig",
    "RunConfig",
    "Session",
    "Table",
    "TableMetadata",
    "TableType",
    "Target",
    "Task",
    "TaskType",
    "Tasks",
    "Test",
    "compile_graph",
    "expand_dependencies",
    "match_patterns",
    "target_for",
]
