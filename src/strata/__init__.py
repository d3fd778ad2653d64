"""
strata - compile declared SQL actions into a dependency graph and run it
against a warehouse.
"""

__version__ = "0.1.0"

# Programmatic API
from strata.adapters import create_adapter
from strata.config import Config, load_config, load_declarations
from strata.connections import create_connection
from strata.core.actions import ActionDeclaration
from strata.core.api import build, compile_graph, run, run_project, run_sync
from strata.core.execution import CancellationToken, Runner
from strata.core.flow import ExecutedGraph, ExecutionGraph, NodeStatus
from strata.core.graph import CompilationError, CompiledGraph
from strata.core.project import ProjectConfig, RunConfig
from strata.core.session import Session
from strata.core.target import TableMetadata, Target

# Exceptions
from strata.exceptions import (
    CancellationError,
    CompilationFailedError,
    ConfigurationError,
    ExecutionError,
    GraphBuildError,
    StrataConnectionError,
    StrataError,
    TaskExecutionError,
)

# Logging utilities
from strata.utils.logging import get_logger, setup_logging, setup_logging_from_config

__all__ = [
    # Stages
    "compile_graph",
    "build",
    "run",
    "run_sync",
    "run_project",
    "Session",
    "Runner",
    "CancellationToken",
    # Records
    "ActionDeclaration",
    "CompilationError",
    "CompiledGraph",
    "ExecutedGraph",
    "ExecutionGraph",
    "NodeStatus",
    "ProjectConfig",
    "RunConfig",
    "TableMetadata",
    "Target",
    # Configuration and connections
    "Config",
    "load_config",
    "load_declarations",
    "create_adapter",
    "create_connection",
    # Exceptions
    "StrataError",
    "ConfigurationError",
    "CompilationFailedError",
    "GraphBuildError",
    "StrataConnectionError",
    "ExecutionError",
    "TaskExecutionError",
    "CancellationError",
    # Logging
    "get_logger",
    "setup_logging",
    "setup_logging_from_config",
]
