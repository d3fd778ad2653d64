"""
Programmatic API for strata.

The three stages can be driven separately::

    compiled = compile_graph(declarations, ProjectConfig(warehouse="duckdb"))
    graph = build(compiled, RunConfig(actions=("orders*",)), metadata_lookup)
    executed = run_sync(graph, connection)

or all at once for a project directory with ``run_project``.
"""

import asyncio
from pathlib import Path

from strata.adapters import create_adapter
from strata.config.loader import load_config, load_declarations
from strata.connections import create_connection
from strata.connections.base import BaseConnection
from strata.core.builder import build, connection_metadata_lookup
from strata.core.execution.runner import NodeCallback, Runner, run
from strata.core.flow import ExecutedGraph, ExecutionGraph
from strata.core.project import ProjectConfig, RunConfig
from strata.core.session import compile_graph
from strata.utils.async_utils import dual
from strata.utils.logging import get_logger, setup_logging_from_config

logger = get_logger("strata.api")

__all__ = ["build", "compile_graph", "run", "run_project", "run_sync"]


def run_sync(
    graph: ExecutionGraph,
    connection: BaseConnection,
    on_node_complete: NodeCallback | None = None,
    max_workers: int | None = None,
) -> ExecutedGraph:
    """Run an execution graph to completion from synchronous code."""

    async def _run() -> ExecutedGraph:
        return await Runner(graph, connection, on_node_complete=on_node_complete, max_workers=max_workers).result()

    return asyncio.run(_run())


@dual
async def run_project(
    project_dir: Path | str | None = None,
    env: str | None = None,
    run_config: RunConfig | None = None,
    on_node_complete: NodeCallback | None = None,
) -> ExecutedGraph:
    """
    Compile, build and run a project directory, works in both sync and async contexts.

    Args:
        project_dir: Project directory holding ``strata.yaml`` (default: current directory)
        env: Environment name (default: STRATA_ENV or "dev")
        run_config: Selection and refresh options
        on_node_complete: Called with each node's outcome as it finishes

    Returns:
        ExecutedGraph for the run

    Raises:
        ConfigurationError: If the project configuration is invalid
        CompilationFailedError: If the declarations do not compile
        GraphBuildError: If the execution graph cannot be built
    """
    project_dir = Path(project_dir) if project_dir is not None else Path.cwd()
    config = load_config(project_dir, env=env)
    setup_logging_from_config(config.data, project_dir=project_dir)

    project_config = ProjectConfig.from_config(config)
    compiled = compile_graph(load_declarations(config, project_dir), project_config)
    compiled.raise_for_errors()

    adapter = create_adapter(project_config)
    with create_connection(config.connection) as connection:
        graph = build(compiled, run_config, connection_metadata_lookup(connection, adapter), adapter=adapter)
        graph.raise_for_errors()
        executed = await run(graph, connection, on_node_complete=on_node_complete).result()

    logger.info(f"Run {'succeeded' if executed.ok else 'finished with failures'} in {config.env}")
    return executed
