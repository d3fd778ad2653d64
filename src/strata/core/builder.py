"""
Execution graph builder.

Turns a compiled graph plus live warehouse metadata into the concrete,
ordered SQL work for one run.
"""

from __future__ import annotations

from collections.abc import Callable

from strata.adapters import Adapter, create_adapter
from strata.core.actions import Assertion, Operation, Table
from strata.core.dependencies import DependencyGraph, match_patterns
from strata.core.flow import ExecutionGraph, ExecutionNode
from strata.core.graph import CompiledGraph
from strata.core.project import RunConfig
from strata.core.target import TableMetadata, Target
from strata.core.tasks import Task
from strata.utils.logging import get_logger

logger = get_logger("strata.builder")

MetadataLookup = Callable[[Target], TableMetadata | None]


def no_metadata(target: Target) -> TableMetadata | None:
    """Lookup for a warehouse assumed to be empty."""
    return None


def connection_metadata_lookup(connection, adapter: Adapter) -> MetadataLookup:
    """
    Metadata lookup against a live connection.

    Identifiers are normalized the way the warehouse stores them before the
    information schema is queried.
    """

    def lookup(target: Target) -> TableMetadata | None:
        normalized = Target(
            schema=adapter.normalize_identifier(target.schema),
            name=adapter.normalize_identifier(target.name),
            database=adapter.normalize_identifier(target.database) if target.database else None,
        )
        return connection.describe(normalized)

    return lookup


def select_actions(compiled_graph: CompiledGraph, run_config: RunConfig, graph: DependencyGraph) -> set[str]:
    """
    Names of the actions a run should execute.

    Explicit action patterns and tags select exactly the matching actions
    (plus their transitive dependencies with ``include_dependencies``);
    with neither, every action is selected. Disabled actions never run.
    """
    actions = {action.name: action for action in compiled_graph.actions}

    if run_config.actions or run_config.tags:
        selected = match_patterns(run_config.actions, actions)
        if run_config.tags:
            wanted = set(run_config.tags)
            selected |= {name for name, action in actions.items() if wanted & set(action.tags)}
        if run_config.include_dependencies:
            selected |= graph.transitive_dependencies(selected)
    else:
        selected = set(actions)

    return {name for name in selected if not getattr(actions[name], "disabled", False)}


def _tasks_for(
    action: Table | Operation | Assertion,
    compiled_graph: CompiledGraph,
    run_config: RunConfig,
    adapter: Adapter,
    metadata_lookup: MetadataLookup,
) -> tuple[Task, ...]:
    match action:
        case Table():
            metadata = metadata_lookup(action.target)
            return adapter.publish_tasks(action, run_config, metadata).build()
        case Assertion():
            return adapter.assert_tasks(action, compiled_graph.project_config).build()
        case Operation():
            return tuple(Task.statement_task(query) for query in action.queries)
    raise TypeError(f"Cannot build tasks for {type(action).__name__}")


def build(
    compiled_graph: CompiledGraph,
    run_config: RunConfig | None = None,
    metadata_lookup: MetadataLookup | None = None,
    adapter: Adapter | None = None,
) -> ExecutionGraph:
    """
    Build the execution graph for a run.

    Build problems (compile errors, missing dependencies, cycles) are
    returned on ``ExecutionGraph.errors`` rather than raised. Failures of
    ``metadata_lookup`` itself (e.g. an unreachable warehouse) propagate.

    Args:
        compiled_graph: Output of the graph compiler
        run_config: Selection and refresh options for this run
        metadata_lookup: Returns the current state of a target, or None if absent
        adapter: Warehouse adapter (default: chosen from the project config)

    Returns:
        ExecutionGraph with nodes in dependency order
    """
    run_config = run_config or RunConfig()
    project_config = compiled_graph.project_config

    if not compiled_graph.ok:
        logger.warning(f"Not building: {len(compiled_graph.compilation_errors)} compilation error(s)")
        return ExecutionGraph(
            project_config=project_config,
            run_config=run_config,
            errors=tuple(str(e) for e in compiled_graph.compilation_errors),
        )

    adapter = adapter or create_adapter(project_config)
    metadata_lookup = metadata_lookup or no_metadata
    actions = {action.name: action for action in compiled_graph.actions}

    full_graph = DependencyGraph()
    for action in actions.values():
        full_graph.add_action(action.name, action.dependencies)

    selected = select_actions(compiled_graph, run_config, full_graph)

    errors: list[str] = []
    run_graph = DependencyGraph()
    for name in sorted(selected):
        action = actions[name]
        for dep in action.dependencies:
            if dep not in actions:
                errors.append(f'Missing dependency detected: Action "{name}" depends on "{dep}" which does not exist.')
        # Dependencies on actions outside the selection are not scheduled
        run_graph.add_action(name, [dep for dep in action.dependencies if dep in selected])

    for cycle in run_graph.detect_cycles():
        errors.append(f"Circular dependency detected: {' -> '.join(cycle)}")

    if errors:
        logger.warning(f"Execution graph has {len(errors)} build error(s)")
        return ExecutionGraph(project_config=project_config, run_config=run_config, errors=tuple(errors))

    nodes = []
    for name in run_graph.topological_sort():
        action = actions[name]
        tasks = _tasks_for(action, compiled_graph, run_config, adapter, metadata_lookup)
        logger.debug(f"Planned {len(tasks)} task(s) for {name}")
        nodes.append(ExecutionNode(action=action, tasks=tasks, dependencies=tuple(run_graph.get_dependencies(name))))

    logger.info(f"Built execution graph with {len(nodes)} node(s) for {adapter.name}")
    return ExecutionGraph(project_config=project_config, run_config=run_config, nodes=tuple(nodes))
