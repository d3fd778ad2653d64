"""
Graph compiler.

A Session owns the registries of actions declared so far. Declarations are
validated one at a time; rule violations are recorded as compile errors and
compilation carries on. ``compile()`` finalizes the registries into an
immutable CompiledGraph.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import replace
from typing import Any

from strata.core.actions import (
    Action,
    ActionDeclaration,
    Assertion,
    Operation,
    Table,
    Test,
)
from strata.core.dependencies import expand_dependencies
from strata.core.graph import CompilationError, CompiledGraph
from strata.core.project import ProjectConfig
from strata.core.target import target_for
from strata.core.types import ActionType, TableType
from strata.utils.logging import get_logger

logger = get_logger("strata.session")


class Session:
    """
    Compiler session for one compile invocation.

    Attributes:
        config: Project configuration
        tables: Registered dataset actions by name
        operations: Registered operations by name
        assertions: Registered assertions by name
        tests: Registered tests by name
        compilation_errors: Errors accumulated so far
    """

    def __init__(self, project_config: ProjectConfig | None = None):
        self.config = project_config or ProjectConfig()
        self.tables: dict[str, Table] = {}
        self.operations: dict[str, Operation] = {}
        self.assertions: dict[str, Assertion] = {}
        self.tests: dict[str, Test] = {}
        self.compilation_errors: list[CompilationError] = []

    def compile_error(self, message: str, file_name: str | None = None, action_name: str | None = None) -> None:
        """Record a non-fatal compile error."""
        logger.debug(f"Compile error in {file_name or '<unknown>'}: {message}")
        self.compilation_errors.append(
            CompilationError(message=message, file_name=file_name, action_name=action_name)
        )

    def has_action(self, name: str) -> bool:
        return name in self.tables or name in self.operations or name in self.assertions or name in self.tests

    def declare(self, declaration: ActionDeclaration | Mapping[str, Any]) -> Action | None:
        """
        Validate and register one action declaration.

        Args:
            declaration: An ActionDeclaration or a mapping accepted by
                ``ActionDeclaration.from_dict``

        Returns:
            The created action, or None if the declaration could not be read
        """
        if isinstance(declaration, Mapping):
            try:
                declaration = ActionDeclaration.from_dict(declaration)
            except (KeyError, ValueError, TypeError) as e:
                self.compile_error(
                    f"Invalid action declaration: {e}",
                    file_name=declaration.get("file_name"),
                    action_name=declaration.get("name"),
                )
                return None

        self._validate(declaration)

        name = declaration.name
        if self.has_action(name):
            self.compile_error(
                "Duplicate action name detected, names must be unique across tables, "
                f'operations, assertions and tests: "{name}"',
                file_name=declaration.file_name,
                action_name=name,
            )

        action = self._create_action(declaration)
        registry = self._registry_for(action)
        # First declaration of a name wins within a registry
        registry.setdefault(name, action)
        return action

    def _registry_for(self, action: Action) -> dict[str, Any]:
        match action:
            case Table():
                return self.tables
            case Operation():
                return self.operations
            case Assertion():
                return self.assertions
            case Test():
                return self.tests
        raise TypeError(f"Unrecognized action: {action!r}")

    def _validate(self, decl: ActionDeclaration) -> None:
        """Check a declaration against the per-type validity matrix."""

        def error(message: str) -> None:
            self.compile_error(message, file_name=decl.file_name, action_name=decl.name)

        statement_count = len(decl.statements)
        is_dataset = decl.type.is_dataset
        has_expected = decl.expected is not None
        test_with_expected = has_expected and decl.type == ActionType.TEST

        if statement_count > 1 and decl.type != ActionType.OPERATIONS:
            error("Actions may only contain more than one SQL statement if they are of type 'operations'.")
        if statement_count == 0 and decl.type != ActionType.OPERATIONS and not test_with_expected:
            error(f"Actions of type '{decl.type.value}' must contain a query.")
        if decl.has_output and (decl.type != ActionType.OPERATIONS or is_dataset):
            error("Actions may only specify 'has_output: true' if they are of type 'operations'.")
        if decl.has_output and statement_count != 1:
            error("Operations with 'has_output: true' must contain exactly one SQL statement.")
        for backend in decl.layout_options:
            if not is_dataset:
                error(f"Invalid '{backend}' configuration: layout options only permitted for datasets.")
        if decl.protected and decl.type != ActionType.INCREMENTAL:
            error("Actions may only specify 'protected: true' if they are of type 'incremental'.")
        if decl.incremental_where and decl.type != ActionType.INCREMENTAL:
            error("Actions may only include incremental_where if they are of type 'incremental'.")
        if decl.where and not is_dataset:
            error("Actions may only include where if they create a dataset.")
        if decl.disabled and not is_dataset:
            error("Actions may only specify 'disabled: true' if they create a dataset.")
        if decl.pre_operations and not is_dataset:
            error("Actions may only include pre_operations if they create a dataset.")
        if decl.post_operations and not is_dataset:
            error("Actions may only include post_operations if they create a dataset.")
        if decl.type == ActionType.TEST and not decl.dataset:
            error("Test actions must specify the dataset under test.")
        if decl.type != ActionType.TEST and decl.dataset:
            error("Actions may only specify a dataset under test if they are of type 'test'.")
        if decl.input and decl.type != ActionType.TEST:
            error("Actions may only include input fixtures if they are of type 'test'.")
        if has_expected and decl.type != ActionType.TEST:
            error("Actions may only specify expected output if they are of type 'test'.")
        if test_with_expected and statement_count:
            error("Test actions must give their expected output once, as either 'query' or 'expected'.")

    def _create_action(self, decl: ActionDeclaration) -> Action:
        """Create the compiled action variant for a declaration."""
        query = decl.statements[0] if decl.statements else ""
        common = {
            "name": decl.name,
            "file_name": decl.file_name,
            "tags": tuple(decl.tags),
            "description": decl.description,
        }
        dependencies = tuple(dict.fromkeys(decl.dependencies))

        match decl.type:
            case ActionType.VIEW | ActionType.TABLE | ActionType.INLINE | ActionType.INCREMENTAL:
                return Table(
                    type=TableType(decl.type.value),
                    target=target_for(decl.name, self.config, schema=decl.schema, database=decl.database),
                    query=query,
                    dependencies=dependencies,
                    disabled=decl.disabled,
                    protected=decl.protected and decl.type == ActionType.INCREMENTAL,
                    where=decl.where,
                    incremental_where=decl.incremental_where if decl.type == ActionType.INCREMENTAL else None,
                    incremental_query=decl.incremental_query,
                    pre_operations=tuple(decl.pre_operations),
                    post_operations=tuple(decl.post_operations),
                    redshift=decl.redshift,
                    bigquery=decl.bigquery,
                    snowflake=decl.snowflake,
                    **common,
                )
            case ActionType.OPERATIONS:
                target = None
                if decl.has_output:
                    target = target_for(decl.name, self.config, schema=decl.schema, database=decl.database)
                return Operation(
                    target=target,
                    queries=tuple(decl.statements),
                    has_output=decl.has_output,
                    dependencies=dependencies,
                    **common,
                )
            case ActionType.ASSERTION:
                return Assertion(
                    target=target_for(
                        decl.name,
                        self.config,
                        schema=decl.schema,
                        database=decl.database,
                        default_schema=self.config.assertion_schema,
                    ),
                    query=query,
                    dependencies=dependencies,
                    **common,
                )
            case ActionType.TEST:
                expected = decl.expected if decl.expected is not None else query
                return Test(dataset=decl.dataset or "", expected=expected, input=dict(decl.input), **common)
        raise TypeError(f"Unrecognized action type: {decl.type!r}")

    def compile(self) -> CompiledGraph:
        """
        Finalize the registries into an immutable CompiledGraph.

        Wildcard dependencies are expanded against the names of all tables,
        operations and assertions; a wildcard never matches the action that
        declares it.
        """
        universe = set(self.tables) | set(self.operations) | set(self.assertions)

        def resolve(action):
            resolved = expand_dependencies(action.dependencies, universe - {action.name})
            return replace(action, dependencies=tuple(sorted(resolved)))

        errors = list(self.compilation_errors)
        for test in self.tests.values():
            if test.dataset and test.dataset not in self.tables:
                errors.append(
                    CompilationError(
                        message=f'Dataset under test "{test.dataset}" could not be found.',
                        file_name=test.file_name,
                        action_name=test.name,
                    )
                )

        graph = CompiledGraph(
            project_config=self.config,
            tables=tuple(resolve(t) for t in self.tables.values()),
            operations=tuple(resolve(o) for o in self.operations.values()),
            assertions=tuple(resolve(a) for a in self.assertions.values()),
            tests=tuple(self.tests.values()),
            compilation_errors=tuple(errors),
        )
        logger.debug(
            f"Compiled {len(graph.tables)} tables, {len(graph.operations)} operations, "
            f"{len(graph.assertions)} assertions, {len(graph.tests)} tests "
            f"({len(graph.compilation_errors)} errors)"
        )
        return graph


def compile_graph(
    declarations: Iterable[ActionDeclaration | Mapping[str, Any]],
    project_config: ProjectConfig | None = None,
) -> CompiledGraph:
    """
    Compile a flat list of declarations into a CompiledGraph.

    Never raises for invalid declarations; inspect
    ``CompiledGraph.compilation_errors`` instead.
    """
    session = Session(project_config)
    for declaration in declarations:
        session.declare(declaration)
    return session.compile()
