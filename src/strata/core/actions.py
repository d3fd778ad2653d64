"""
Action declarations and compiled action variants.

An ``ActionDeclaration`` is the raw, unvalidated shape handed over by the
templating layer. The compiler turns each one into exactly one of the
closed set of compiled variants: ``Table``, ``Operation``, ``Assertion`` or
``Test``.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any

from strata.core.target import Target
from strata.core.types import ActionType, TableType

# --- Backend layout options ---------------------------------------------------


@dataclass(frozen=True)
class RedshiftOptions:
    """Redshift distribution and sort keys."""

    dist_key: str | None = None
    dist_style: str | None = None
    sort_keys: tuple[str, ...] = ()
    sort_style: str | None = None


@dataclass(frozen=True)
class BigQueryOptions:
    """BigQuery partitioning and clustering."""

    partition_by: str | None = None
    cluster_by: tuple[str, ...] = ()


@dataclass(frozen=True)
class SnowflakeOptions:
    """Snowflake clustering and table transience."""

    cluster_by: tuple[str, ...] = ()
    transient: bool = False


_LAYOUT_OPTIONS: dict[str, type] = {
    "redshift": RedshiftOptions,
    "bigquery": BigQueryOptions,
    "snowflake": SnowflakeOptions,
}


def _layout_from_dict(backend: str, data: Any) -> Any:
    """Build a layout options record from a mapping (or pass a record through)."""
    if data is None or isinstance(data, _LAYOUT_OPTIONS[backend]):
        return data
    options_cls = _LAYOUT_OPTIONS[backend]
    known = {f.name for f in fields(options_cls)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(f"Unknown {backend} option(s): {', '.join(sorted(unknown))}")
    kwargs = {k: tuple(v) if isinstance(v, list) else v for k, v in data.items()}
    return options_cls(**kwargs)


def _to_dict(record: Any) -> Any:
    """Serialize a record into plain nested dicts/lists with stable keys."""
    if record is None:
        return None
    if isinstance(record, Enum):
        return record.value
    if isinstance(record, Target):
        return record.to_dict()
    if isinstance(record, (list, tuple)):
        return [_to_dict(item) for item in record]
    if isinstance(record, dict):
        return {k: _to_dict(v) for k, v in record.items()}
    if hasattr(record, "__dataclass_fields__"):
        return {f.name: _to_dict(getattr(record, f.name)) for f in fields(record)}
    return record


# --- Raw declarations ---------------------------------------------------------


@dataclass
class ActionDeclaration:
    """
    A single raw action declaration, before validation.

    ``statements`` holds the action's SQL: the query of a dataset, assertion
    or test, or the list of statements of an operation. A test may give its
    expected-output query as ``expected`` instead.
    """

    name: str
    type: ActionType
    statements: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    schema: str | None = None
    database: str | None = None
    file_name: str | None = None
    tags: list[str] = field(default_factory=list)
    description: str | None = None
    disabled: bool = False
    protected: bool = False
    has_output: bool = False
    where: str | None = None
    incremental_where: str | None = None
    incremental_query: str | None = None
    pre_operations: list[str] = field(default_factory=list)
    post_operations: list[str] = field(default_factory=list)
    redshift: RedshiftOptions | None = None
    bigquery: BigQueryOptions | None = None
    snowflake: SnowflakeOptions | None = None
    dataset: str | None = None
    input: dict[str, str] = field(default_factory=dict)
    expected: str | None = None

    def __post_init__(self) -> None:
        self.type = ActionType(self.type)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ActionDeclaration":
        """
        Create a declaration from a mapping.

        ``query`` is accepted as shorthand for a single statement.

        Raises:
            ValueError: If the type or a layout option is not recognised
            KeyError: If ``name`` or ``type`` is missing
        """
        data = dict(data)
        statements = data.pop("statements", None)
        query = data.pop("query", None)
        if statements is None:
            statements = [query] if query is not None else []
        elif isinstance(statements, str):
            statements = [statements]

        action_type = ActionType(data.pop("type"))
        dependencies = data.pop("dependencies", None) or []
        if isinstance(dependencies, str):
            dependencies = [dependencies]

        layout = {backend: _layout_from_dict(backend, data.pop(backend, None)) for backend in _LAYOUT_OPTIONS}

        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown declaration field(s): {', '.join(sorted(unknown))}")

        return cls(
            type=action_type,
            statements=list(statements),
            dependencies=list(dependencies),
            **layout,
            **data,
        )

    @property
    def layout_options(self) -> dict[str, Any]:
        """Backend layout options that are set, keyed by backend."""
        options = {"redshift": self.redshift, "bigquery": self.bigquery, "snowflake": self.snowflake}
        return {k: v for k, v in options.items() if v is not None}


# --- Compiled actions ---------------------------------------------------------


@dataclass(frozen=True)
class Table:
    """A dataset action: view, table, inline view or incremental table."""

    name: str
    type: TableType
    target: Target
    query: str = ""
    dependencies: tuple[str, ...] = ()
    file_name: str | None = None
    tags: tuple[str, ...] = ()
    description: str | None = None
    disabled: bool = False
    protected: bool = False
    where: str | None = None
    incremental_where: str | None = None
    incremental_query: str | None = None
    pre_operations: tuple[str, ...] = ()
    post_operations: tuple[str, ...] = ()
    redshift: RedshiftOptions | None = None
    bigquery: BigQueryOptions | None = None
    snowflake: SnowflakeOptions | None = None

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)


@dataclass(frozen=True)
class Operation:
    """Arbitrary SQL statements, optionally producing an output object."""

    name: str
    target: Target | None = None
    queries: tuple[str, ...] = ()
    has_output: bool = False
    dependencies: tuple[str, ...] = ()
    file_name: str | None = None
    tags: tuple[str, ...] = ()
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)


@dataclass(frozen=True)
class Assertion:
    """A query selecting offending rows; any row is a failure."""

    name: str
    target: Target
    query: str = ""
    dependencies: tuple[str, ...] = ()
    file_name: str | None = None
    tags: tuple[str, ...] = ()
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)


@dataclass(frozen=True)
class Test:
    """A unit test of a dataset against input fixtures."""

    __test__ = False  # not a pytest test class

    name: str
    dataset: str
    expected: str = ""
    input: dict[str, str] = field(default_factory=dict)
    file_name: str | None = None
    tags: tuple[str, ...] = ()
    description: str | None = None

    @property
    def dependencies(self) -> tuple[str, ...]:
        return ()

    def to_dict(self) -> dict[str, Any]:
        return _to_dict(self)


Action = Table | Operation | Assertion | Test


def table_from_dict(data: dict[str, Any]) -> Table:
    return Table(
        name=data["name"],
        type=TableType(data["type"]),
        target=Target.from_dict(data["target"]),
        query=data.get("query", ""),
        dependencies=tuple(data.get("dependencies", ())),
        file_name=data.get("file_name"),
        tags=tuple(data.get("tags", ())),
        description=data.get("description"),
        disabled=data.get("disabled", False),
        protected=data.get("protected", False),
        where=data.get("where"),
        incremental_where=data.get("incremental_where"),
        incremental_query=data.get("incremental_query"),
        pre_operations=tuple(data.get("pre_operations", ())),
        post_operations=tuple(data.get("post_operations", ())),
        redshift=_layout_from_dict("redshift", data.get("redshift")),
        bigquery=_layout_from_dict("bigquery", data.get("bigquery")),
        snowflake=_layout_from_dict("snowflake", data.get("snowflake")),
    )


def operation_from_dict(data: dict[str, Any]) -> Operation:
    return Operation(
        name=data["name"],
        target=Target.from_dict(data.get("target")),
        queries=tuple(data.get("queries", ())),
        has_output=data.get("has_output", False),
        dependencies=tuple(data.get("dependencies", ())),
        file_name=data.get("file_name"),
        tags=tuple(data.get("tags", ())),
        description=data.get("description"),
    )


def assertion_from_dict(data: dict[str, Any]) -> Assertion:
    return Assertion(
        name=data["name"],
        target=Target.from_dict(data["target"]),
        query=data.get("query", ""),
        dependencies=tuple(data.get("dependencies", ())),
        file_name=data.get("file_name"),
        tags=tuple(data.get("tags", ())),
        description=data.get("description"),
    )


def unit_test_from_dict(data: dict[str, Any]) -> Test:
    return Test(
        name=data["name"],
        dataset=data["dataset"],
        expected=data.get("expected", ""),
        input=dict(data.get("input", {})),
        file_name=data.get("file_name"),
        tags=tuple(data.get("tags", ())),
        description=data.get("description"),
    )
