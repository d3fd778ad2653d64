"""
Tests for the DAG runner and node executor.

Warehouse connections are replaced by in-process fakes whose statements
can succeed, fail, block or trigger cancellation.
"""

import asyncio
import threading
from unittest.mock import Mock

import pytest

from strata.connections.base import WarehouseSession
from strata.core.actions import Operation
from strata.core.execution import CancellationToken, Runner, check_assertion, run
from strata.core.flow import ExecutionGraph, ExecutionNode, NodeStatus
from strata.core.api import run_sync
from strata.core.tasks import Task
from strata.exceptions import CancellationError, GraphBuildError, StrataConnectionError, TaskExecutionError


class FakeSession(WarehouseSession):
    supports_cancellation = True

    def __init__(self, connection):
        self.connection = connection
        self.interrupted = threading.Event()

    def execute(self, sql):
        self.connection.executed.append(sql)
        behaviour = self.connection.behaviours.get(sql)
        if callable(behaviour):
            return behaviour(self)
        return behaviour or []

    def cancel(self):
        self.interrupted.set()


class FakeConnection:
    def __init__(self, behaviours=None):
        self.behaviours = behaviours or {}
        self.executed = []

    def session(self):
        return FakeSession(self)


def fail(sql):
    def behaviour(session):
        raise TaskExecutionError(sql, f"boom: {sql}")

    return behaviour


def node(name, *statements, dependencies=(), assertion=False):
    task = Task.assertion_task if assertion else Task.statement_task
    return ExecutionNode(
        action=Operation(name=name, queries=statements),
        tasks=tuple(task(s) for s in statements),
        dependencies=tuple(dependencies),
    )


def graph(*nodes):
    return ExecutionGraph(nodes=tuple(nodes))


class TestCheckAssertion:
    def test_zero_rows_passes(self):
        check_assertion(Task.assertion_task("q"), [(0,)])

    def test_null_count_passes(self):
        check_assertion(Task.assertion_task("q"), [(None,)])

    def test_positive_count_fails(self):
        with pytest.raises(TaskExecutionError, match="returned 3 row"):
            check_assertion(Task.assertion_task("q"), [(3,)])


class TestCancellationToken:
    def test_callbacks_fire_once(self):
        token = CancellationToken()
        callback = Mock()
        token.add_callback(callback)

        token.cancel()
        token.cancel()

        callback.assert_called_once_with()
        assert token.cancelled

    def test_removed_callback_does_not_fire(self):
        token = CancellationToken()
        callback = Mock()
        remove = token.add_callback(callback)
        remove()

        token.cancel()

        callback.assert_not_called()

    def test_callback_added_after_cancel_fires_immediately(self):
        token = CancellationToken()
        token.cancel()
        callback = Mock()

        token.add_callback(callback)

        callback.assert_called_once_with()
        with pytest.raises(CancellationError):
            token.raise_if_cancelled()


class TestRunner:
    """Scheduling, failure propagation and cancellation."""

    def test_all_succeed_in_dependency_order(self):
        connection = FakeConnection()
        executed = run_sync(
            graph(node("a", "sql a"), node("b", "sql b", dependencies=["a"]), node("c", "sql c", dependencies=["b"])),
            connection,
        )

        assert executed.ok
        assert not executed.cancelled
        assert connection.executed == ["sql a", "sql b", "sql c"]
        assert all(n.status == NodeStatus.SUCCEEDED for n in executed.nodes.values())

    def test_failure_skips_dependents_only(self):
        connection = FakeConnection({"sql a": fail("sql a")})

        executed = run_sync(
            graph(node("a", "sql a"), node("b", "sql b", dependencies=["a"]), node("c", "sql c")),
            connection,
        )

        assert not executed.ok
        assert executed.get("a").status == NodeStatus.FAILED
        assert executed.get("a").error == "boom: sql a"
        assert executed.get("b").status == NodeStatus.SKIPPED
        assert executed.get("c").status == NodeStatus.SUCCEEDED
        assert "sql b" not in connection.executed

    def test_skip_propagates_transitively(self):
        connection = FakeConnection({"sql a": fail("sql a")})

        executed = run_sync(
            graph(node("a", "sql a"), node("b", "sql b", dependencies=["a"]), node("c", "sql c", dependencies=["b"])),
            connection,
        )

        assert executed.get("c").status == NodeStatus.SKIPPED

    def test_first_failing_task_aborts_node(self):
        connection = FakeConnection({"two": fail("two")})

        executed = run_sync(graph(node("a", "one", "two", "three")), connection)

        result = executed.get("a")
        assert result.status == NodeStatus.FAILED
        assert [(t.task.statement, t.ok) for t in result.tasks] == [("one", True), ("two", False)]
        assert connection.executed == ["one", "two"]

    def test_assertion_with_rows_fails(self):
        connection = FakeConnection({"count": [(2,)]})

        executed = run_sync(graph(node("chk", "count", assertion=True)), connection)

        assert executed.get("chk").status == NodeStatus.FAILED
        assert "returned 2 row" in executed.get("chk").error

    def test_assertion_without_rows_succeeds(self):
        connection = FakeConnection({"count": [(0,)]})

        executed = run_sync(graph(node("chk", "count", assertion=True)), connection)

        assert executed.ok

    def test_independent_nodes_run_concurrently(self):
        barrier = threading.Barrier(2, timeout=5)

        def meet(session):
            barrier.wait()
            return []

        connection = FakeConnection({"sql a": meet, "sql b": meet})

        executed = run_sync(graph(node("a", "sql a"), node("b", "sql b")), connection)

        assert executed.ok

    def test_on_node_complete_called_for_every_node(self):
        completed = []
        connection = FakeConnection({"sql a": fail("sql a")})

        run_sync(
            graph(node("a", "sql a"), node("b", "sql b", dependencies=["a"])),
            connection,
            on_node_complete=lambda n: completed.append((n.name, n.status)),
        )

        assert completed == [("a", NodeStatus.FAILED), ("b", NodeStatus.SKIPPED)]

    def test_graph_with_errors_is_rejected(self):
        with pytest.raises(GraphBuildError):
            Runner(ExecutionGraph(errors=("Missing dependency",)), FakeConnection())

    def test_summary_and_serialization(self):
        executed = run_sync(graph(node("a", "sql a")), FakeConnection())

        summary = executed.get_summary()
        assert summary["succeeded"] == 1
        assert summary["total_nodes"] == 1
        data = executed.to_dict()
        assert data["ok"] is True
        assert data["nodes"][0]["tasks"] == [{"type": "statement", "statement": "sql a", "ok": True, "error": None}]

    def test_long_chain_under_failed_root_is_skipped(self):
        chain = [node("n0", "sql 0")] + [
            node(f"n{i}", f"sql {i}", dependencies=[f"n{i - 1}"]) for i in range(1, 2000)
        ]
        connection = FakeConnection({"sql 0": fail("sql 0")})

        executed = run_sync(graph(*chain), connection)

        assert executed.get("n0").status == NodeStatus.FAILED
        assert executed.get_summary()["skipped"] == 1999
        assert executed.get("n1999").status == NodeStatus.SKIPPED
        assert connection.executed == ["sql 0"]

    def test_dependencies_outside_graph_do_not_block(self):
        connection = FakeConnection()

        executed = run_sync(
            graph(node("a", "sql a", dependencies=["elsewhere"]), node("b", "sql b", dependencies=["a", "gone"])),
            connection,
        )

        assert executed.ok
        assert connection.executed == ["sql a", "sql b"]


class TestRunnerCancellation:
    @pytest.mark.asyncio
    async def test_cancel_between_nodes(self):
        runner = None

        def cancel_after_a(session):
            runner.cancel()
            return []

        connection = FakeConnection({"sql a": cancel_after_a})
        runner = Runner(graph(node("a", "sql a"), node("b", "sql b", dependencies=["a"])), connection)

        executed = await runner.result()

        assert executed.cancelled
        assert not executed.ok
        assert executed.get("a").status == NodeStatus.SUCCEEDED
        assert executed.get("b").status == NodeStatus.CANCELLED
        assert "sql b" not in connection.executed

    @pytest.mark.asyncio
    async def test_cancel_interrupts_in_flight_statement(self):
        runner = None

        def block_until_interrupted(session):
            runner.cancel()
            if session.interrupted.wait(timeout=5):
                raise TaskExecutionError("sql a", "interrupted")
            return []

        connection = FakeConnection({"sql a": block_until_interrupted})
        runner = Runner(graph(node("a", "sql a", "sql a2")), connection)

        executed = await runner.result()

        assert executed.cancelled
        assert executed.get("a").status == NodeStatus.CANCELLED
        assert "sql a2" not in connection.executed

    @pytest.mark.asyncio
    async def test_cancel_before_start_cancels_everything(self):
        connection = FakeConnection()
        runner = Runner(graph(node("a", "sql a"), node("b", "sql b", dependencies=["a"])), connection)
        runner.cancel()

        executed = await runner.result()

        assert executed.cancelled
        assert {n.status for n in executed.nodes.values()} == {NodeStatus.CANCELLED}
        assert connection.executed == []

    @pytest.mark.asyncio
    async def test_cancel_releases_long_chain(self):
        runner = None

        def cancel_in_root(session):
            runner.cancel()
            return []

        chain = [node("n0", "sql 0")] + [
            node(f"n{i}", f"sql {i}", dependencies=[f"n{i - 1}"]) for i in range(1, 2000)
        ]
        connection = FakeConnection({"sql 0": cancel_in_root})
        runner = Runner(graph(*chain), connection)

        executed = await runner.result()

        assert executed.cancelled
        assert executed.get("n0").status == NodeStatus.SUCCEEDED
        assert executed.get_summary()["cancelled"] == 1999

    @pytest.mark.asyncio
    async def test_run_starts_immediately(self):
        connection = FakeConnection()

        runner = run(graph(node("a", "sql a")), connection)
        executed = await runner.result()

        assert executed.ok


class TestFatalErrors:
    @pytest.mark.asyncio
    async def test_connection_failure_aborts_run(self):
        connection = FakeConnection()
        connection.session = Mock(side_effect=StrataConnectionError("warehouse unreachable"))

        runner = Runner(graph(node("a", "sql a"), node("b", "sql b", dependencies=["a"])), connection)

        with pytest.raises(StrataConnectionError, match="unreachable"):
            await runner.result()
        assert runner.executed.get("a").status == NodeStatus.FAILED
        assert runner.executed.get("b").status == NodeStatus.CANCELLED
