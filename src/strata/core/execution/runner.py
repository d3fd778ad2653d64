"""
DAG runner.

Dispatches execution nodes as soon as all of their dependencies are terminal,
runs independent nodes concurrently and collects an ExecutedGraph.
"""

import asyncio
import time
from collections import defaultdict, deque
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor

from strata.connections.base import BaseConnection
from strata.core.execution.cancellation import CancellationToken
from strata.core.execution.node_executor import NodeExecutor
from strata.core.flow import ExecutedGraph, ExecutedNode, ExecutionGraph, NodeStatus
from strata.utils.logging import get_logger

logger = get_logger("strata.execution.runner")

NodeCallback = Callable[[ExecutedNode], None]


class Runner:
    """
    Executes one ExecutionGraph against a warehouse connection.

    Usage::

        runner = Runner(graph, connection).start()   # inside a running loop
        ...
        runner.cancel()
        executed = await runner.result()

    Attributes:
        graph: Graph being executed
        connection: Warehouse connection; each node opens its own session
        token: Cancellation token shared with the node executors
        executed: Outcome record, filled in as nodes finish
    """

    def __init__(
        self,
        graph: ExecutionGraph,
        connection: BaseConnection,
        on_node_complete: NodeCallback | None = None,
        max_workers: int | None = None,
    ):
        graph.raise_for_errors()
        self.graph = graph
        self.connection = connection
        self.on_node_complete = on_node_complete
        self.max_workers = max_workers
        self.token = CancellationToken()
        self.executed = ExecutedGraph(nodes={node.name: ExecutedNode(name=node.name) for node in graph.nodes})

        self._nodes = {node.name: node for node in graph.nodes}
        self._dependents: dict[str, list[str]] = defaultdict(list)
        for node in graph.nodes:
            for dep in node.dependencies:
                if dep in self._nodes:
                    self._dependents[dep].append(node.name)
        # Dependencies outside the graph are not scheduled and never block
        self._remaining = {
            node.name: sum(1 for dep in node.dependencies if dep in self._nodes) for node in graph.nodes
        }
        self._lock = asyncio.Lock()
        self._ready: list[str] = []
        self._fatal: BaseException | None = None
        self._task: asyncio.Task | None = None

    def start(self) -> "Runner":
        """Start the run on the current event loop; idempotent."""
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())
        return self

    def cancel(self) -> None:
        """
        Cancel the run.

        Nodes that have not started become CANCELLED; running nodes have
        their in-flight statement interrupted where the driver allows it.
        Safe to call from any thread.
        """
        self.token.cancel()

    async def result(self) -> ExecutedGraph:
        """
        Wait for every node to reach a terminal state.

        Raises:
            ConnectionError_: If the warehouse connection failed during the run
        """
        self.start()
        return await asyncio.shield(self._task)

    async def _run(self) -> ExecutedGraph:
        self.executed.started_at = time.time()
        logger.info(f"Running {len(self._nodes)} node(s)")

        workers = self.max_workers or max(len(self._nodes), 1)
        running: dict[asyncio.Task, str] = {}
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="strata-node") as pool:
            executor = NodeExecutor(self.connection, self.token, pool)
            self._ready = [name for name, count in self._remaining.items() if count == 0]

            while self._ready or running:
                ready, self._ready = self._ready, []
                for name in ready:
                    if self.token.cancelled:
                        self._mark(name, NodeStatus.CANCELLED)
                        await self._node_done(name)
                        continue
                    executed = self.executed.nodes[name]
                    executed.start()
                    logger.info(f"Starting {name}")
                    running[asyncio.create_task(executor.execute(self._nodes[name], executed))] = name

                if not running:
                    continue

                done, _ = await asyncio.wait(running, return_when=asyncio.FIRST_COMPLETED)
                for task in done:
                    name = running.pop(task)
                    error = task.exception()
                    if error is not None:
                        # Not a statement failure: the warehouse itself is gone
                        logger.error(f"{name}: fatal error, aborting run: {error}", exc_info=error)
                        self._fatal = self._fatal or error
                        self.executed.nodes[name].complete(success=False, error=str(error))
                        self.token.cancel()
                    await self._node_done(name)

        self.executed.cancelled = self.token.cancelled
        self.executed.completed_at = time.time()
        summary = self.executed.get_summary()
        logger.info(
            f"Run finished: {summary['succeeded']} succeeded, {summary['failed']} failed, "
            f"{summary['skipped']} skipped, {summary['cancelled']} cancelled"
        )
        if self._fatal is not None:
            raise self._fatal
        return self.executed

    def _mark(self, name: str, status: NodeStatus, reason: str | None = None) -> None:
        """Put a node that never ran into a terminal state."""
        executed = self.executed.nodes[name]
        if status == NodeStatus.CANCELLED:
            executed.cancel()
        else:
            executed.skip(reason)
            logger.warning(f"{name} skipped: {reason}")

    async def _node_done(self, name: str) -> None:
        """
        Record a terminal node and release its dependents.

        Dependents that can no longer run are marked here and released in
        turn, breadth first, so long chains never nest.
        """
        finished = deque([name])
        while finished:
            current = finished.popleft()
            executed = self.executed.nodes[current]
            if executed.status == NodeStatus.FAILED:
                logger.error(f"{current} failed: {executed.error}")
            elif executed.status == NodeStatus.SUCCEEDED:
                logger.info(f"{current} succeeded")

            if self.on_node_complete is not None:
                self.on_node_complete(executed)

            unblocked = []
            async with self._lock:
                for dependent in self._dependents[current]:
                    self._remaining[dependent] -= 1
                    if self._remaining[dependent] == 0:
                        unblocked.append(dependent)

            for dependent in unblocked:
                failed = [
                    dep
                    for dep in self._nodes[dependent].dependencies
                    if dep in self._nodes and self.executed.nodes[dep].status != NodeStatus.SUCCEEDED
                ]
                if self.token.cancelled:
                    self._mark(dependent, NodeStatus.CANCELLED)
                    finished.append(dependent)
                elif failed:
                    self._mark(dependent, NodeStatus.SKIPPED, f"Dependencies {failed} did not succeed")
                    finished.append(dependent)
                else:
                    self._ready.append(dependent)


def run(
    graph: ExecutionGraph,
    connection: BaseConnection,
    on_node_complete: NodeCallback | None = None,
    max_workers: int | None = None,
) -> Runner:
    """Start running an execution graph; must be called from a running event loop."""
    return Runner(graph, connection, on_node_complete=on_node_complete, max_workers=max_workers).start()
