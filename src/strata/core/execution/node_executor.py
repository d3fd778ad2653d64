"""
Execution of a single node's tasks.

Tasks of one node run strictly in order on the node's own warehouse session,
inside a worker thread so blocking driver calls don't stall the event loop.
"""

import asyncio
from concurrent.futures import ThreadPoolExecutor

from strata.connections.base import BaseConnection
from strata.core.execution.cancellation import CancellationToken
from strata.core.flow import ExecutedNode, ExecutedTask, ExecutionNode
from strata.core.tasks import Task
from strata.core.types import TaskType
from strata.exceptions import CancellationError, TaskExecutionError
from strata.utils.logging import get_logger

logger = get_logger("strata.execution.node_executor")


def check_assertion(task: Task, rows: list[tuple]) -> None:
    """
    Fail an assertion task whose row count is greater than zero.

    A NULL count (``sum(1)`` over no rows) counts as zero.
    """
    count = rows[0][0] if rows and rows[0] else None
    if count is not None and int(count) > 0:
        raise TaskExecutionError(task.statement, f"Assertion failed: query returned {count} row(s)")


class NodeExecutor:
    """Runs the task list of execution nodes against a connection."""

    def __init__(self, connection: BaseConnection, token: CancellationToken, executor_pool: ThreadPoolExecutor):
        self.connection = connection
        self.token = token
        self.executor_pool = executor_pool

    async def execute(self, node: ExecutionNode, executed: ExecutedNode) -> ExecutedNode:
        """Execute a node in the thread pool, recording the outcome on ``executed``."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self.executor_pool, self.execute_blocking, node, executed)

    def execute_blocking(self, node: ExecutionNode, executed: ExecutedNode) -> ExecutedNode:
        """
        Execute a node's tasks in order.

        The first failing task marks the node failed and the rest are not
        run. Cancellation is checked before every statement; an
        in-flight statement is interrupted through the session if the driver
        supports it.

        Raises:
            ConnectionError_: If no session could be opened
        """
        with self.connection.session() as session:
            unregister = self.token.add_callback(session.cancel) if session.supports_cancellation else None
            try:
                for task in node.tasks:
                    try:
                        self.token.raise_if_cancelled()
                        rows = session.execute(task.statement)
                        if task.type == TaskType.ASSERTION:
                            check_assertion(task, rows)
                    except CancellationError:
                        logger.info(f"{node.name}: cancelled")
                        executed.cancel()
                        return executed
                    except TaskExecutionError as e:
                        executed.tasks.append(ExecutedTask(task=task, ok=False, error=e.message))
                        if self.token.cancelled:
                            logger.info(f"{node.name}: cancelled while running")
                            executed.cancel()
                        else:
                            executed.complete(success=False, error=e.message)
                        return executed
                    executed.tasks.append(ExecutedTask(task=task, ok=True))
            finally:
                if unregister is not None:
                    unregister()

        executed.complete(success=True)
        return executed
