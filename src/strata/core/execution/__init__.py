"""
Execution engine: runner, node executor and cancellation.
"""

from strata.core.execution.cancellation import CancellationToken
from strata.core.execution.node_executor import NodeExecutor, check_assertion
from strata.core.execution.runner import Runner, run

__all__ = ["CancellationToken", "NodeExecutor", "Runner", "check_assertion", "run"]
