"""
Dependency expansion and dependency graph management.

Wildcard dependency patterns are expanded against the compiled action-name
universe; the resulting graph is used to select, order and check runs.
"""

import re
from collections import defaultdict, deque
from collections.abc import Iterable
from functools import lru_cache
from typing import Dict, List, Optional, Set


def is_pattern(dependency: str) -> bool:
    """Whether a dependency is a wildcard pattern rather than a literal name."""
    return "*" in dependency


@lru_cache(maxsize=512)
def _compile_pattern(pattern: str) -> re.Pattern:
    # '*' matches any run of characters inside one dot-separated segment
    parts = [re.escape(part) for part in pattern.split("*")]
    return re.compile("[^.]*".join(parts))


def match_patterns(patterns: Iterable[str], names: Iterable[str]) -> Set[str]:
    """
    Match glob patterns against a set of names.

    Args:
        patterns: Patterns where ``*`` matches any substring of a name segment
        names: Name universe to match against

    Returns:
        Names matched by at least one pattern
    """
    compiled = [_compile_pattern(p) for p in patterns]
    return {name for name in names if any(p.fullmatch(name) for p in compiled)}


def expand_dependencies(dependencies: Iterable[str], names: Iterable[str]) -> Set[str]:
    """
    Resolve a dependency set against a name universe.

    Literal names are kept as-is (they may reference actions that don't
    exist); wildcard patterns are replaced by the names they match.
    Expanding an already-expanded set returns it unchanged.
    """
    dependencies = list(dependencies)
    literals = {d for d in dependencies if not is_pattern(d)}
    wildcards = [d for d in dependencies if is_pattern(d)]
    return literals | match_patterns(wildcards, names)


class DependencyGraph:
    """Represents a directed graph of action dependencies."""

    def __init__(self):
        self._graph: Dict[str, List[str]] = defaultdict(list)  # action -> dependencies
        self._reverse: Dict[str, List[str]] = defaultdict(list)  # action -> dependents

    def __contains__(self, action_name: str) -> bool:
        return action_name in self._graph

    def add_action(self, action_name: str, dependencies: Optional[Iterable[str]] = None):
        """Add an action and its dependencies to the graph."""
        dependencies = list(dependencies or [])

        # Remove stale reverse edges from previous dependencies
        for old_dep in self._graph.get(action_name, []):
            if action_name in self._reverse[old_dep]:
                self._reverse[old_dep].remove(action_name)

        self._graph[action_name] = dependencies

        for dep in dependencies:
            if action_name not in self._reverse[dep]:
                self._reverse[dep].append(action_name)

    def actions(self) -> List[str]:
        return list(self._graph)

    def get_dependencies(self, action_name: str) -> List[str]:
        """Get dependencies for an action."""
        return self._graph.get(action_name, [])

    def transitive_dependencies(self, action_names: Iterable[str]) -> Set[str]:
        """All actions reachable through dependency edges, excluding the starting set."""
        start = set(action_names)
        seen: Set[str] = set()
        queue = deque(start)
        while queue:
            for dep in self.get_dependencies(queue.popleft()):
                if dep not in seen and dep in self._graph:
                    seen.add(dep)
                    queue.append(dep)
        return seen - start

    def topological_sort(self) -> List[str]:
        """
        Topological sort of actions by dependencies.

        Returns actions in execution order (dependencies before dependents).
        Actions on a cycle are left out.
        """
        in_degree: Dict[str, int] = {name: 0 for name in self._graph}

        for action_name, deps in self._graph.items():
            for dep in deps:
                if dep in self._graph:
                    in_degree[action_name] += 1

        # Kahn's algorithm
        queue = deque(sorted(name for name, degree in in_degree.items() if degree == 0))
        result = []

        while queue:
            action_name = queue.popleft()
            result.append(action_name)

            for dependent in self._reverse[action_name]:
                if dependent in self._graph:
                    in_degree[dependent] -= 1
                    if in_degree[dependent] == 0:
                        queue.append(dependent)

        return result

    def detect_cycles(self) -> List[List[str]]:
        """
        Detect cycles in the dependency graph.

        Uses DFS to find all cycles. The rec_stack and path are always
        properly maintained so that non-cyclic nodes sharing edges with
        cyclic nodes are not falsely reported.
        """
        visited: Set[str] = set()
        rec_stack: Set[str] = set()
        cycles: List[List[str]] = []
        path: List[str] = []

        def dfs(node: str):
            visited.add(node)
            rec_stack.add(node)
            path.append(node)

            for neighbor in self._graph.get(node, []):
                if neighbor not in self._graph:
                    continue
                if neighbor not in visited:
                    dfs(neighbor)
                elif neighbor in rec_stack:
                    cycle_start = path.index(neighbor)
                    cycles.append(path[cycle_start:] + [neighbor])

            rec_stack.remove(node)
            path.pop()

        for node in sorted(self._graph):
            if node not in visited:
                dfs(node)

        return cycles

