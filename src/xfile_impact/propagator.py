# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Impact propagation over reverse dependency edges.

One breadth-first fixpoint serves both granularities:
- files: edges are DependencyGraph.dependents
- methods: edges are MethodCallGraph.called_by

The visited set doubles as the cycle guard, so cyclic graphs terminate and a
change anywhere in a cycle selects the whole cycle.
"""

import logging
from collections import deque
from typing import Deque, Iterable, Mapping, Optional, Set

from xfile_impact.graph import DependencyGraph
from xfile_impact.method_graph import MethodCallGraph, is_unresolved_call

logger = logging.getLogger(__name__)


def propagate(seeds: Iterable[str], edges: Mapping[str, Iterable[str]]) -> Set[str]:
    """Transitive closure of ``seeds`` along ``edges``.

    Args:
        seeds: Starting nodes; always part of the result.
        edges: node -> nodes affected when that node changes.

    Returns:
        Seeds plus every node reachable from them.
    """
    visited: Set[str] = set(seeds)
    queue: Deque[str] = deque(visited)
    while queue:
        node = queue.popleft()
        for neighbor in edges.get(node, ()):
            if neighbor not in visited:
                visited.add(neighbor)
                queue.append(neighbor)
    return visited


class ImpactPropagator:
    """Computes affected sets from a built file graph and method graph."""

    def __init__(self, graph: DependencyGraph, method_graph: Optional[MethodCallGraph] = None):
        self.graph = graph
        self.method_graph = method_graph

    def affected_files(self, changed_files: Iterable[str]) -> Set[str]:
        """Changed files plus every file that transitively depends on them."""
        changed = set(changed_files)
        affected = propagate(changed, self.graph.dependents)
        logger.debug(f"{len(changed)} changed file(s) affect {len(affected)} file(s)")
        return affected

    def affected_methods(self, changed_methods: Iterable[str]) -> Set[str]:
        """Changed methods plus every method that transitively calls them.

        Opaque receiver calls are neither seeds nor results.
        """
        if self.method_graph is None:
            raise ValueError("Method-level propagation requires a method call graph")
        seeds = {m for m in changed_methods if not is_unresolved_call(m)}
        return propagate(seeds, self.method_graph.called_by)
