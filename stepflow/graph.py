"""Dependency graph built from a workflow's node definitions."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Set

from .contracts import NodeDefinition
from .errors import (
    CycleError,
    DanglingReferenceError,
    GraphError,
    NoEntryPointError,
)

logger = logging.getLogger(__name__)

_WHITE, _GREY, _BLACK = 0, 1, 2


class GraphModel:
    """Validated traversal structure over a set of nodes.

    Construct with :meth:`build`, which checks every ``depends_on`` id and
    rejects cycles before anything is executed.
    """

    def __init__(self, nodes: List[NodeDefinition]) -> None:
        self._order: List[str] = [n.id for n in nodes]
        self.nodes: Dict[str, NodeDefinition] = {n.id: n for n in nodes}
        self.dependents: Dict[str, List[str]] = {n.id: [] for n in nodes}
        for node in nodes:
            for dep in node.depends_on:
                if dep in self.dependents:
                    self.dependents[dep].append(node.id)

    @classmethod
    def build(cls, nodes: Iterable[NodeDefinition]) -> "GraphModel":
        """Create a graph, failing on dangling references or cycles."""
        nodes = list(nodes)
        graph = cls(nodes)
        if len(graph.nodes) != len(nodes):
            raise GraphError("Duplicate node ids in workflow")
        for node in nodes:
            for dep in node.depends_on:
                if dep not in graph.nodes:
                    raise DanglingReferenceError(node.id, dep)
        graph._check_acyclic()
        logger.debug(f"Built graph with {len(nodes)} nodes")
        return graph

    def _check_acyclic(self) -> None:
        # Iterative three-colour DFS over dependency edges.
        color = {node_id: _WHITE for node_id in self._order}
        for root in self._order:
            if color[root] != _WHITE:
                continue
            stack = [(root, iter(self.nodes[root].depends_on))]
            path = [root]
            color[root] = _GREY
            while stack:
                node_id, deps = stack[-1]
                dep = next(deps, None)
                if dep is None:
                    color[node_id] = _BLACK
                    stack.pop()
                    path.pop()
                    continue
                if color[dep] == _GREY:
                    cycle = path[path.index(dep):] + [dep]
                    raise CycleError(list(reversed(cycle)))
                if color[dep] == _WHITE:
                    color[dep] = _GREY
                    path.append(dep)
                    stack.append((dep, iter(self.nodes[dep].depends_on)))

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self):
        return (self.nodes[node_id] for node_id in self._order)

    def entry_points(self) -> List[NodeDefinition]:
        """All TRIGGER nodes without dependencies."""
        entries = [node for node in self if node.is_entry_point]
        if not entries:
            raise NoEntryPointError()
        return entries

    def ready_nodes(
        self, completed: Set[str], settled: Optional[Set[str]] = None
    ) -> List[NodeDefinition]:
        """Return the scheduling frontier.

        A node is ready when all of its dependencies are in ``completed`` and
        it is neither completed nor in ``settled`` (failed or skipped).
        Dependency-free nodes are only ready when they are entry points.
        """
        settled = settled or set()
        ready = []
        for node in self:
            if node.id in completed or node.id in settled:
                continue
            if not node.depends_on and not node.is_entry_point:
                continue
            if all(dep in completed for dep in node.depends_on):
                ready.append(node)
        return ready

    def descendants(self, node_id: str) -> Set[str]:
        """Transitive dependents of ``node_id``."""
        seen: Set[str] = set()
        queue = list(self.dependents.get(node_id, []))
        while queue:
            current = queue.pop()
            if current in seen:
                continue
            seen.add(current)
            queue.extend(self.dependents[current])
        return seen

    def ancestors(self, node_id: str) -> Set[str]:
        """Transitive dependencies of ``node_id``."""
        seen: Set[str] = set()
        queue = list(self.nodes[node_id].depends_on)
        while queue:
            current = queue.pop()
            if current in seen:
                continue
            seen.add(current)
            queue.extend(self.nodes[current].depends_on)
        return seen

    def topological_order(self) -> List[str]:
        """Node ids in a dependency-respecting order (Kahn's algorithm)."""
        remaining = {n: len(self.nodes[n].depends_on) for n in self._order}
        queue = [n for n in self._order if remaining[n] == 0]
        order: List[str] = []
        while queue:
            current = queue.pop(0)
            order.append(current)
            for child in self.dependents[current]:
                remaining[child] -= 1
                if remaining[child] == 0:
                    queue.append(child)
        return order


def link_sequential(nodes: Iterable[NodeDefinition]) -> List[NodeDefinition]:
    """Chain an ordered node list so each node depends on its predecessor.

    Nodes that already declare dependencies are left untouched.
    """
    linked: List[NodeDefinition] = []
    previous: Optional[NodeDefinition] = None
    for node in nodes:
        if previous is not None and not node.depends_on:
            node = node.model_copy(update={"depends_on": [previous.id]})
        linked.append(node)
        previous = node
    return linked
