"""Dependency graph between divisions.

Keeps track of which divisions need their geometry recomputed (``DIRTY``)
and which only need to be drawn again (``NEEDS_RENDER``).  An edge
``A -> B`` means B's geometry expressions reference A, so invalidating A
must invalidate B as well.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import IntEnum
from typing import TYPE_CHECKING

from terminal_jumper.errors import ConfigurationError, JumperLookupError

if TYPE_CHECKING:
    from terminal_jumper.division import Division

logger = logging.getLogger(__name__)


class NodeStatus(IntEnum):
    """Render status, ordered by severity."""

    CLEAN = 0
    NEEDS_RENDER = 1
    DIRTY = 2


@dataclass(eq=False)
class GraphNode:
    division: Division
    order: int
    status: NodeStatus = NodeStatus.CLEAN
    dependents: dict[str, GraphNode] = field(default_factory=dict)
    depth: int | None = None
    parent: GraphNode | None = None

    @property
    def id(self) -> str:
        return self.division.id


class DependencyGraph:
    """Tracks invalidation state for every registered division."""

    def __init__(self) -> None:
        self._nodes: dict[str, GraphNode] = {}
        self._counter = 0

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    def __contains__(self, division_id: str) -> bool:
        return division_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def nodes(self) -> list[GraphNode]:
        return list(self._nodes.values())

    def get_node(self, division_id: str) -> GraphNode:
        node = self._nodes.get(division_id)
        if node is None:
            raise JumperLookupError(f'Unrecognized division "{division_id}".')
        return node

    def set_divisions(self, divisions: Iterable[Division]) -> None:
        """Make *divisions* the node set.

        Nodes of divisions that are kept retain their status and order;
        new divisions start out ``DIRTY``.
        """
        existing = self._nodes
        self._nodes = {}
        for division in divisions:
            node = existing.get(division.id)
            if node is None or node.division is not division:
                node = GraphNode(division, self._next_order(), NodeStatus.DIRTY)
            self._nodes[division.id] = node
        self.calculate_graph()

    def add_division(self, division: Division) -> GraphNode:
        if division.id in self._nodes:
            raise ConfigurationError(f'Division id "{division.id}" is already in use.')
        node = GraphNode(division, self._next_order(), NodeStatus.DIRTY)
        self._nodes[division.id] = node
        return node

    def remove_division(self, division_id: str) -> GraphNode:
        node = self.get_node(division_id)
        del self._nodes[division_id]
        for other in self._nodes.values():
            other.dependents.pop(division_id, None)
        return node

    def _next_order(self) -> int:
        self._counter += 1
        return self._counter

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def calculate_graph(self) -> None:
        """Rebuild every forward edge from the divisions' geometry options.

        Raises ``JumperLookupError`` for a reference to an unknown id and
        ``ConfigurationError`` when the references form a cycle.
        """
        for node in self._nodes.values():
            node.dependents.clear()

        for node in self._nodes.values():
            for ref in node.division.references():
                target = self._nodes.get(ref)
                if target is None:
                    raise JumperLookupError(
                        f'Division "{node.id}" references unknown division "{ref}".'
                    )
                if target is node:
                    raise ConfigurationError(
                        f'Division "{node.id}" references itself.'
                    )
                target.dependents[node.id] = node

        self._check_acyclic()

    def dependents_of(self, division_id: str) -> list[str]:
        return list(self.get_node(division_id).dependents)

    def _check_acyclic(self) -> None:
        # Anything Kahn's algorithm cannot order sits on a cycle
        ordered = {n.id for n in self.topological_order(self._nodes.values())}
        if len(ordered) != len(self._nodes):
            cyclic = sorted(set(self._nodes) - ordered)
            raise ConfigurationError(
                f"Divisions reference each other in a cycle: {', '.join(cyclic)}."
            )

    def topological_order(self, nodes: Iterable[GraphNode]) -> list[GraphNode]:
        """Order *nodes* so every node follows the nodes it references.

        Ties keep registration order.
        """
        subset = {node.id: node for node in nodes}
        indegree = {node_id: 0 for node_id in subset}
        for node in subset.values():
            for dep_id in node.dependents:
                if dep_id in indegree:
                    indegree[dep_id] += 1

        ready = sorted(
            (n for n in subset.values() if indegree[n.id] == 0),
            key=lambda n: n.order,
        )
        queue = deque(ready)
        result: list[GraphNode] = []
        while queue:
            node = queue.popleft()
            result.append(node)
            released = []
            for dep_id, dep in node.dependents.items():
                if dep_id not in indegree:
                    continue
                indegree[dep_id] -= 1
                if indegree[dep_id] == 0:
                    released.append(dep)
            queue.extend(sorted(released, key=lambda n: n.order))
        return result

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def set_dirty(self, division: Division | None = None) -> None:
        """Mark *division* and everything depending on it ``DIRTY``.

        Every newly dirtied division drops its cached geometry and records
        its last render rectangle for erasing.  Without a division the whole
        graph becomes dirty and nothing is queued for erasing.
        """
        if division is None:
            for node in self._nodes.values():
                node.division.invalidate(capture_erase=False)
                node.status = NodeStatus.DIRTY
            logger.debug("Marked all %d divisions dirty", len(self._nodes))
            return

        start = self.get_node(division.id)

        def mark(node: GraphNode, depth: int, parent: GraphNode | None) -> None:
            if node.status == NodeStatus.DIRTY:
                return
            node.division.invalidate(capture_erase=True)
            node.status = NodeStatus.DIRTY
            node.depth = depth
            node.parent = parent
            logger.debug("Division %r dirty (depth %d)", node.id, depth)

        self.traverse(start, mark)

    def set_needs_render(self, division: Division) -> None:
        """Mark only *division* ``NEEDS_RENDER`` unless it is already dirty."""
        node = self.get_node(division.id)
        if node.status < NodeStatus.NEEDS_RENDER:
            node.status = NodeStatus.NEEDS_RENDER

    def set_all_needs_render(self) -> None:
        for node in self._nodes.values():
            if node.status < NodeStatus.NEEDS_RENDER:
                node.status = NodeStatus.NEEDS_RENDER

    def status_of(self, division_id: str) -> NodeStatus:
        return self.get_node(division_id).status

    def has_pending(self) -> bool:
        return any(n.status != NodeStatus.CLEAN for n in self._nodes.values())

    def dirty_nodes(self) -> list[GraphNode]:
        """Dirty nodes, referenced divisions first."""
        dirty = [n for n in self._nodes.values() if n.status == NodeStatus.DIRTY]
        return self.topological_order(dirty)

    def needs_render_nodes(self) -> list[GraphNode]:
        """Nodes due for drawing, by ``render_order`` then registration."""
        pending = [n for n in self._nodes.values() if n.status != NodeStatus.CLEAN]
        return sorted(pending, key=lambda n: (n.division.render_order, n.order))

    def mark_recomputed(self, node: GraphNode) -> None:
        node.status = NodeStatus.NEEDS_RENDER

    def clear(self) -> None:
        """Reset every node to ``CLEAN`` after a render pass."""
        for node in self._nodes.values():
            node.status = NodeStatus.CLEAN
            node.depth = None
            node.parent = None

    # ------------------------------------------------------------------
    # Traversal
    # ------------------------------------------------------------------

    def traverse(
        self,
        start: GraphNode,
        callback: Callable[[GraphNode, int, GraphNode | None], None],
    ) -> None:
        """Breadth-first walk along forward edges, each node visited once."""
        seen = {start.id}
        queue: deque[tuple[GraphNode, int, GraphNode | None]] = deque(
            [(start, 0, None)]
        )
        while queue:
            node, depth, parent = queue.popleft()
            callback(node, depth, parent)
            for dep_id, dep in node.dependents.items():
                if dep_id not in seen:
                    seen.add(dep_id)
                    queue.append((dep, depth + 1, node))
