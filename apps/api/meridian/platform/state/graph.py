from __future__ import annotations

from collections import defaultdict, deque
from collections.abc import Iterable
from dataclasses import dataclass

from meridian.platform.state.errors import CycleDetectedError


@dataclass(frozen=True, slots=True)
class NodeRef:
    entity_type: str
    entity_id: str

    def __str__(self) -> str:
        return f"{self.entity_type}:{self.entity_id}"


@dataclass(frozen=True, slots=True)
class DependencyEdgeRef:
    org_id: int
    from_node: NodeRef
    to_node: NodeRef


def build_adjacency(org_id: int, edges: Iterable[DependencyEdgeRef]) -> dict[NodeRef, set[NodeRef]]:
    adjacency: dict[NodeRef, set[NodeRef]] = defaultdict(set)
    for edge in edges:
        if edge.org_id != org_id:
            continue
        adjacency[edge.from_node].add(edge.to_node)
    return adjacency


def is_reachable(adjacency: dict[NodeRef, set[NodeRef]], start: NodeRef, target: NodeRef) -> bool:
    if start == target:
        return True
    visited: set[NodeRef] = {start}
    queue: deque[NodeRef] = deque([start])
    while queue:
        node = queue.popleft()
        for neighbour in adjacency.get(node, ()):
            if neighbour == target:
                return True
            if neighbour not in visited:
                visited.add(neighbour)
                queue.append(neighbour)
    return False


def would_create_cycle(
    org_id: int,
    from_node: NodeRef,
    to_node: NodeRef,
    edges: Iterable[DependencyEdgeRef],
) -> bool:
    """True when adding ``from_node -> to_node`` closes a loop in the org's graph.

    Adding the edge closes a loop iff ``from_node`` is already reachable from
    ``to_node``. Edges owned by other organizations are ignored.
    """
    return is_reachable(build_adjacency(org_id, edges), to_node, from_node)


def ensure_no_cycle(
    org_id: int,
    from_node: NodeRef,
    to_node: NodeRef,
    edges: Iterable[DependencyEdgeRef],
) -> None:
    if would_create_cycle(org_id, from_node, to_node, edges):
        raise CycleDetectedError(org_id=org_id, from_node=from_node, to_node=to_node)
