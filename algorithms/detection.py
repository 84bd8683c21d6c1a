"""
Deadlock Detection Algorithm for the Deadlock Prediction & Resolution Simulator.

Builds the wait-for graph from the current snapshot and looks for a cycle.
"""

from typing import Dict, Iterable, List, NamedTuple, Tuple

from models.process import identifier_key
from models.system_state import SystemState


class WaitForEdge(NamedTuple):
    """Process `waiting` is blocked on `resource`, currently held by `blocking`."""
    waiting: str
    blocking: str
    resource: str


def build_wait_for_graph(system_state: SystemState) -> List[WaitForEdge]:
    """
    Derive the wait-for edges from outstanding requests and current holders.

    For each running process with a request, one edge to every holder of the
    requested resource. Self-edges are excluded; a resource nobody holds
    contributes no edge.

    Args:
        system_state: Snapshot to read (never mutated)

    Returns:
        Edges in identifier order of (waiting, blocking)
    """
    edges = []

    for process in system_state.waiting_processes():
        resource = system_state.get_resource(process.requesting)
        for holder in sorted(resource.holders, key=identifier_key):
            if holder != process.pid:
                edges.append(WaitForEdge(process.pid, holder, resource.rid))

    return edges


def find_cycle(edges: Iterable[WaitForEdge], nodes: Iterable[str]) -> List[str]:
    """
    Depth-first search for a directed cycle in the wait-for graph.

    Uses an explicit stack instead of recursion. Keeps a global visited set
    and the set of nodes on the current path; reaching a node that is on the
    current path is a back-edge and closes a cycle. Nodes and successors are
    visited in identifier order, so the result is reproducible.

    Time Complexity: O(P + E)

    Args:
        edges: Wait-for edges
        nodes: Process ids to start searches from

    Returns:
        Process ids along the first cycle found, or [] if the graph is acyclic
    """
    adjacency: Dict[str, List[str]] = {node: [] for node in nodes}
    for edge in edges:
        adjacency.setdefault(edge.waiting, [])
        adjacency.setdefault(edge.blocking, [])
        if edge.blocking not in adjacency[edge.waiting]:
            adjacency[edge.waiting].append(edge.blocking)
    for successors in adjacency.values():
        successors.sort(key=identifier_key)

    visited = set()

    for start in sorted(adjacency, key=identifier_key):
        if start in visited:
            continue

        visited.add(start)
        path = [start]
        on_path = {start}
        stack = [iter(adjacency[start])]

        while stack:
            advanced = False
            for neighbor in stack[-1]:
                if neighbor in on_path:
                    # Back-edge
                    return path[path.index(neighbor):]
                if neighbor not in visited:
                    visited.add(neighbor)
                    path.append(neighbor)
                    on_path.add(neighbor)
                    stack.append(iter(adjacency[neighbor]))
                    advanced = True
                    break

            if not advanced:
                stack.pop()
                on_path.discard(path.pop())

    return []


def has_cycle(edges: Iterable[WaitForEdge], nodes: Iterable[str]) -> bool:
    """True if the wait-for graph contains at least one directed cycle."""
    return bool(find_cycle(edges, nodes))


def detect_deadlock(system_state: SystemState) -> Tuple[bool, List[WaitForEdge]]:
    """
    Detect deadlock as a cycle in the wait-for graph.

    Four Deadlock Conditions Manifested:
    - Mutual Exclusion: each resource instance has a single holder
    - Hold and Wait: a waiting process keeps everything it holds
    - No Preemption: only the resolver takes resources away
    - Circular Wait: a directed cycle of wait-for edges

    Read-only over the snapshot; calling it twice on the same state gives
    the same flag and the same edges.

    Args:
        system_state: Current snapshot

    Returns:
        Tuple of (deadlock_exists, wait-for edges)
    """
    edges = build_wait_for_graph(system_state)
    nodes = [p.pid for p in system_state.processes]
    return has_cycle(edges, nodes), edges
