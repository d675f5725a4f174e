"""
Structural cycle detection over the output -> input edge relation.

The detector has no opinion on policy; GraphReducer decides what a detected
cycle means under the configured CircularBehavior.
"""
from typing import Dict, List, Optional

from .GraphPrimitives import Graph, downstream_node_ids


def find_path(graph: Graph, start_id: str, goal_id: str) -> Optional[List[str]]:
    """Node ids of a path start -> goal following output edges, or None."""
    if start_id == goal_id:
        return [start_id]
    if start_id not in graph:
        return None

    parents: Dict[str, Optional[str]] = {start_id: None}
    stack = [start_id]
    while stack:
        current = stack.pop()
        for next_id in downstream_node_ids(graph, current):
            if next_id in parents:
                continue
            parents[next_id] = current
            if next_id == goal_id:
                path = [next_id]
                while parents[path[-1]] is not None:
                    path.append(parents[path[-1]])
                path.reverse()
                return path
            stack.append(next_id)
    return None


def find_cycle_path(graph: Graph, from_node_id: str, to_node_id: str) -> Optional[List[str]]:
    """
    The cycle that a new from -> to edge would close, as
    ``[from, to, ..., from]``, or None when the edge is safe.
    A self connection yields ``[node, node]``.
    """
    if from_node_id == to_node_id:
        return [from_node_id, to_node_id]
    path = find_path(graph, to_node_id, from_node_id)
    if path is None:
        return None
    return [from_node_id] + path


def would_create_cycle(graph: Graph, from_node_id: str, to_node_id: str) -> bool:
    return find_cycle_path(graph, from_node_id, to_node_id) is not None


def find_cycles(graph: Graph) -> List[List[str]]:
    """One representative cycle per back edge found by an iterative DFS."""
    WHITE, GREY, BLACK = 0, 1, 2
    colour = {node_id: WHITE for node_id in graph}
    cycles: List[List[str]] = []

    for root in graph:
        if colour[root] != WHITE:
            continue
        trail: List[str] = []
        stack = [(root, iter(downstream_node_ids(graph, root)))]
        colour[root] = GREY
        trail.append(root)
        while stack:
            node_id, children = stack[-1]
            advanced = False
            for child in children:
                if child not in colour:
                    continue
                if colour[child] == GREY:
                    cycles.append(trail[trail.index(child):] + [child])
                elif colour[child] == WHITE:
                    colour[child] = GREY
                    trail.append(child)
                    stack.append((child, iter(downstream_node_ids(graph, child))))
                    advanced = True
                    break
            if not advanced:
                colour[node_id] = BLACK
                trail.pop()
                stack.pop()
    return cycles


def is_acyclic(graph: Graph) -> bool:
    return not find_cycles(graph)
