from __future__ import annotations

import heapq
from collections.abc import Hashable
from dataclasses import dataclass
from typing import Any

# node -> ((next node, edge cost, edge payload), ...)
Adjacency = dict[Hashable, list[tuple[Hashable, float, Any]]]


@dataclass(frozen=True)
class PathResult:
    nodes: tuple[Hashable, ...]
    edges: tuple[Any, ...]
    cost: float


class PathNotFoundError(ValueError):
    pass


def dijkstra_shortest_path(
    *,
    adjacency: Adjacency,
    start: Hashable,
    goal: Hashable,
    stop_at_goal: bool = True,
    explored_counter: list[int] | None = None,
) -> PathResult:
    """Heap based single-source search from ``start`` to ``goal``.

    Relaxation is strict (``<``), so among equal-cost paths the first one
    discovered is kept. With ``stop_at_goal=False`` the search runs until the
    heap is empty and re-opens nodes whose cost improves, which keeps the
    result optimal on acyclic graphs that carry negative edge weights.
    """
    best_cost: dict[Hashable, float] = {start: 0.0}
    came_from: dict[Hashable, tuple[Hashable, Any]] = {}
    counter = 0
    heap: list[tuple[float, int, Hashable]] = [(0.0, counter, start)]
    while heap:
        cost, _seq, node = heapq.heappop(heap)
        if cost > best_cost.get(node, cost):
            continue
        if explored_counter is not None:
            explored_counter[0] += 1
        if stop_at_goal and node == goal:
            break
        for nxt, edge_cost, payload in adjacency.get(node, ()):
            new_cost = cost + float(edge_cost)
            prev_best = best_cost.get(nxt)
            if prev_best is not None and new_cost >= prev_best:
                continue
            best_cost[nxt] = new_cost
            came_from[nxt] = (node, payload)
            counter += 1
            heapq.heappush(heap, (new_cost, counter, nxt))

    if goal not in best_cost:
        raise PathNotFoundError("no path")
    nodes: list[Hashable] = [goal]
    edges: list[Any] = []
    cursor = goal
    while cursor != start:
        prev, payload = came_from[cursor]
        nodes.append(prev)
        edges.append(payload)
        cursor = prev
    nodes.reverse()
    edges.reverse()
    return PathResult(nodes=tuple(nodes), edges=tuple(edges), cost=best_cost[goal])
