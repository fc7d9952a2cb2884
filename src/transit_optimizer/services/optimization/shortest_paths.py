"""Mobility weight transform and all-pairs Dijkstra."""

from __future__ import annotations

import heapq
import math
from concurrent.futures import ThreadPoolExecutor
from typing import Optional, Sequence

from ...models.domain import Graph, OptimizedRoute


def max_mobility(graph: Graph) -> float:
    return max((edge.mobility for row in graph.values() for edge in row.values()), default=0.0)


def transform_weights(graph: Graph, mobility_constant: float) -> float:
    """Set ``weight = max_mobility - mobility + c`` on every edge.

    High-demand edges become cheap, so minimising path weight favours demand.
    Returns the maximum mobility used.
    """
    if mobility_constant <= 0:
        raise ValueError("mobility_constant must be > 0")
    peak = max_mobility(graph)
    for row in graph.values():
        for edge in row.values():
            edge.weight = peak - edge.mobility + mobility_constant
    return peak


def dijkstra(graph: Graph, source: str) -> tuple[dict[str, float], dict[str, Optional[str]]]:
    distances = {node: math.inf for node in graph}
    previous: dict[str, Optional[str]] = {node: None for node in graph}
    distances[source] = 0.0
    heap: list[tuple[float, str]] = [(0.0, source)]
    visited: set[str] = set()

    while heap:
        current_distance, node = heapq.heappop(heap)
        if node in visited:
            continue
        visited.add(node)
        for neighbor, edge in graph.get(node, {}).items():
            if neighbor in visited:
                continue
            if edge.weight is None:
                raise ValueError(f"Edge {node} -> {neighbor} has no weight; run transform_weights first")
            candidate = current_distance + edge.weight
            if candidate < distances.get(neighbor, math.inf):
                distances[neighbor] = candidate
                previous[neighbor] = node
                heapq.heappush(heap, (candidate, neighbor))
    return distances, previous


def reconstruct_path(previous: dict[str, Optional[str]], target: str) -> list[str]:
    path: list[str] = []
    current: Optional[str] = target
    while current is not None:
        path.append(current)
        current = previous.get(current)
    path.reverse()
    return path


def path_totals(graph: Graph, path: Sequence[str]) -> tuple[float, float]:
    """Sum the original distance and mobility over consecutive path edges."""
    distance = 0.0
    mobility = 0.0
    for origin, destination in zip(path, path[1:]):
        edge = graph[origin][destination]
        distance += edge.distance_km
        mobility += edge.mobility
    return distance, mobility


def routes_from_source(graph: Graph, source: str) -> list[OptimizedRoute]:
    distances, previous = dijkstra(graph, source)
    routes: list[OptimizedRoute] = []
    for target in graph:
        if target == source or math.isinf(distances[target]):
            continue
        path = reconstruct_path(previous, target)
        distance_km, mobility = path_totals(graph, path)
        routes.append(
            OptimizedRoute(
                from_area=source,
                to_area=target,
                distance_km=distance_km,
                mobility=mobility,
                weight=distances[target],
                path=path,
            )
        )
    return routes


def all_pairs_routes(graph: Graph, *, workers: int = 1) -> list[OptimizedRoute]:
    """Shortest weighted route for every reachable ordered pair.

    Each source is independent; with ``workers > 1`` sources run in a thread
    pool. Output order is source order, then destination order.
    """
    sources = list(graph)
    if workers > 1 and len(sources) > 1:
        with ThreadPoolExecutor(max_workers=workers) as executor:
            per_source = list(executor.map(lambda source: routes_from_source(graph, source), sources))
    else:
        per_source = [routes_from_source(graph, source) for source in sources]
    return [route for routes in per_source for route in routes]
