"""Scoped complete-graph construction."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Sequence

from ...models.domain import DemandMatrix, DistanceMatrix, Edge, Graph, MobilityArea, TransportRoute
from ..geospatial import nearest_area

ScopeStrategy = Literal["served_areas", "top_demand"]

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class NetworkScope:
    nodes: list[str]
    strategy: ScopeStrategy
    served_count: int


def served_areas(
    routes: Sequence[TransportRoute],
    areas: Sequence[MobilityArea],
    *,
    proximity_radius_m: float,
) -> list[str]:
    """Areas nearest to at least one existing stop, in first-seen order."""
    radius_km = proximity_radius_m / 1000.0
    matched: dict[str, None] = {}
    for route in routes:
        for stop in route.stops:
            if not stop.has_coordinates:
                continue
            area = nearest_area(stop.latitude, stop.longitude, areas, max_distance_km=radius_km)
            if area is not None:
                matched.setdefault(area, None)
    return list(matched)


def top_demand_areas(demand: DemandMatrix, areas: Sequence[MobilityArea], *, limit: int) -> list[str]:
    known = {area.name for area in areas}
    totals = [(origin, demand.outgoing_total(origin)) for origin in demand.origins() if origin in known]
    totals.sort(key=lambda item: (-item[1], item[0]))
    return [origin for origin, _ in totals[:limit]]


def select_scope(
    areas: Sequence[MobilityArea],
    demand: DemandMatrix,
    routes: Sequence[TransportRoute],
    *,
    proximity_radius_m: float,
    min_scoped_areas: int,
    fallback_top_n: int,
) -> NetworkScope:
    served = served_areas(routes, areas, proximity_radius_m=proximity_radius_m)
    if len(served) >= min_scoped_areas:
        return NetworkScope(nodes=served, strategy="served_areas", served_count=len(served))

    logger.info(f"Too few served areas ({len(served)}), scoping to top {fallback_top_n} areas by outgoing demand")
    nodes = top_demand_areas(demand, areas, limit=fallback_top_n)
    return NetworkScope(nodes=nodes, strategy="top_demand", served_count=len(served))


def build_complete_graph(nodes: Sequence[str], distances: DistanceMatrix, demand: DemandMatrix) -> Graph:
    """Directed edge for every ordered scoped pair with a positive distance.

    Zero-demand pairs are kept; sparsification happens in the filter step.
    """
    graph: Graph = {}
    for origin in nodes:
        row: dict[str, Edge] = {}
        for destination in nodes:
            if origin == destination:
                continue
            distance = distances.get(origin, destination)
            if distance is None or distance <= 0:
                continue
            row[destination] = Edge(distance_km=distance, mobility=demand.get(origin, destination))
        graph[origin] = row
    return graph


def edge_count(graph: Graph) -> int:
    return sum(len(row) for row in graph.values())


def graph_density(graph: Graph) -> float:
    nodes = len(graph)
    possible = nodes * (nodes - 1)
    return edge_count(graph) / possible if possible > 0 else 0.0
