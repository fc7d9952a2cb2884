"""Distance-threshold sparsification of the complete graph."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ...models.domain import Edge, Graph
from .network import edge_count


@dataclass(slots=True)
class FilterResult:
    graph: Graph
    threshold_km: float
    edges_before: int
    edges_after: int
    isolated_nodes: list[str]

    @property
    def reduction_percentage(self) -> float:
        if self.edges_before == 0:
            return 0.0
        return (self.edges_before - self.edges_after) / self.edges_before * 100


def adaptive_threshold(graph: Graph) -> Optional[float]:
    """Largest per-node minimum outgoing distance, or None if no node has edges."""
    minimums = [min(edge.distance_km for edge in row.values()) for row in graph.values() if row]
    return max(minimums) if minimums else None


def filter_graph(graph: Graph, threshold_km: float) -> FilterResult:
    """Keep edges strictly shorter than the threshold.

    An edge exactly at the threshold is dropped, so a node whose only short
    edge equals the threshold ends up isolated.
    """
    filtered: Graph = {}
    for origin, row in graph.items():
        filtered[origin] = {
            destination: Edge(distance_km=edge.distance_km, mobility=edge.mobility)
            for destination, edge in row.items()
            if edge.distance_km < threshold_km
        }
    isolated = [node for node, row in filtered.items() if not row and graph.get(node)]
    return FilterResult(
        graph=filtered,
        threshold_km=threshold_km,
        edges_before=edge_count(graph),
        edges_after=edge_count(filtered),
        isolated_nodes=isolated,
    )
