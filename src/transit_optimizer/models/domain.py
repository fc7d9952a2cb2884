"""Domain models for mobility areas, demand, graphs and optimized routes."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional

DistanceSource = Literal["cache", "external", "great_circle"]


@dataclass(slots=True, frozen=True)
class MobilityArea:
    """A demand node with its representative coordinates."""

    name: str
    latitude: float
    longitude: float


@dataclass(slots=True)
class TransportStop:
    name: str
    latitude: Optional[float]
    longitude: Optional[float]

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass(slots=True)
class TransportRoute:
    """An existing route as an ordered stop sequence."""

    name: str
    stops: List[TransportStop]


@dataclass(slots=True)
class DemandMatrix:
    """Directed origin -> destination demand percentages.

    Missing pairs mean no observed demand and read as 0.
    """

    values: Dict[str, Dict[str, float]] = field(default_factory=dict)

    def set(self, origin: str, destination: str, mobility: float) -> None:
        self.values.setdefault(origin, {})[destination] = mobility

    def get(self, origin: str, destination: str) -> float:
        return self.values.get(origin, {}).get(destination, 0.0)

    def origins(self) -> list[str]:
        return list(self.values)

    def outgoing_total(self, origin: str) -> float:
        return sum(self.values.get(origin, {}).values())

    def entry_count(self) -> int:
        return sum(len(row) for row in self.values.values())

    def merge(self, other: "DemandMatrix") -> None:
        for origin, row in other.values.items():
            for destination, mobility in row.items():
                self.set(origin, destination, mobility)


@dataclass(slots=True)
class DistanceMatrix:
    """Resolved origin -> destination distances for one run, in km."""

    values: Dict[str, Dict[str, float]] = field(default_factory=dict)
    sources: Dict[str, int] = field(default_factory=dict)

    def set(self, origin: str, destination: str, distance_km: float, source: str) -> None:
        self.values.setdefault(origin, {})[destination] = distance_km
        self.sources[source] = self.sources.get(source, 0) + 1

    def get(self, origin: str, destination: str) -> Optional[float]:
        return self.values.get(origin, {}).get(destination)

    def __contains__(self, pair: tuple[str, str]) -> bool:
        origin, destination = pair
        return destination in self.values.get(origin, {})


@dataclass(slots=True, frozen=True)
class DistanceResolution:
    origin: str
    destination: str
    distance_km: float
    direct_distance_km: float
    source: DistanceSource


@dataclass(slots=True)
class Edge:
    distance_km: float
    mobility: float
    weight: Optional[float] = None


Graph = Dict[str, Dict[str, Edge]]


@dataclass(slots=True)
class OptimizedRoute:
    """Shortest weighted path between two scoped areas.

    ``distance_km`` and ``mobility`` are sums over the path's edges, ``weight``
    is the transformed path cost.
    """

    from_area: str
    to_area: str
    distance_km: float
    mobility: float
    weight: float
    path: List[str]

    @property
    def efficiency(self) -> float:
        return self.mobility / self.distance_km if self.distance_km > 0 else 0.0


@dataclass(slots=True)
class NetworkMetrics:
    total_distance_km: float
    total_mobility: float
    network_efficiency: float
    connectivity_index: int


@dataclass(slots=True)
class Improvements:
    distance_reduction: float
    mobility_increase: float
    efficiency_gain: float
    connectivity_improvement: float


@dataclass(slots=True)
class PathWaypoint:
    area: str
    latitude: float
    longitude: float
    estimated_stops: List[str]


@dataclass(slots=True)
class Recommendation:
    session_id: str
    priority: int
    action_type: str
    recommendation_type: str
    from_area: str
    to_area: str
    distance_km: float
    mobility: float
    weight: float
    path: List[PathWaypoint]
    estimated_travel_time_min: int
    frequency: str
    efficiency_gain: float
    people_served: int
    impact_score: int
    estimated_cost: float
    difficulty: str
    timeframe: str
    roi: Optional[float] = None
    readiness_score: int = 0
    status: str = "proposed"
