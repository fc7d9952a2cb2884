"""Before/after network metrics."""

from __future__ import annotations

from typing import Sequence

from ...models.domain import (
    DemandMatrix,
    Improvements,
    MobilityArea,
    NetworkMetrics,
    OptimizedRoute,
    TransportRoute,
)
from ..geospatial import haversine_km, nearest_area


def _efficiency(total_mobility: float, total_distance: float) -> float:
    return total_mobility / total_distance if total_distance > 0 else 0.0


def _metrics(total_distance: float, total_mobility: float, route_count: int) -> NetworkMetrics:
    return NetworkMetrics(
        total_distance_km=round(total_distance, 2),
        total_mobility=round(total_mobility, 2),
        network_efficiency=round(_efficiency(total_mobility, total_distance), 4),
        connectivity_index=route_count,
    )


def analyze_existing_network(
    routes: Sequence[TransportRoute],
    areas: Sequence[MobilityArea],
    demand: DemandMatrix,
    *,
    proximity_radius_m: float,
) -> NetworkMetrics:
    """Great-circle length of existing routes and the demand their legs serve.

    Each stop is approximated by its nearest mobility area; legs whose stops
    match no area add distance but no mobility.
    """
    radius_km = proximity_radius_m / 1000.0
    total_distance = 0.0
    total_mobility = 0.0
    route_count = 0

    for route in routes:
        if len(route.stops) < 2:
            continue
        route_count += 1
        for stop, next_stop in zip(route.stops, route.stops[1:]):
            if not (stop.has_coordinates and next_stop.has_coordinates):
                continue
            total_distance += haversine_km(stop.latitude, stop.longitude, next_stop.latitude, next_stop.longitude)
            from_area = nearest_area(stop.latitude, stop.longitude, areas, max_distance_km=radius_km)
            to_area = nearest_area(next_stop.latitude, next_stop.longitude, areas, max_distance_km=radius_km)
            if from_area and to_area:
                total_mobility += demand.get(from_area, to_area)

    return _metrics(total_distance, total_mobility, route_count)


def analyze_optimized_network(routes: Sequence[OptimizedRoute], *, mobility_cutoff: float) -> NetworkMetrics:
    meaningful = [route for route in routes if route.mobility > mobility_cutoff]
    total_distance = sum(route.distance_km for route in meaningful)
    total_mobility = sum(route.mobility for route in meaningful)
    return _metrics(total_distance, total_mobility, len(meaningful))


def percent_change(new: float, base: float) -> float:
    return (new - base) / base * 100 if base > 0 else 0.0


def compute_improvements(original: NetworkMetrics, optimized: NetworkMetrics) -> Improvements:
    distance_reduction = (
        (original.total_distance_km - optimized.total_distance_km) / original.total_distance_km * 100
        if original.total_distance_km > 0
        else 0.0
    )
    return Improvements(
        distance_reduction=distance_reduction,
        mobility_increase=percent_change(optimized.total_mobility, original.total_mobility),
        efficiency_gain=percent_change(optimized.network_efficiency, original.network_efficiency),
        connectivity_improvement=percent_change(optimized.connectivity_index, original.connectivity_index),
    )
