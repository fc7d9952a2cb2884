"""Ranking optimized routes into infrastructure recommendations."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from ...models.domain import MobilityArea, OptimizedRoute, PathWaypoint, Recommendation
from ...schemas.optimization import RecommendationFilters

MINIMUM_ROUTE_DISTANCE_KM = 1.0
MINUTES_PER_KM = 2
PEOPLE_PER_MOBILITY_POINT = 100
DIFFICULTY_READINESS = {"low": 20, "medium": 10, "high": -10}
TIMEFRAME_READINESS = {"immediate": 15, "short_term": 10, "medium_term": 5, "long_term": -5}

logger = logging.getLogger(__name__)


def rank_routes(routes: Sequence[OptimizedRoute], filters: RecommendationFilters) -> list[OptimizedRoute]:
    """Filter by demand, length and efficiency, then sort by efficiency descending."""
    eligible = [
        route
        for route in routes
        if route.mobility >= filters.min_mobility
        and MINIMUM_ROUTE_DISTANCE_KM < route.distance_km <= filters.max_distance_km
        and route.efficiency >= filters.min_efficiency
    ]
    eligible.sort(key=lambda route: route.efficiency, reverse=True)
    return eligible[: filters.max_recommendations]


def impact_score(route: OptimizedRoute) -> int:
    return min(100, round(route.efficiency * 10))


def recommendation_type(route: OptimizedRoute) -> str:
    efficiency = route.efficiency
    if efficiency > 2:
        return "high_impact"
    if efficiency > 1:
        return "cost_effective"
    if route.distance_km < 10:
        return "quick_win"
    return "long_term"


def difficulty(distance_km: float) -> str:
    if distance_km < 5:
        return "low"
    if distance_km < 20:
        return "medium"
    return "high"


def timeframe(distance_km: float) -> str:
    return {"low": "short_term", "medium": "medium_term", "high": "long_term"}[difficulty(distance_km)]


def frequency(mobility: float) -> str:
    if mobility > 10:
        return "every 10 mins"
    if mobility > 5:
        return "every 15 mins"
    if mobility > 2:
        return "every 30 mins"
    return "every 60 mins"


def roi(
    mobility_increase: float,
    people_served: int,
    estimated_cost: float,
    *,
    distance_saved_km: float = 0.0,
) -> Optional[float]:
    """Weighted benefit per unit of cost; None when the link costs nothing."""
    if estimated_cost <= 0:
        return None
    benefit = mobility_increase * 1000 + distance_saved_km * 100 + people_served * 10
    return round(benefit / estimated_cost, 4)


def readiness_score(
    difficulty_level: str,
    timeframe_bucket: str,
    *,
    prerequisites: int = 0,
    constraints: int = 0,
) -> int:
    score = 50 + DIFFICULTY_READINESS.get(difficulty_level, 0) + TIMEFRAME_READINESS.get(timeframe_bucket, 0)
    score -= prerequisites * 5 + constraints * 3
    return max(0, min(100, score))


def _waypoints(path: Sequence[str], areas: dict[str, MobilityArea]) -> list[PathWaypoint]:
    waypoints = []
    for name in path:
        area = areas.get(name)
        waypoints.append(
            PathWaypoint(
                area=name,
                latitude=area.latitude if area else 0.0,
                longitude=area.longitude if area else 0.0,
                estimated_stops=[f"{name} Terminal", f"{name} Center"],
            )
        )
    return waypoints


def build_recommendations(
    session_id: str,
    routes: Sequence[OptimizedRoute],
    areas: Sequence[MobilityArea],
    *,
    filters: RecommendationFilters,
    cost_per_km: float,
) -> list[Recommendation]:
    ranked = rank_routes(routes, filters)
    logger.info(f"Filtered to {len(ranked)} route recommendations out of {len(routes)} optimized routes")

    area_lookup = {area.name: area for area in areas}
    recommendations = []
    for priority, route in enumerate(ranked, start=1):
        people_served = round(route.mobility * PEOPLE_PER_MOBILITY_POINT)
        estimated_cost = round(route.distance_km * cost_per_km)
        level = difficulty(route.distance_km)
        bucket = timeframe(route.distance_km)
        recommendations.append(
            Recommendation(
                session_id=session_id,
                priority=priority,
                action_type="add",
                recommendation_type=recommendation_type(route),
                from_area=route.from_area,
                to_area=route.to_area,
                distance_km=route.distance_km,
                mobility=route.mobility,
                weight=route.weight,
                path=_waypoints(route.path, area_lookup),
                estimated_travel_time_min=round(route.distance_km * MINUTES_PER_KM),
                frequency=frequency(route.mobility),
                efficiency_gain=route.efficiency,
                people_served=people_served,
                impact_score=impact_score(route),
                estimated_cost=estimated_cost,
                difficulty=level,
                timeframe=bucket,
                # New links save no existing distance.
                roi=roi(route.mobility, people_served, estimated_cost),
                readiness_score=readiness_score(level, bucket),
            )
        )
    return recommendations
