"""Three-tier distance resolution: cache, external routing, great-circle."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Protocol, Sequence

import httpx

from ...models.domain import DistanceMatrix, DistanceResolution, MobilityArea
from ..geospatial import area_distance_km
from .cache import DistanceCache

logger = logging.getLogger(__name__)

EXTERNAL_CACHE_SOURCE = "osrm"


class RoadDistanceClient(Protocol):
    def route_distance_km(self, origin: tuple[float, float], destination: tuple[float, float]) -> float: ...


class DistanceResolver:
    """Resolve a pair's distance and report which tier produced it."""

    def __init__(self, cache: DistanceCache, client: RoadDistanceClient | None = None) -> None:
        self.cache = cache
        self.client = client

    def _external(self, origin: MobilityArea, destination: MobilityArea) -> float | None:
        if self.client is None:
            return None
        try:
            distance = self.client.route_distance_km(
                (origin.latitude, origin.longitude),
                (destination.latitude, destination.longitude),
            )
        except (httpx.HTTPError, ConnectionError, ValueError, KeyError) as exc:
            logger.debug(f"External distance lookup failed for {origin.name} -> {destination.name}: {exc}")
            return None
        return distance if distance > 0 else None

    def resolve(self, origin: MobilityArea, destination: MobilityArea, region: str) -> DistanceResolution:
        direct = area_distance_km(origin, destination)

        cached = self.cache.get(origin.name, destination.name, region)
        if cached is not None:
            return DistanceResolution(origin.name, destination.name, cached.road_distance_km, direct, "cache")

        road = self._external(origin, destination)
        if road is not None:
            self.cache.put(origin.name, destination.name, region, road, EXTERNAL_CACHE_SOURCE)
            return DistanceResolution(origin.name, destination.name, road, direct, "external")

        return DistanceResolution(origin.name, destination.name, direct, direct, "great_circle")

    def resolve_all(
        self,
        areas: Sequence[MobilityArea],
        region: str,
        *,
        workers: int = 1,
    ) -> DistanceMatrix:
        """Resolve every ordered pair of distinct areas."""
        pairs = [(origin, destination) for origin in areas for destination in areas if origin.name != destination.name]
        matrix = DistanceMatrix()

        if workers > 1 and self.client is not None and len(pairs) > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                resolutions = list(executor.map(lambda pair: self.resolve(pair[0], pair[1], region), pairs))
        else:
            resolutions = [self.resolve(origin, destination, region) for origin, destination in pairs]

        for resolution in resolutions:
            matrix.set(resolution.origin, resolution.destination, resolution.distance_km, resolution.source)
        return matrix
