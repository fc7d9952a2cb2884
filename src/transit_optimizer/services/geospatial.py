"""Geospatial helper functions."""

from __future__ import annotations

import math
from typing import Iterable, Optional

from ..models.domain import MobilityArea

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Compute distance between two coordinates using the Haversine formula."""

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def area_distance_km(origin: MobilityArea, destination: MobilityArea) -> float:
    return haversine_km(origin.latitude, origin.longitude, destination.latitude, destination.longitude)


def nearest_area(
    lat: float,
    lon: float,
    areas: Iterable[MobilityArea],
    *,
    max_distance_km: float,
) -> Optional[str]:
    """Return the name of the closest area within ``max_distance_km`` of the point."""

    nearest: Optional[str] = None
    best = math.inf
    for area in areas:
        distance = haversine_km(lat, lon, area.latitude, area.longitude)
        if distance < best:
            best = distance
            nearest = area.name
    return nearest if best <= max_distance_km else None
