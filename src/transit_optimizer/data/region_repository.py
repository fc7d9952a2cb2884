"""File-store access for per-region optimizer inputs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from ..config import settings
from ..models.domain import DemandMatrix, MobilityArea, TransportRoute, TransportStop
from .demand_matrix import parse_demand_table
from .tables import coerce_float, find_table, list_tables, read_table

AREAS_STEM = "mobility_areas"
MATRIX_DIRNAME = "mobility_matrix"
TRANSPORT_DIRNAME = "transport"
TRAVEL_DISTANCE_STEM = "travel_distance"

logger = logging.getLogger(__name__)


def _first_value(row: dict, *keys: str):
    for key in keys:
        value = row.get(key)
        if value is not None and str(value).strip() != "":
            return value
    return None


class RegionRepository:
    """Reads mobility areas, demand matrices and existing routes for a region.

    Layout: ``<root>/<region>/mobility_areas.(csv|xlsx)``,
    ``<root>/<region>/mobility_matrix/*``, ``<root>/<region>/transport/*``
    and an optional ``<root>/<region>/travel_distance.csv``.
    """

    def __init__(self, root: Path | None = None) -> None:
        self.root = (root or settings.regions_root).resolve()

    def region_dir(self, region: str) -> Path:
        name = region.strip()
        if not name or "/" in name or "\\" in name or name in {".", ".."}:
            raise ValueError(f"Invalid region name '{region}'.")
        return self.root / name

    def list_regions(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(path.name for path in self.root.iterdir() if path.is_dir())

    def region_exists(self, region: str) -> bool:
        return self.region_dir(region).is_dir()

    def areas_file(self, region: str) -> Optional[Path]:
        return find_table(self.region_dir(region), AREAS_STEM)

    def matrix_files(self, region: str) -> list[Path]:
        return list_tables(self.region_dir(region) / MATRIX_DIRNAME)

    def transport_files(self, region: str) -> list[Path]:
        return list_tables(self.region_dir(region) / TRANSPORT_DIRNAME)

    def load_mobility_areas(self, region: str) -> list[MobilityArea]:
        path = self.areas_file(region)
        if path is None:
            raise FileNotFoundError(f"No mobility areas found for region: {region}")

        _, rows = read_table(path)
        areas: list[MobilityArea] = []
        seen: set[str] = set()
        for row in rows:
            name = _first_value(row, "AREA", "Area", "area")
            lat = coerce_float(_first_value(row, "LATITUDE", "Latitude", "latitude"))
            lon = coerce_float(_first_value(row, "LONGITUDE", "Longitude", "longitude"))
            if name is None or lat is None or lon is None:
                logger.debug(f"Skipping mobility area row without name or numeric coordinates: {row}")
                continue
            key = str(name).strip()
            if key in seen:
                continue
            seen.add(key)
            areas.append(MobilityArea(name=key, latitude=lat, longitude=lon))
        logger.info(f"Loaded {len(areas)} mobility areas for {region} from {path.name}")
        return areas

    def load_demand_matrix(self, region: str, matrix_file: str | None = None) -> DemandMatrix:
        files = self.matrix_files(region)
        if matrix_file:
            files = [path for path in files if path.name == matrix_file or path.stem == matrix_file]
            if not files:
                raise FileNotFoundError(f"Selected mobility matrix file not found: {matrix_file}")
        if not files:
            raise FileNotFoundError(f"No mobility matrix found for region: {region}")

        matrix = DemandMatrix()
        for path in files:
            headers, rows = read_table(path)
            parsed = parse_demand_table(headers, rows)
            logger.info(f"Parsed {parsed.entry_count()} demand entries from {path.name} ({len(rows)} rows)")
            matrix.merge(parsed)
        return matrix

    def load_transport_routes(self, region: str) -> list[TransportRoute]:
        routes: list[TransportRoute] = []
        for path in self.transport_files(region):
            _, rows = read_table(path)
            stops = [
                TransportStop(
                    name=str(_first_value(row, "Stop Name", "stop_name", "name") or "").strip(),
                    latitude=coerce_float(_first_value(row, "latitude", "Latitude", "LATITUDE")),
                    longitude=coerce_float(_first_value(row, "longitude", "Longitude", "LONGITUDE")),
                )
                for row in rows
            ]
            routes.append(TransportRoute(name=path.stem, stops=stops))
        return routes

    def load_road_distances(self, region: str) -> dict[str, dict[str, float]]:
        """Read the optional pivot road-distance matrix keyed by ``HOME_AREA``."""
        path = find_table(self.region_dir(region), TRAVEL_DISTANCE_STEM)
        if path is None:
            return {}
        headers, rows = read_table(path)
        origin_column = "HOME_AREA" if "HOME_AREA" in headers else headers[0]
        matrix: dict[str, dict[str, float]] = {}
        for row in rows:
            origin = str(row.get(origin_column) or "").strip()
            if not origin:
                continue
            for destination in headers:
                if destination == origin_column:
                    continue
                distance = coerce_float(row.get(destination))
                if distance is not None and distance > 0:
                    matrix.setdefault(origin, {})[destination] = distance
        logger.info(f"Loaded road-distance matrix for {region} with {len(matrix)} origins")
        return matrix

    def summary(self, region: str) -> dict:
        if not self.region_exists(region):
            raise FileNotFoundError(f"Unknown region: {region}")

        areas_path = self.areas_file(region)
        area_count = len(read_table(areas_path)[1]) if areas_path else 0
        matrix_entries = []
        for path in self.matrix_files(region):
            matrix_entries.append({"file_name": path.name, "record_count": len(read_table(path)[1])})
        routes = self.load_transport_routes(region)
        return {
            "region": region,
            "mobility_areas": {
                "available": areas_path is not None,
                "count": area_count,
                "file_name": areas_path.name if areas_path else None,
            },
            "mobility_matrix": {
                "available": bool(matrix_entries),
                "files_count": len(matrix_entries),
                "total_records": sum(entry["record_count"] for entry in matrix_entries),
                "files": matrix_entries,
            },
            "existing_routes": {
                "available": bool(routes),
                "routes_count": len(routes),
                "total_stops": sum(len(route.stops) for route in routes),
                "route_names": [route.name for route in routes],
            },
            "ready_for_optimization": areas_path is not None and bool(matrix_entries),
        }
