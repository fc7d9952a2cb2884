from pathlib import Path
from typing import Iterable, Sequence

import pytest

from transit_optimizer.models.domain import Edge, Graph, MobilityArea

# Four areas on a one-degree grid; adjacent pairs are ~111 km apart and
# diagonals ~157 km.
GRID_AREAS = {
    "A": (0.0, 0.0),
    "B": (0.0, 1.0),
    "C": (1.0, 0.0),
    "D": (1.0, 1.0),
}

GRID_DEMAND = [
    ("A", "B", 10.0),
    ("B", "D", 8.0),
    ("A", "C", 1.0),
    ("C", "D", 2.0),
    ("D", "A", 0.5),
]


def write_csv(path: Path, headers: Sequence[str], rows: Iterable[Sequence[object]]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    lines = [",".join(headers)]
    lines.extend(",".join("" if value is None else str(value) for value in row) for row in rows)
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def write_region(
    regions_root: Path,
    name: str = "grid",
    *,
    areas: dict[str, tuple[float, float]] | None = None,
    demand: Sequence[tuple[str, str, float]] | None = None,
    routes: dict[str, Sequence[tuple[str, float | None, float | None]]] | None = None,
) -> Path:
    region_dir = regions_root / name
    areas = GRID_AREAS if areas is None else areas
    demand = GRID_DEMAND if demand is None else demand
    write_csv(
        region_dir / "mobility_areas.csv",
        ["AREA", "LATITUDE", "LONGITUDE"],
        [(area, lat, lon) for area, (lat, lon) in areas.items()],
    )
    write_csv(
        region_dir / "mobility_matrix" / "demand.csv",
        ["Origin", "Destination", "Mobility_Percentage"],
        demand,
    )
    for route_name, stops in (routes or {}).items():
        write_csv(region_dir / "transport" / f"{route_name}.csv", ["Stop Name", "latitude", "longitude"], stops)
    return region_dir


def area(name: str, lat: float, lon: float) -> MobilityArea:
    return MobilityArea(name=name, latitude=lat, longitude=lon)


def make_graph(edges: Iterable[tuple[str, str, float, float]], nodes: Iterable[str] = ()) -> Graph:
    graph: Graph = {node: {} for node in nodes}
    for origin, destination, distance, mobility in edges:
        graph.setdefault(origin, {})[destination] = Edge(distance_km=distance, mobility=mobility)
        graph.setdefault(destination, {})
    return graph


@pytest.fixture
def regions_root(tmp_path: Path) -> Path:
    root = tmp_path / "regions"
    root.mkdir()
    return root
