import json
from pathlib import Path

import httpx
import pytest

from conftest import area
from transit_optimizer.services.distance.cache import DistanceCache
from transit_optimizer.services.distance.osrm_client import OSRMClient
from transit_optimizer.services.distance.resolver import DistanceResolver
from transit_optimizer.services.geospatial import haversine_km, nearest_area

A = area("A", 0.0, 0.0)
B = area("B", 0.0, 1.0)


class DummyRoadClient:
    def __init__(self, distance: float = 150.0) -> None:
        self.distance = distance
        self.calls = 0

    def route_distance_km(self, origin, destination):
        self.calls += 1
        return self.distance


class FailingRoadClient:
    def route_distance_km(self, origin, destination):
        raise httpx.ConnectError("routing service unavailable")


def test_haversine_one_degree_at_equator() -> None:
    assert haversine_km(0.0, 0.0, 0.0, 1.0) == pytest.approx(111.19, abs=0.01)


def test_nearest_area_respects_radius() -> None:
    areas = [A, B]
    assert nearest_area(0.001, 0.001, areas, max_distance_km=2.0) == "A"
    assert nearest_area(0.0, 0.5, areas, max_distance_km=2.0) is None


def test_cache_tier_wins_and_is_tagged() -> None:
    cache = DistanceCache()
    cache.put(" A ", "B", "grid", 130.0, "matrix", persist=False)
    resolver = DistanceResolver(cache, DummyRoadClient())

    resolution = resolver.resolve(A, B, "grid")
    assert resolution.source == "cache"
    assert resolution.distance_km == 130.0
    assert resolution.direct_distance_km == pytest.approx(111.19, abs=0.01)
    assert resolver.client.calls == 0


def test_external_tier_populates_cache_so_second_lookup_hits() -> None:
    cache = DistanceCache()
    client = DummyRoadClient(distance=150.0)
    resolver = DistanceResolver(cache, client)

    first = resolver.resolve(A, B, "grid")
    second = resolver.resolve(A, B, "grid")

    assert first.source == "external"
    assert second.source == "cache"
    assert first.distance_km == second.distance_km == 150.0
    assert client.calls == 1
    assert cache.get("A", "B", "grid").source == "osrm"


def test_failed_external_lookup_degrades_to_great_circle() -> None:
    cache = DistanceCache()
    resolver = DistanceResolver(cache, FailingRoadClient())

    resolution = resolver.resolve(A, B, "grid")
    assert resolution.source == "great_circle"
    assert resolution.distance_km == resolution.direct_distance_km
    assert cache.snapshot()["size"] == 0


def test_resolve_all_covers_every_ordered_pair() -> None:
    areas = [A, B, area("C", 1.0, 0.0)]
    matrix = DistanceResolver(DistanceCache()).resolve_all(areas, "grid")
    for origin in areas:
        for destination in areas:
            if origin.name != destination.name:
                assert (origin.name, destination.name) in matrix
    assert matrix.sources == {"great_circle": 6}


def test_resolve_all_in_thread_pool_matches_sequential() -> None:
    areas = [A, B, area("C", 1.0, 0.0), area("D", 1.0, 1.0)]
    parallel = DistanceResolver(DistanceCache(), DummyRoadClient(42.0)).resolve_all(areas, "grid", workers=4)
    assert parallel.sources == {"external": 12}
    assert parallel.get("D", "A") == 42.0


def test_flush_merges_with_entries_written_by_other_runs(tmp_path: Path) -> None:
    path = tmp_path / "cache" / "road_distances.json"
    first = DistanceCache(path)
    second = DistanceCache(path)

    first.put("A", "B", "grid", 100.0, "osrm")
    first.put("A", "C", "grid", 90.0, "matrix", persist=False)
    assert first.flush() == 1

    second.put("B", "A", "grid", 101.0, "osrm")
    assert second.flush() == 1
    assert second.flush() == 0

    payload = json.loads(path.read_text(encoding="utf-8"))
    stored = {(entry["origin"], entry["destination"]) for entry in payload["entries"]}
    assert stored == {("A", "B"), ("B", "A")}

    reloaded = DistanceCache(path)
    assert reloaded.get("A", "B", "grid").road_distance_km == 100.0
    assert reloaded.get("A", "C", "grid") is None
    assert len(reloaded.entries_for_region("grid")) == 2


def test_cache_ignores_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "road_distances.json"
    path.write_text("{not json", encoding="utf-8")
    assert DistanceCache(path).snapshot()["size"] == 0


def test_osrm_client_reads_route_distance(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["overview"] = request.url.params.get("overview")
        return httpx.Response(200, json={"code": "Ok", "routes": [{"distance": 12345.0}]})

    client = OSRMClient(base_url="http://osrm.test/", max_retries=0)
    monkeypatch.setattr(client, "_get_client", lambda: httpx.Client(transport=httpx.MockTransport(handler)))

    assert client.route_distance_km((21.5, 39.1), (21.6, 39.2)) == pytest.approx(12.345)
    assert captured["path"] == "/route/v1/driving/39.1,21.5;39.2,21.6"
    assert captured["overview"] == "false"


def test_osrm_client_requires_base_url(monkeypatch: pytest.MonkeyPatch) -> None:
    from transit_optimizer.services.distance import osrm_client

    monkeypatch.setattr(osrm_client.settings, "osrm_base_url", None)
    with pytest.raises(ValueError):
        OSRMClient()
