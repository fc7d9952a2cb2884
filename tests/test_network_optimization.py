import pytest

from conftest import area, make_graph
from transit_optimizer.models.domain import DemandMatrix, DistanceMatrix, TransportRoute, TransportStop
from transit_optimizer.services.optimization.filtering import adaptive_threshold, filter_graph
from transit_optimizer.services.optimization.network import (
    build_complete_graph,
    edge_count,
    graph_density,
    select_scope,
    served_areas,
)
from transit_optimizer.services.optimization.shortest_paths import (
    all_pairs_routes,
    dijkstra,
    path_totals,
    transform_weights,
)


def _demand(entries) -> DemandMatrix:
    matrix = DemandMatrix()
    for origin, destination, value in entries:
        matrix.set(origin, destination, value)
    return matrix


def _scenario_graph():
    """A->B->D carries most demand; A->D is a direct but empty link."""
    return make_graph(
        [
            ("A", "B", 5.0, 10.0),
            ("B", "D", 5.0, 8.0),
            ("A", "D", 8.0, 0.0),
            ("A", "C", 4.0, 1.0),
            ("C", "D", 4.0, 2.0),
        ]
    )


def test_served_areas_match_stops_within_radius() -> None:
    areas = [area("A", 0.0, 0.0), area("B", 0.0, 1.0), area("C", 1.0, 0.0)]
    routes = [
        TransportRoute(
            name="Line 1",
            stops=[
                TransportStop("s1", 0.0, 1.001),
                TransportStop("s2", 0.001, 0.0),
                TransportStop("s3", None, None),
                TransportStop("s4", 0.5, 0.5),
            ],
        )
    ]
    assert served_areas(routes, areas, proximity_radius_m=2000) == ["B", "A"]


def test_scope_falls_back_to_top_demand_when_few_areas_are_served() -> None:
    areas = [area("A", 0.0, 0.0), area("B", 0.0, 1.0), area("C", 1.0, 0.0)]
    demand = _demand([("C", "A", 5.0), ("A", "B", 2.0), ("B", "A", 2.0), ("X", "A", 50.0)])

    scope = select_scope(
        areas,
        demand,
        [],
        proximity_radius_m=2000,
        min_scoped_areas=5,
        fallback_top_n=15,
    )

    assert scope.strategy == "top_demand"
    assert scope.served_count == 0
    assert scope.nodes == ["C", "A", "B"]


def test_complete_graph_keeps_zero_demand_and_skips_zero_distance() -> None:
    distances = DistanceMatrix()
    distances.set("A", "B", 10.0, "great_circle")
    distances.set("B", "A", 10.0, "great_circle")
    distances.set("A", "C", 0.0, "great_circle")
    demand = _demand([("A", "B", 3.0)])

    graph = build_complete_graph(["A", "B", "C"], distances, demand)

    assert graph["A"]["B"].mobility == 3.0
    assert graph["B"]["A"].mobility == 0.0
    assert "C" not in graph["A"]
    assert graph["C"] == {}
    assert edge_count(graph) == 2
    assert graph_density(graph) == pytest.approx(2 / 6)


def test_adaptive_threshold_is_max_of_per_node_minimum() -> None:
    graph = make_graph(
        [("A", "B", 2.0, 1.0), ("A", "C", 9.0, 1.0), ("B", "C", 3.0, 1.0), ("C", "A", 7.0, 1.0), ("C", "B", 8.0, 1.0)]
    )
    assert adaptive_threshold(graph) == 7.0
    assert adaptive_threshold(make_graph([], nodes=["A", "B"])) is None


def test_filter_uses_strict_inequality() -> None:
    graph = make_graph([("A", "B", 2.0, 1.0), ("B", "A", 5.0, 1.0), ("B", "C", 3.0, 1.0), ("C", "B", 3.0, 1.0)])
    threshold = adaptive_threshold(graph)
    assert threshold == 3.0

    result = filter_graph(graph, threshold)

    assert set(result.graph["A"]) == {"B"}
    assert result.graph["B"] == {}
    assert result.graph["C"] == {}
    assert sorted(result.isolated_nodes) == ["B", "C"]
    assert result.edges_before == 4
    assert result.edges_after == 1
    assert result.reduction_percentage == pytest.approx(75.0)


def test_filter_keeps_an_edge_for_every_node_below_threshold() -> None:
    graph = make_graph(
        [("A", "B", 2.0, 1.0), ("A", "C", 9.0, 1.0), ("B", "C", 3.0, 1.0), ("C", "A", 7.0, 1.0), ("C", "B", 8.0, 1.0)]
    )
    threshold = adaptive_threshold(graph) + 0.5

    result = filter_graph(graph, threshold)

    assert all(result.graph[node] for node in graph)
    assert graph["A"]["C"].weight is None
    assert result.graph["A"]["B"] is not graph["A"]["B"]


def test_weight_transform_keeps_every_weight_positive() -> None:
    graph = _scenario_graph()
    peak = transform_weights(graph, 0.1)

    assert peak == 10.0
    weights = [edge.weight for row in graph.values() for edge in row.values()]
    assert min(weights) == pytest.approx(0.1)
    assert all(weight > 0 for weight in weights)
    with pytest.raises(ValueError):
        transform_weights(graph, 0)


def test_dijkstra_prefers_high_demand_path_over_short_direct_link() -> None:
    graph = _scenario_graph()
    transform_weights(graph, 0.1)

    routes = {(route.from_area, route.to_area): route for route in all_pairs_routes(graph)}
    route = routes[("A", "D")]

    assert route.path == ["A", "B", "D"]
    assert route.weight == pytest.approx(2.2)
    assert route.mobility == pytest.approx(18.0)
    assert route.distance_km == pytest.approx(10.0)
    assert ("D", "A") not in routes


def test_route_totals_match_edge_sums() -> None:
    graph = _scenario_graph()
    transform_weights(graph, 0.1)

    for route in all_pairs_routes(graph):
        distance, mobility = path_totals(graph, route.path)
        weight = sum(graph[a][b].weight for a, b in zip(route.path, route.path[1:]))
        assert route.distance_km == pytest.approx(distance)
        assert route.mobility == pytest.approx(mobility)
        assert route.weight == pytest.approx(weight)
        assert route.path[0] == route.from_area
        assert route.path[-1] == route.to_area


def test_parallel_sources_give_identical_routes() -> None:
    graph = _scenario_graph()
    transform_weights(graph, 0.1)

    sequential = all_pairs_routes(graph)
    parallel = all_pairs_routes(graph, workers=4)

    assert [(r.from_area, r.to_area, r.path) for r in sequential] == [
        (r.from_area, r.to_area, r.path) for r in parallel
    ]


def test_dijkstra_requires_transformed_weights() -> None:
    with pytest.raises(ValueError):
        dijkstra(_scenario_graph(), "A")
