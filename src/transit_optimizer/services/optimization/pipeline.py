"""Five-phase optimization pipeline driven through the session store."""

from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Optional

from ...config import settings
from ...data.region_repository import RegionRepository
from ...models.domain import (
    DemandMatrix,
    DistanceMatrix,
    Graph,
    MobilityArea,
    OptimizedRoute,
    Recommendation,
    TransportRoute,
)
from ...persistence.filesystem import FileStorage
from ...persistence.recommendations import RecommendationStore
from ...schemas.optimization import AlgorithmParams
from ..distance.cache import DistanceCache
from ..distance.resolver import DistanceResolver, RoadDistanceClient
from ..outputs.formatter import optimized_routes_to_csv, recommendations_to_csv, session_summary_to_json
from .filtering import FilterResult, adaptive_threshold, filter_graph
from .metrics import analyze_existing_network, analyze_optimized_network, compute_improvements
from .network import NetworkScope, build_complete_graph, edge_count, graph_density, select_scope
from .recommendations import build_recommendations
from .session import OptimizationSession, SessionStore
from .shortest_paths import all_pairs_routes, transform_weights

logger = logging.getLogger(__name__)

MATRIX_CACHE_SOURCE = "matrix"


@dataclass(slots=True)
class RunContext:
    """Intermediate values handed from one phase to the next."""

    session_id: str
    region: str
    params: AlgorithmParams
    areas: list[MobilityArea] = field(default_factory=list)
    demand: DemandMatrix = field(default_factory=DemandMatrix)
    routes: list[TransportRoute] = field(default_factory=list)
    distances: DistanceMatrix = field(default_factory=DistanceMatrix)
    scope: Optional[NetworkScope] = None
    graph: Graph = field(default_factory=dict)
    filtered: Optional[FilterResult] = None
    optimized_routes: list[OptimizedRoute] = field(default_factory=list)
    recommendations: list[Recommendation] = field(default_factory=list)
    results: dict[str, Any] = field(default_factory=dict)


class OptimizationPipeline:
    def __init__(
        self,
        sessions: SessionStore,
        *,
        repository: RegionRepository | None = None,
        recommendations: RecommendationStore | None = None,
        storage: FileStorage | None = None,
        cache: DistanceCache | None = None,
        client: RoadDistanceClient | None = None,
        distance_workers: int | None = None,
        dijkstra_workers: int | None = None,
    ) -> None:
        self.sessions = sessions
        self.repository = repository or RegionRepository()
        self.storage = storage or FileStorage()
        self.recommendations = recommendations or RecommendationStore(self.storage)
        self.cache = cache or DistanceCache()
        self.resolver = DistanceResolver(self.cache, client)
        self.distance_workers = distance_workers or settings.distance_workers
        self.dijkstra_workers = dijkstra_workers or settings.dijkstra_workers

    def run(self, session_id: str, *, persist: bool = True) -> OptimizationSession:
        """Execute every phase for a pending session and return the final snapshot.

        Failures are recorded on the session, never raised.
        """
        session = self.sessions.mutate(session_id, lambda draft: draft.start())
        context = RunContext(
            session_id=session_id,
            region=session.region,
            params=AlgorithmParams(),
        )
        phases: list[tuple[str, Callable[[RunContext], dict[str, Any]]]] = [
            ("data_preparation", self._prepare_data),
            ("network_construction", self._construct_network),
            ("distance_filtering", self._filter_distances),
            ("mobility_optimization", self._optimize_mobility),
            ("results_generation", self._generate_results),
        ]

        started = time.perf_counter()
        for name, step in phases:
            self.sessions.mutate(session_id, lambda draft: draft.begin_phase(name))
            phase_started = time.perf_counter()
            try:
                metrics = step(context)
            except Exception as exc:
                logger.exception(f"Phase {name} failed for session {session_id}")
                return self._fail(session_id, str(exc), phase=name)
            logger.info(f"Phase {name} completed for {session_id} in {time.perf_counter() - phase_started:.2f}s")
            self.sessions.mutate(session_id, lambda draft: draft.complete_phase(name, metrics))

        final = self.sessions.mutate(session_id, lambda draft: draft.complete(context.results))
        logger.info(f"Optimization {session_id} for {context.region} completed in {time.perf_counter() - started:.2f}s")

        if persist:
            self._write_artifacts(final, context)
        return final

    def _fail(self, session_id: str, message: str, *, phase: str) -> OptimizationSession:
        failed = self.sessions.mutate(session_id, lambda draft: draft.fail(message, phase=phase))
        try:
            self.recommendations.delete(session_id)
        except Exception as e:
            logger.warning(f"Failed to remove recommendations for failed session {session_id}: {e}")
        return failed

    def _prepare_data(self, context: RunContext) -> dict[str, Any]:
        session = self.sessions.get(context.session_id)
        context.params = AlgorithmParams.model_validate(session.algorithm_params if session else {})
        region = context.region

        context.areas = self.repository.load_mobility_areas(region)
        context.demand = self.repository.load_demand_matrix(region, context.params.mobility_matrix_file)
        context.routes = self.repository.load_transport_routes(region)
        seeded = self._seed_cache(region)

        context.distances = self.resolver.resolve_all(context.areas, region, workers=self.distance_workers)
        self.cache.flush()
        sources = context.distances.sources

        logger.info(
            f"Loaded {len(context.areas)} areas, {context.demand.entry_count()} demand entries and "
            f"{len(context.routes)} existing routes for {region}"
        )
        return {
            "mobility_nodes_count": len(context.areas),
            "demand_origins": len(context.demand.origins()),
            "demand_entries": context.demand.entry_count(),
            "existing_routes": len(context.routes),
            "seeded_distances": seeded,
            "cached_distances": sources.get("cache", 0),
            "external_distances": sources.get("external", 0),
            "great_circle_distances": sources.get("great_circle", 0),
        }

    def _seed_cache(self, region: str) -> int:
        """Load the region's road-distance matrix into the cache, both directions."""
        matrix = self.repository.load_road_distances(region)
        seeded = 0
        for origin, row in matrix.items():
            for destination, distance in row.items():
                self.cache.put(origin, destination, region, distance, MATRIX_CACHE_SOURCE, persist=False)
                seeded += 1
                if destination not in matrix or origin not in matrix[destination]:
                    self.cache.put(destination, origin, region, distance, MATRIX_CACHE_SOURCE, persist=False)
                    seeded += 1
        return seeded

    def _construct_network(self, context: RunContext) -> dict[str, Any]:
        context.scope = select_scope(
            context.areas,
            context.demand,
            context.routes,
            proximity_radius_m=context.params.proximity_radius_m,
            min_scoped_areas=settings.min_scoped_areas,
            fallback_top_n=settings.fallback_top_n,
        )
        if not context.scope.nodes:
            logger.warning(f"Network scope for {context.region} is empty")
        context.graph = build_complete_graph(context.scope.nodes, context.distances, context.demand)
        return {
            "total_edges": edge_count(context.graph),
            "connected_nodes": len(context.graph),
            "graph_density": round(graph_density(context.graph), 4),
            "scope_strategy": context.scope.strategy,
            "served_areas": context.scope.served_count,
        }

    def _filter_distances(self, context: RunContext) -> dict[str, Any]:
        threshold = context.params.distance_threshold_km
        if threshold is None:
            threshold = adaptive_threshold(context.graph)
        if threshold is None:
            threshold = settings.default_distance_threshold_km
        context.filtered = filter_graph(context.graph, threshold)

        result = context.filtered
        if result.isolated_nodes:
            logger.warning(f"{len(result.isolated_nodes)} nodes isolated by threshold {threshold:.2f} km")
        logger.info(f"Distance threshold {threshold:.2f} km kept {result.edges_after}/{result.edges_before} edges")
        return {
            "calculated_threshold": round(threshold, 3),
            "edges_before": result.edges_before,
            "edges_after": result.edges_after,
            "reduction_percentage": round(result.reduction_percentage, 2),
            "isolated_nodes": result.isolated_nodes,
        }

    def _optimize_mobility(self, context: RunContext) -> dict[str, Any]:
        graph = context.filtered.graph
        peak = transform_weights(graph, context.params.mobility_constant)
        context.optimized_routes = all_pairs_routes(graph, workers=self.dijkstra_workers)

        routes = context.optimized_routes
        average_length = sum(len(route.path) for route in routes) / len(routes) if routes else 0.0
        logger.info(f"Computed {len(routes)} shortest paths (max mobility {peak:.3f})")
        return {
            "max_mobility": peak,
            "paths_calculated": len(routes),
            "average_path_length": round(average_length, 2),
        }

    def _generate_results(self, context: RunContext) -> dict[str, Any]:
        params = context.params
        original = analyze_existing_network(
            context.routes,
            context.areas,
            context.demand,
            proximity_radius_m=params.proximity_radius_m,
        )
        optimized = analyze_optimized_network(
            context.optimized_routes,
            mobility_cutoff=settings.meaningful_mobility_cutoff,
        )
        improvements = compute_improvements(original, optimized)

        context.recommendations = build_recommendations(
            context.session_id,
            context.optimized_routes,
            context.areas,
            filters=params.recommendation_filters,
            cost_per_km=params.cost_per_km,
        )
        self.recommendations.save(context.session_id, context.recommendations)

        context.results = {
            "original_network": asdict(original),
            "optimized_network": asdict(optimized),
            "improvements": asdict(improvements),
            "optimized_routes": [asdict(route) for route in context.optimized_routes],
        }
        return {
            "recommendations_count": len(context.recommendations),
            "total_distance_improvement": round(improvements.distance_reduction, 2),
            "mobility_improvement_percentage": round(improvements.mobility_increase, 2),
        }

    def _write_artifacts(self, session: OptimizationSession, context: RunContext) -> None:
        try:
            run_dir = self.storage.make_run_directory(prefix=f"optimization_{context.region}")
            self.storage.write_json(run_dir / "summary.json", session_summary_to_json(session, context.recommendations))
            self.storage.write_csv(run_dir / "optimized_routes.csv", optimized_routes_to_csv(context.optimized_routes))
            self.storage.write_csv(run_dir / "recommendations.csv", recommendations_to_csv(context.recommendations))
        except OSError as exc:
            logger.warning(f"Failed to write optimization artifacts for {session.session_id}: {exc}")
