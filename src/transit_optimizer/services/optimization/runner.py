"""Background execution of optimization runs."""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Optional

from ...config import settings
from ...data.region_repository import RegionRepository
from ...persistence.filesystem import FileStorage
from ...persistence.recommendations import RecommendationStore
from ...schemas.optimization import AlgorithmParams
from ..distance.cache import DistanceCache
from ..distance.osrm_client import OSRMClient
from ..distance.resolver import RoadDistanceClient
from .pipeline import OptimizationPipeline
from .session import OptimizationSession, SessionStore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class RunHandle:
    session_id: str
    future: Future


def _road_distance_client() -> Optional[RoadDistanceClient]:
    if not (settings.resolve_road_distances and settings.osrm_base_url):
        return None
    return OSRMClient()


class OptimizationRunner:
    """Owns the session registry and a worker pool for pipeline runs.

    ``start`` returns immediately; callers poll the session store.
    """

    def __init__(
        self,
        *,
        sessions: SessionStore | None = None,
        repository: RegionRepository | None = None,
        storage: FileStorage | None = None,
        recommendations: RecommendationStore | None = None,
        max_workers: int | None = None,
    ) -> None:
        self.sessions = sessions or SessionStore()
        self.repository = repository or RegionRepository()
        self.storage = storage or FileStorage()
        self.recommendations = recommendations or RecommendationStore(self.storage)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or settings.max_concurrent_runs,
            thread_name_prefix="optimization",
        )

    def start(
        self,
        region: str,
        algorithm_params: AlgorithmParams | dict[str, Any] | None = None,
        *,
        requested_by: str | None = None,
        persist: bool = True,
    ) -> RunHandle:
        if isinstance(algorithm_params, AlgorithmParams):
            params = algorithm_params.model_dump()
        else:
            params = dict(algorithm_params or {})
        session = self.sessions.create(region, params, requested_by=requested_by)
        logger.info(f"Queued optimization {session.session_id} for region {region}")
        future = self._executor.submit(self._run, session.session_id, persist)
        return RunHandle(session_id=session.session_id, future=future)

    def _run(self, session_id: str, persist: bool) -> Optional[OptimizationSession]:
        pipeline = OptimizationPipeline(
            self.sessions,
            repository=self.repository,
            recommendations=self.recommendations,
            storage=self.storage,
            cache=DistanceCache(settings.distance_cache_file),
            client=_road_distance_client(),
        )
        try:
            return pipeline.run(session_id, persist=persist)
        except KeyError:
            logger.warning(f"Session {session_id} was deleted while running")
            # A save can land after the delete request; drop it with the session.
            self.recommendations.delete(session_id)
            return None

    def delete(self, session_id: str) -> bool:
        removed = self.sessions.delete(session_id)
        self.recommendations.delete(session_id)
        return removed

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


@lru_cache()
def get_runner() -> OptimizationRunner:
    return OptimizationRunner()
