"""Write-once recommendation store backed by JSON files."""

from __future__ import annotations

import logging
from dataclasses import asdict
from pathlib import Path
from threading import Lock
from typing import Sequence

from ..models.domain import PathWaypoint, Recommendation
from .database import delete_recommendations_from_database, save_recommendations_to_database
from .filesystem import FileStorage

logger = logging.getLogger(__name__)


class RecommendationStore:
    def __init__(self, storage: FileStorage | None = None, *, mirror_to_database: bool = True) -> None:
        self.storage = storage or FileStorage()
        self.directory = self.storage.output_root / "recommendations"
        self.directory.mkdir(parents=True, exist_ok=True)
        self.mirror_to_database = mirror_to_database
        self._lock = Lock()

    def _path(self, session_id: str) -> Path:
        return self.directory / f"{session_id}.json"

    def save(self, session_id: str, recommendations: Sequence[Recommendation]) -> None:
        with self._lock:
            path = self._path(session_id)
            if path.exists():
                raise FileExistsError(f"Recommendations already stored for session {session_id}")
            self.storage.write_json(path, [asdict(item) for item in recommendations])
        logger.info(f"Stored {len(recommendations)} recommendations for session {session_id}")
        if self.mirror_to_database:
            save_recommendations_to_database(recommendations)

    def get(self, session_id: str, *, recommendation_type: str | None = None) -> list[Recommendation]:
        """Recommendations in priority order.

        With ``recommendation_type`` only that type is returned, highest impact
        first.
        """
        path = self._path(session_id)
        if not path.exists():
            return []
        records = self.storage.read_json(path)
        recommendations = []
        for record in records:
            record["path"] = [PathWaypoint(**waypoint) for waypoint in record.get("path", [])]
            recommendations.append(Recommendation(**record))
        if recommendation_type:
            recommendations = [item for item in recommendations if item.recommendation_type == recommendation_type]
            recommendations.sort(key=lambda item: (-item.impact_score, item.priority))
        else:
            recommendations.sort(key=lambda item: item.priority)
        return recommendations

    def delete(self, session_id: str) -> bool:
        with self._lock:
            path = self._path(session_id)
            existed = path.exists()
            path.unlink(missing_ok=True)
        if self.mirror_to_database:
            delete_recommendations_from_database(session_id)
        return existed
