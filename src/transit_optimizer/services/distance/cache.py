"""Road-distance cache keyed by (origin, destination, region)."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from threading import Lock
from typing import Optional

logger = logging.getLogger(__name__)

CacheKey = tuple[str, str, str]


@dataclass(slots=True, frozen=True)
class CachedDistance:
    origin: str
    destination: str
    region: str
    road_distance_km: float
    source: str
    cached_at: str


def _key(origin: str, destination: str, region: str) -> CacheKey:
    return (origin.strip(), destination.strip(), region.strip())


class DistanceCache:
    """Thread-safe distance cache, optionally persisted to a JSON file.

    Entries added through :meth:`put` are tracked so that :meth:`flush` can
    overlay them onto whatever another run wrote in the meantime.
    """

    def __init__(self, path: Path | None = None) -> None:
        self.path = path
        self._lock = Lock()
        self._items: dict[CacheKey, CachedDistance] = {}
        self._pending: dict[CacheKey, CachedDistance] = {}
        self._hits = 0
        self._misses = 0
        if path is not None:
            self._items.update(self._read_file(path))

    @staticmethod
    def _read_file(path: Path) -> dict[CacheKey, CachedDistance]:
        if not path.exists():
            return {}
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning(f"Ignoring unreadable distance cache {path}: {exc}")
            return {}
        items: dict[CacheKey, CachedDistance] = {}
        for record in payload.get("entries", []):
            try:
                entry = CachedDistance(
                    origin=str(record["origin"]),
                    destination=str(record["destination"]),
                    region=str(record["region"]),
                    road_distance_km=float(record["road_distance_km"]),
                    source=str(record.get("source", "unknown")),
                    cached_at=str(record.get("cached_at", "")),
                )
            except (KeyError, TypeError, ValueError):
                continue
            items[_key(entry.origin, entry.destination, entry.region)] = entry
        return items

    def get(self, origin: str, destination: str, region: str) -> Optional[CachedDistance]:
        with self._lock:
            entry = self._items.get(_key(origin, destination, region))
            if entry is None:
                self._misses += 1
            else:
                self._hits += 1
            return entry

    def put(
        self,
        origin: str,
        destination: str,
        region: str,
        road_distance_km: float,
        source: str,
        *,
        persist: bool = True,
    ) -> CachedDistance:
        key = _key(origin, destination, region)
        entry = CachedDistance(
            origin=key[0],
            destination=key[1],
            region=key[2],
            road_distance_km=float(road_distance_km),
            source=source,
            cached_at=datetime.now(timezone.utc).isoformat(),
        )
        with self._lock:
            self._items[key] = entry
            if persist:
                self._pending[key] = entry
        return entry

    def entries_for_region(self, region: str) -> list[CachedDistance]:
        target = region.strip()
        with self._lock:
            return [entry for key, entry in self._items.items() if key[2] == target]

    def flush(self) -> int:
        """Write pending entries to the backing file; returns how many were written."""
        if self.path is None:
            return 0
        with self._lock:
            pending = dict(self._pending)
            self._pending.clear()
        if not pending:
            return 0

        merged = self._read_file(self.path)
        merged.update(pending)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"entries": [asdict(entry) for entry in merged.values()]}
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".distances", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except OSError:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.info(f"Persisted {len(pending)} road distances to {self.path}")
        return len(pending)

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return {
                "size": len(self._items),
                "pending": len(self._pending),
                "hits": self._hits,
                "misses": self._misses,
            }
