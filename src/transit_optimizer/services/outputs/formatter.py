"""Serializers for optimization results and recommendations."""

from __future__ import annotations

import csv
import io
from dataclasses import asdict
from typing import Sequence

from ...models.domain import OptimizedRoute, Recommendation
from ..optimization.session import OptimizationSession


def session_summary_to_json(session: OptimizationSession, recommendations: Sequence[Recommendation]) -> dict:
    return {
        "session_id": session.session_id,
        "region": session.region,
        "status": session.status,
        "requested_by": session.requested_by,
        "algorithm_params": session.algorithm_params,
        "phases": {name: asdict(phase) for name, phase in session.phases.items()},
        "results": session.results,
        "recommendations": [asdict(item) for item in recommendations],
        "started_at": session.started_at,
        "ended_at": session.ended_at,
        "duration_ms": session.duration_ms,
    }


def optimized_routes_to_csv(routes: Sequence[OptimizedRoute]) -> str:
    buffer = io.StringIO()
    fieldnames = ["from_area", "to_area", "distance_km", "mobility", "weight", "path"]
    writer = csv.DictWriter(buffer, fieldnames=fieldnames)
    writer.writeheader()
    for route in routes:
        writer.writerow(
            {
                "from_area": route.from_area,
                "to_area": route.to_area,
                "distance_km": round(route.distance_km, 3),
                "mobility": round(route.mobility, 3),
                "weight": round(route.weight, 3),
                "path": " → ".join(route.path),
            }
        )
    return buffer.getvalue()


def recommendations_to_csv(recommendations: Sequence[Recommendation]) -> str:
    buffer = io.StringIO()
    fieldnames = [
        "priority",
        "action_type",
        "recommendation_type",
        "from_area",
        "to_area",
        "distance_km",
        "mobility",
        "impact_score",
        "estimated_cost",
        "roi",
        "readiness_score",
        "difficulty",
        "timeframe",
        "frequency",
        "status",
    ]
    writer = csv.DictWriter(buffer, fieldnames=fieldnames)
    writer.writeheader()
    for item in recommendations:
        writer.writerow(
            {
                "priority": item.priority,
                "action_type": item.action_type,
                "recommendation_type": item.recommendation_type,
                "from_area": item.from_area,
                "to_area": item.to_area,
                "distance_km": round(item.distance_km, 3),
                "mobility": round(item.mobility, 3),
                "impact_score": item.impact_score,
                "estimated_cost": item.estimated_cost,
                "roi": item.roi if item.roi is not None else "",
                "readiness_score": item.readiness_score,
                "difficulty": item.difficulty,
                "timeframe": item.timeframe,
                "frequency": item.frequency,
                "status": item.status,
            }
        )
    return buffer.getvalue()
