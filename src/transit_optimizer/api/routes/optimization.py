"""Optimization run endpoints."""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Literal, Optional

from fastapi import APIRouter, HTTPException, Query, Response, status

from ...models.domain import OptimizedRoute
from ...schemas.optimization import (
    OptimizationRequest,
    OptimizationResultsResponse,
    OptimizationStartResponse,
    PhaseStatusModel,
    RecommendationType,
    SessionStatus,
    SessionStatusResponse,
    SessionSummaryModel,
)
from ...services.optimization.runner import get_runner
from ...services.optimization.session import PHASE_DETAILS, PHASE_PROGRESS, PHASES, OptimizationSession
from ...services.outputs.formatter import optimized_routes_to_csv, recommendations_to_csv

router = APIRouter(prefix="/optimization", tags=["optimization"])


def _get_session_or_404(session_id: str) -> OptimizationSession:
    session = get_runner().sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Session '{session_id}' not found")
    return session


def _phase_models(session: OptimizationSession) -> dict[str, PhaseStatusModel]:
    phases = {}
    previous_progress = 0
    for name in PHASES:
        state = session.phases[name]
        title, description = PHASE_DETAILS[name]
        phases[name] = PhaseStatusModel(
            status=state.status,
            title=title,
            description=description,
            progress_range=(previous_progress, PHASE_PROGRESS[name]),
            start_time=state.start_time,
            end_time=state.end_time,
            error=state.error,
            metrics=state.metrics,
        )
        previous_progress = PHASE_PROGRESS[name]
    return phases


@router.get("/regions", status_code=status.HTTP_200_OK)
def list_regions() -> dict:
    regions = get_runner().repository.list_regions()
    return {"regions": regions, "count": len(regions)}


@router.get("/region-summary", status_code=status.HTTP_200_OK)
def region_summary(region: str = Query(..., min_length=1)) -> dict:
    try:
        return get_runner().repository.summary(region)
    except FileNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.post("/start", response_model=OptimizationStartResponse, status_code=status.HTTP_202_ACCEPTED)
def start_optimization(payload: OptimizationRequest) -> OptimizationStartResponse:
    runner = get_runner()
    try:
        summary = runner.repository.summary(payload.region)
    except (FileNotFoundError, ValueError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    if not summary["ready_for_optimization"]:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Region '{payload.region}' needs a mobility areas file and at least one mobility matrix",
        )

    try:
        handle = runner.start(
            payload.region,
            payload.algorithm_params,
            requested_by=payload.requested_by,
            persist=payload.persist,
        )
    except Exception as exc:
        logging.exception(f"Error starting optimization for {payload.region}: {exc}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to start optimization: {str(exc)}",
        ) from exc

    return OptimizationStartResponse(
        session_id=handle.session_id,
        status="pending",
        message=f"Optimization started for region {payload.region}",
    )


@router.get("/status/{session_id}", response_model=SessionStatusResponse, status_code=status.HTTP_200_OK)
def get_status(session_id: str) -> SessionStatusResponse:
    session = _get_session_or_404(session_id)
    return SessionStatusResponse(
        session_id=session.session_id,
        region=session.region,
        status=session.status,
        current_phase=session.current_phase,
        progress=session.progress,
        phases=_phase_models(session),
        algorithm_params=session.algorithm_params,
        error_message=session.error_message,
        requested_by=session.requested_by,
        created_at=session.created_at,
        started_at=session.started_at,
        ended_at=session.ended_at,
        completed_at=session.completed_at,
        duration_ms=session.duration_ms,
    )


@router.get("/results/{session_id}", response_model=OptimizationResultsResponse, status_code=status.HTTP_200_OK)
def get_results(
    session_id: str,
    recommendation_type: Optional[RecommendationType] = Query(default=None),
) -> OptimizationResultsResponse:
    session = _get_session_or_404(session_id)
    if session.status != "completed" or session.results is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Session '{session_id}' is {session.status}; results are only available once completed",
        )
    recommendations = get_runner().recommendations.get(session_id, recommendation_type=recommendation_type)
    return OptimizationResultsResponse.model_validate(
        {
            "session_id": session.session_id,
            "region": session.region,
            "results": session.results,
            "recommendations": [asdict(item) for item in recommendations],
            "completed_at": session.completed_at,
        }
    )


@router.get("/sessions", response_model=list[SessionSummaryModel], status_code=status.HTTP_200_OK)
def list_sessions(
    status_filter: Optional[SessionStatus] = Query(default=None, alias="status"),
    region: Optional[str] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
) -> list[SessionSummaryModel]:
    sessions = get_runner().sessions.list(status=status_filter, region=region, limit=limit)
    return [
        SessionSummaryModel(
            session_id=session.session_id,
            region=session.region,
            status=session.status,
            current_phase=session.current_phase,
            progress=session.progress,
            created_at=session.created_at,
            completed_at=session.completed_at,
            error_message=session.error_message,
            improvements=(session.results or {}).get("improvements"),
        )
        for session in sessions
    ]


@router.delete("/sessions/{session_id}", status_code=status.HTTP_200_OK)
def delete_session(session_id: str) -> dict:
    _get_session_or_404(session_id)
    get_runner().delete(session_id)
    return {"success": True, "message": f"Session {session_id} deleted"}


@router.get("/export/{session_id}", status_code=status.HTTP_200_OK)
def export_session(
    session_id: str,
    format: Literal["recommendations", "routes"] = Query(default="recommendations"),
    recommendation_type: Optional[RecommendationType] = Query(default=None),
) -> Response:
    session = _get_session_or_404(session_id)
    if session.status != "completed" or session.results is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Session '{session_id}' is {session.status}; nothing to export yet",
        )

    if format == "routes":
        routes = [OptimizedRoute(**route) for route in session.results["optimized_routes"]]
        content = optimized_routes_to_csv(routes)
    else:
        recommendations = get_runner().recommendations.get(session_id, recommendation_type=recommendation_type)
        content = recommendations_to_csv(recommendations)

    filename = f"{format}_{session_id}.csv"
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
