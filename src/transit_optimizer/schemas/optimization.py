"""Pydantic request/response models for optimization endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from ..config import settings

SessionStatus = Literal["pending", "running", "completed", "failed"]
RecommendationType = Literal["high_impact", "cost_effective", "quick_win", "long_term"]


class RecommendationFilters(BaseModel):
    min_mobility: float = Field(default_factory=lambda: settings.default_min_mobility, ge=0)
    max_distance_km: float = Field(default_factory=lambda: settings.default_max_distance_km, gt=0)
    min_efficiency: float = Field(default_factory=lambda: settings.default_min_efficiency, ge=0)
    max_recommendations: int = Field(default_factory=lambda: settings.default_max_recommendations, ge=1)

    @model_validator(mode="after")
    def _check_distance_window(self) -> "RecommendationFilters":
        if self.max_distance_km <= 1:
            raise ValueError("max_distance_km must be greater than 1 km; shorter routes are never recommended")
        return self


class AlgorithmParams(BaseModel):
    distance_threshold_km: Optional[float] = Field(
        default=None,
        gt=0,
        description="Fixed filter threshold; computed from the graph when omitted.",
    )
    mobility_constant: float = Field(default_factory=lambda: settings.default_mobility_constant, gt=0)
    proximity_radius_m: float = Field(default_factory=lambda: settings.default_proximity_radius_m, gt=0)
    cost_per_km: float = Field(default_factory=lambda: settings.default_cost_per_km, ge=0)
    mobility_matrix_file: Optional[str] = Field(
        default=None,
        description="Use a single demand file from the region instead of merging all of them.",
    )
    recommendation_filters: RecommendationFilters = Field(default_factory=RecommendationFilters)


class OptimizationRequest(BaseModel):
    region: str = Field(..., min_length=1)
    algorithm_params: Optional[AlgorithmParams] = None
    persist: bool = Field(default=True, description="Whether to write run artifacts to files.")
    requested_by: Optional[str] = Field(default=None, description="Person or system requesting the run.")


class OptimizationStartResponse(BaseModel):
    session_id: str
    status: SessionStatus
    message: str


class PhaseStatusModel(BaseModel):
    status: str
    title: str
    description: str
    progress_range: tuple[int, int]
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    error: Optional[str] = None
    metrics: Dict[str, Any] = Field(default_factory=dict)


class SessionStatusResponse(BaseModel):
    session_id: str
    region: str
    status: SessionStatus
    current_phase: str
    progress: int
    phases: Dict[str, PhaseStatusModel]
    algorithm_params: dict
    error_message: Optional[str] = None
    requested_by: Optional[str] = None
    created_at: datetime
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None


class SessionSummaryModel(BaseModel):
    session_id: str
    region: str
    status: SessionStatus
    current_phase: str
    progress: int
    created_at: datetime
    completed_at: Optional[datetime] = None
    error_message: Optional[str] = None
    improvements: Optional[dict] = None


class NetworkMetricsModel(BaseModel):
    total_distance_km: float
    total_mobility: float
    network_efficiency: float
    connectivity_index: int


class ImprovementsModel(BaseModel):
    distance_reduction: float
    mobility_increase: float
    efficiency_gain: float
    connectivity_improvement: float


class OptimizedRouteModel(BaseModel):
    from_area: str
    to_area: str
    distance_km: float
    mobility: float
    weight: float
    path: List[str]


class OptimizationResultsModel(BaseModel):
    original_network: NetworkMetricsModel
    optimized_network: NetworkMetricsModel
    improvements: ImprovementsModel
    optimized_routes: List[OptimizedRouteModel]


class PathWaypointModel(BaseModel):
    area: str
    latitude: float
    longitude: float
    estimated_stops: List[str]


class RecommendationModel(BaseModel):
    session_id: str
    priority: int
    action_type: str
    recommendation_type: RecommendationType
    from_area: str
    to_area: str
    distance_km: float
    mobility: float
    weight: float
    path: List[PathWaypointModel]
    estimated_travel_time_min: int
    frequency: str
    efficiency_gain: float
    people_served: int
    impact_score: int = Field(..., ge=0, le=100)
    estimated_cost: float
    difficulty: Literal["low", "medium", "high"]
    timeframe: Literal["short_term", "medium_term", "long_term"]
    roi: Optional[float] = None
    readiness_score: int = Field(default=0, ge=0, le=100)
    status: str


class OptimizationResultsResponse(BaseModel):
    session_id: str
    region: str
    results: OptimizationResultsModel
    recommendations: List[RecommendationModel]
    completed_at: Optional[datetime] = None
