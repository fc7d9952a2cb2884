"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="TNO_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Transit Network Optimizer API"
    api_prefix: str = "/api"
    data_root: Path = Field(default=Path("data"), description="Root directory for region inputs and outputs.")
    regions_dirname: str = Field(
        default="regions",
        description="Sub-directory of data_root holding one folder per region.",
    )
    distance_cache_file: Path = Field(
        default=Path("data/cache/road_distances.json"),
        description="Persistent road-distance cache shared across runs.",
    )
    osrm_base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the OSRM routing service (e.g., http://localhost:5000).",
    )
    osrm_profile: Literal["driving", "driving-hgv"] = Field(
        default="driving",
        description="OSRM profile to use when estimating road distances.",
    )
    osrm_timeout_seconds: float = Field(default=10.0, gt=0.0)
    osrm_max_retries: int = Field(default=1, ge=0)
    osrm_backoff_seconds: float = Field(default=0.5, ge=0.0)
    resolve_road_distances: bool = Field(
        default=False,
        description="Query the routing service for pairs missing from the cache during data preparation.",
    )
    distance_workers: int = Field(default=8, ge=1)
    dijkstra_workers: int = Field(default=1, ge=1)
    max_concurrent_runs: int = Field(default=4, ge=1)

    default_mobility_constant: float = Field(default=0.1, gt=0.0)
    default_proximity_radius_m: float = Field(default=2000.0, gt=0.0)
    min_scoped_areas: int = Field(default=5, ge=1)
    fallback_top_n: int = Field(default=15, ge=1)
    default_distance_threshold_km: float = Field(default=50.0, gt=0.0)
    meaningful_mobility_cutoff: float = Field(default=1.0, ge=0.0)
    default_cost_per_km: float = Field(default=50000.0, ge=0.0)
    default_min_mobility: float = Field(default=0.5, ge=0.0)
    default_max_distance_km: float = Field(default=40.0, gt=0.0)
    default_min_efficiency: float = Field(default=0.01, ge=0.0)
    default_max_recommendations: int = Field(default=20, ge=1)

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )

    @property
    def regions_root(self) -> Path:
        return self.data_root / self.regions_dirname

    @field_validator("data_root", "distance_cache_file", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()


settings = Settings()
