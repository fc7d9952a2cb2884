"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ...services.distance.osrm_client import check_health as osrm_health_check

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/osrm", status_code=status.HTTP_200_OK)
def health_osrm() -> dict:
    """Check OSRM service health."""
    try:
        return {"service": "osrm", "healthy": osrm_health_check()}
    except Exception as e:
        return {"service": "osrm", "healthy": False, "error": str(e)}
