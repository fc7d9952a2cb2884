"""HTTP client for road-distance estimates from OSRM."""

from __future__ import annotations

import logging
import time

import httpx

from ...config import settings

logger = logging.getLogger(__name__)


class OSRMClient:
    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
    ) -> None:
        self.base_url = base_url or settings.osrm_base_url
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.base_url = self.base_url.rstrip("/")
        self.profile = profile or settings.osrm_profile
        self.timeout = timeout if timeout is not None else settings.osrm_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.osrm_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.osrm_backoff_seconds

    def _get_client(self) -> httpx.Client:
        """Create a per-call client; lookups run from worker threads."""
        return httpx.Client(timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 5.0)))

    def route_distance_km(self, origin: tuple[float, float], destination: tuple[float, float]) -> float:
        """Road distance in km between two ``(lat, lon)`` points.

        Raises on failure; callers decide how to degrade.
        """
        coordinate_str = ";".join(f"{lon},{lat}" for lat, lon in (origin, destination))
        url = f"{self.base_url}/route/v1/{self.profile}/{coordinate_str}"
        params = {"overview": "false", "steps": "false"}

        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    response = client.get(url, params=params)
                    response.raise_for_status()
                    data = response.json()
                    if data.get("code") != "Ok" or not data.get("routes"):
                        raise ValueError(f"OSRM route request failed: {data.get('message', data.get('code'))}")
                    return float(data["routes"][0]["distance"]) / 1000.0
                except httpx.TimeoutException as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.warning(f"OSRM route request timed out after {self.max_retries} retries: {e}")
                        raise
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"OSRM route timeout, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                    time.sleep(wait_time)
                except (httpx.ConnectError, httpx.NetworkError) as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise ConnectionError(f"Failed to connect to OSRM service at {self.base_url}: {e}") from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"OSRM network error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries}): {e}")
                    time.sleep(wait_time)
                except (httpx.HTTPError, ValueError, KeyError):
                    attempt += 1
                    if attempt > self.max_retries:
                        raise
                    time.sleep(self.backoff_seconds * attempt)
        finally:
            client.close()


def check_health(base_url: str | None = None) -> bool:
    """Check OSRM service health with a minimal two-point route request."""
    base = base_url or settings.osrm_base_url
    if not base:
        return False
    try:
        test_coords = "13.388860,52.517037;13.385983,52.496891"
        url = f"{base.rstrip('/')}/route/v1/{settings.osrm_profile}/{test_coords}"
        response = httpx.get(url, params={"overview": "false"}, timeout=5.0)
        response.raise_for_status()
        return response.json().get("code") == "Ok"
    except httpx.HTTPError:
        return False
    except ValueError:
        return False
