"""Distance Provider: resolves road distance between two addresses."""

from __future__ import annotations

import logging
import math
from typing import Protocol

import httpx

from app.core.config import settings
from app.core.errors import DistanceUnavailable

logger = logging.getLogger(__name__)


class DistanceProvider(Protocol):
    def distance_km(self, origin: str, destination: str) -> float: ...


class HttpDistanceProvider:
    """Distance-matrix style HTTP provider (Google Distance Matrix response shape)."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout_seconds: float | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url or settings.distance_provider_url
        self.api_key = api_key if api_key is not None else settings.distance_provider_api_key
        self.timeout_seconds = timeout_seconds or settings.distance_provider_timeout_seconds
        self._client = client

    def _get(self, params: dict[str, str]) -> httpx.Response:
        if self._client is not None:
            return self._client.get(self.base_url, params=params, timeout=self.timeout_seconds)
        with httpx.Client(timeout=self.timeout_seconds) as client:
            return client.get(self.base_url, params=params)

    def distance_km(self, origin: str, destination: str) -> float:
        if not origin.strip() or not destination.strip():
            raise DistanceUnavailable("Origin and destination are required")

        params = {"origins": origin, "destinations": destination, "units": "metric"}
        if self.api_key:
            params["key"] = self.api_key

        try:
            response = self._get(params)
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as exc:
            logger.warning("[DISTANCE] Provider timed out after %ss", self.timeout_seconds)
            raise DistanceUnavailable("Distance provider timed out") from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("[DISTANCE] Provider request failed: %s", exc)
            raise DistanceUnavailable("Distance provider request failed") from exc

        return parse_distance_matrix(payload)


def parse_distance_matrix(payload: dict) -> float:
    """Extract kilometres from a distance-matrix payload."""
    try:
        if payload.get("status", "OK") != "OK":
            raise DistanceUnavailable(f"Distance provider status {payload.get('status')}")
        element = payload["rows"][0]["elements"][0]
        if element.get("status", "OK") != "OK":
            raise DistanceUnavailable(f"No route found ({element.get('status')})")
        meters = float(element["distance"]["value"])
    except (AttributeError, KeyError, IndexError, TypeError, ValueError) as exc:
        raise DistanceUnavailable("Malformed distance provider response") from exc

    if not math.isfinite(meters) or meters < 0:
        raise DistanceUnavailable("Distance provider returned an invalid distance")
    return meters / 1000
