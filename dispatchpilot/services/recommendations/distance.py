"""
Batch distance/ETA resolution.
Haversine (local, default) with an interface for an external routing matrix service.
"""

import logging
import math
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Optional, Sequence

import httpx

from dispatchpilot.core.config import settings

from .types import DistanceResult


logger = logging.getLogger(__name__)

EARTH_RADIUS_METERS = 6371000.0


@dataclass(frozen=True)
class DistanceRequest:
    """One origin/destination pair, correlated back to its caller by list position."""
    origin_latitude: float
    origin_longitude: float
    destination_latitude: float
    destination_longitude: float


def haversine_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in degrees."""
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (math.sin(delta_lat / 2) ** 2
         + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_METERS * c


def estimate_eta_minutes(distance_meters: float, average_speed_kmh: float) -> int:
    """Drive time at a constant average speed, rounded up to the minute."""
    if average_speed_kmh <= 0:
        raise ValueError("average_speed_kmh must be positive")
    return math.ceil(distance_meters * 60 / (average_speed_kmh * 1000))


class BaseDistanceResolver(ABC):
    """Abstract base for distance/ETA resolvers."""

    @abstractmethod
    def resolve_batch(self, requests: Sequence[DistanceRequest]) -> list[DistanceResult]:
        """
        Resolve every pair in one call.

        Returns:
            One DistanceResult per request, same order. A pair that could not be
            resolved comes back as DistanceResult() with both fields None.
        """
        ...

    @abstractmethod
    def provider_name(self) -> str:
        ...


class HaversineDistanceResolver(BaseDistanceResolver):
    """Straight-line distance with an average-speed ETA. No I/O, never fails."""

    def __init__(self, average_speed_kmh: Optional[float] = None):
        self.average_speed_kmh = average_speed_kmh or settings.AVERAGE_SPEED_KMH

    def provider_name(self) -> str:
        return "haversine"

    def resolve_batch(self, requests: Sequence[DistanceRequest]) -> list[DistanceResult]:
        results = []
        for r in requests:
            meters = haversine_meters(
                r.origin_latitude, r.origin_longitude,
                r.destination_latitude, r.destination_longitude,
            )
            results.append(DistanceResult(
                distance_meters=meters,
                eta_minutes=estimate_eta_minutes(meters, self.average_speed_kmh),
            ))
        return results


class HttpDistanceResolver(BaseDistanceResolver):
    """
    Routing matrix service over HTTP.

    Pairs are posted in chunks of batch_size, at most max_concurrent_batches
    in flight. Request body:
        {"pairs": [{"index": 0, "origin": {"lat": .., "lng": ..},
                    "destination": {"lat": .., "lng": ..}}, ...]}
    Response body:
        {"results": [{"index": 0, "distance_meters": .., "eta_minutes": ..}, ...]}
    Results are matched back by index; missing indices and failed chunks
    become per-pair absence.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        batch_size: Optional[int] = None,
        max_concurrent_batches: Optional[int] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.base_url = base_url or settings.DISTANCE_SERVICE_URL
        if not self.base_url:
            raise ValueError("DISTANCE_SERVICE_URL not set")
        self.timeout_seconds = timeout_seconds or settings.DISTANCE_TIMEOUT_SECONDS
        self.batch_size = batch_size or settings.DISTANCE_BATCH_SIZE
        self.max_concurrent_batches = max_concurrent_batches or settings.DISTANCE_MAX_CONCURRENT_BATCHES
        self._client = client or httpx.Client(timeout=self.timeout_seconds)

    def provider_name(self) -> str:
        return f"http/{self.base_url}"

    def resolve_batch(self, requests: Sequence[DistanceRequest]) -> list[DistanceResult]:
        results = [DistanceResult() for _ in requests]
        if not requests:
            return results

        chunks = [
            list(range(start, min(start + self.batch_size, len(requests))))
            for start in range(0, len(requests), self.batch_size)
        ]

        workers = max(1, min(self.max_concurrent_batches, len(chunks)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            for chunk_results in pool.map(lambda idx: self._resolve_chunk(requests, idx), chunks):
                for index, result in chunk_results.items():
                    results[index] = result

        resolved = sum(1 for r in results if r.distance_meters is not None)
        if resolved < len(requests):
            logger.warning(f"Distance service resolved {resolved}/{len(requests)} pairs; rest marked unknown")
        return results

    def _resolve_chunk(self, requests: Sequence[DistanceRequest], indices: list[int]) -> dict[int, DistanceResult]:
        payload = {
            "pairs": [
                {
                    "index": i,
                    "origin": {"lat": requests[i].origin_latitude, "lng": requests[i].origin_longitude},
                    "destination": {"lat": requests[i].destination_latitude, "lng": requests[i].destination_longitude},
                }
                for i in indices
            ]
        }

        try:
            response = self._client.post(self.base_url, json=payload, timeout=self.timeout_seconds)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException:
            logger.error(f"Distance service timed out for {len(indices)} pairs")
            return {}
        except httpx.HTTPStatusError as e:
            logger.error(f"Distance service HTTP error: {e.response.status_code} - {e.response.text}")
            return {}
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Distance service error: {e}")
            return {}

        if not isinstance(data, dict):
            logger.error(f"Distance service returned unexpected payload type: {type(data).__name__}")
            return {}

        wanted = set(indices)
        out = {}
        for item in data.get("results", []):
            index = item.get("index")
            if index not in wanted:
                continue
            meters = item.get("distance_meters")
            eta = item.get("eta_minutes")
            out[index] = DistanceResult(
                distance_meters=float(meters) if meters is not None else None,
                eta_minutes=int(eta) if eta is not None else None,
            )
        return out


def get_distance_resolver() -> BaseDistanceResolver:
    """Factory for the configured distance provider."""
    provider_name = settings.DISTANCE_PROVIDER

    if provider_name == "haversine":
        return HaversineDistanceResolver()
    elif provider_name == "http":
        return HttpDistanceResolver()
    else:
        raise ValueError(f"Unknown distance provider: {provider_name}")
