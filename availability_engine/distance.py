"""Drive time estimation with a mapping service and a great-circle fallback."""

import math
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, Optional

import httpx

from availability_engine.config import settings
from availability_engine.logging_context import bind_context, get_request_logger
from availability_engine.schema import Appointment, DriveEstimate, Location

logger = get_request_logger(__name__)

EARTH_RADIUS_KM = 6371.0
AVERAGE_SPEED_KMH = 40.0

DEFAULT_ESTIMATE = DriveEstimate(duration_minutes=30, distance_km=20.0, source="fallback-default")


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in km, rounded to 0.1 km."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return _round_half_up(EARTH_RADIUS_KM * c, 1)


def heuristic_estimate(lat1: float, lng1: float, lat2: float, lng2: float) -> DriveEstimate:
    """Estimate driving time assuming an average urban speed of 40 km/h."""
    distance_km = haversine_km(lat1, lng1, lat2, lng2)
    duration = int(_round_half_up(distance_km / AVERAGE_SPEED_KMH * 60))
    return DriveEstimate(duration_minutes=duration, distance_km=distance_km, source="heuristic")


def check_drive_limit(estimate: DriveEstimate, max_distance_km: float) -> bool:
    """True when the estimated distance is within the business's drive limit."""
    return estimate.distance_km <= max_distance_km


class DistanceClient:
    """Google Distance Matrix compatible HTTP client."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.distance.api_key
        self.base_url = base_url or settings.distance.api_url
        self.timeout = timeout or settings.distance.timeout_seconds

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _get(self, params: dict[str, str]) -> dict:
        """Call the service and return the decoded JSON body."""
        if not self.api_key:
            raise ValueError("DISTANCE_API_KEY is required")
        with httpx.Client(timeout=self.timeout) as client:
            resp = client.get(self.base_url, params={**params, "key": self.api_key})
            resp.raise_for_status()
            return resp.json()

    @staticmethod
    def _parse_element(data: dict) -> DriveEstimate:
        """Read the first matrix element into a DriveEstimate."""
        if data.get("status", "OK") != "OK":
            raise ValueError(f"Distance service status {data.get('status')!r}")
        element = data["rows"][0]["elements"][0]
        if element.get("status", "OK") != "OK":
            raise ValueError(f"Distance element status {element.get('status')!r}")
        seconds = element["duration"]["value"]
        metres = element["distance"]["value"]
        return DriveEstimate(
            duration_minutes=int(_round_half_up(seconds / 60)),
            distance_km=_round_half_up(metres / 1000, 1),
            source="mapping-service",
        )

    def drive_time(self, origin: str, destination: str) -> DriveEstimate:
        """
        Drive estimate between two locations.
        Origin and destination are "lat,lng" pairs or address text.
        """
        data = self._get({"origins": origin, "destinations": destination, "mode": "driving"})
        return self._parse_element(data)


def _coords(lat: float, lng: float) -> str:
    return f"{lat},{lng}"


class DriveEstimator:
    """
    Request-scoped drive time cache in front of the distance service.

    Lookups never raise: a failed or disabled service degrades to the
    haversine heuristic for coordinates and to DEFAULT_ESTIMATE otherwise.
    """

    def __init__(self, client: Optional[DistanceClient] = None, batch_size: int | None = None) -> None:
        self.client = client if client is not None else DistanceClient()
        self.batch_size = batch_size or settings.distance.batch_size
        self._cache: dict[tuple, DriveEstimate] = {}
        self._lock = threading.Lock()

    def _cached(self, key: tuple) -> Optional[DriveEstimate]:
        with self._lock:
            return self._cache.get(key)

    def _store(self, key: tuple, estimate: DriveEstimate) -> DriveEstimate:
        with self._lock:
            self._cache[key] = estimate
        return estimate

    def _lookup(self, origin: str, destination: str) -> Optional[DriveEstimate]:
        """Ask the service; None when it is disabled or fails."""
        if not self.client.enabled:
            return None
        try:
            return self.client.drive_time(origin, destination)
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
            logger.warning("Distance service failed for %s -> %s: %s", origin, destination, e)
            return None

    def estimate(
        self, origin_lat: float, origin_lng: float, dest_lat: float, dest_lng: float
    ) -> DriveEstimate:
        """Drive estimate between two coordinate pairs."""
        key = ("coords", origin_lat, origin_lng, dest_lat, dest_lng)
        cached = self._cached(key)
        if cached is not None:
            return cached
        result = self._lookup(_coords(origin_lat, origin_lng), _coords(dest_lat, dest_lng))
        if result is None:
            result = heuristic_estimate(origin_lat, origin_lng, dest_lat, dest_lng)
        return self._store(key, result)

    def estimate_from_address(
        self, origin_address: str, dest_lat: float, dest_lng: float
    ) -> DriveEstimate:
        """Drive estimate from an address to a coordinate pair."""
        address = (origin_address or "").strip()
        if not address:
            return DEFAULT_ESTIMATE
        key = ("address", address.lower(), dest_lat, dest_lng)
        cached = self._cached(key)
        if cached is not None:
            return cached
        result = self._lookup(address, _coords(dest_lat, dest_lng))
        if result is None:
            logger.info("No drive estimate for address %r, using default", address)
            result = DEFAULT_ESTIMATE
        return self._store(key, result)

    def estimate_for_appointment(self, appointment: Appointment, destination: Location) -> DriveEstimate:
        """Drive estimate from an existing appointment to the new booking location."""
        key = ("appointment", appointment.id, destination.latitude, destination.longitude)
        cached = self._cached(key)
        if cached is not None:
            return cached
        if appointment.has_coordinates:
            result = self.estimate(
                appointment.latitude, appointment.longitude, destination.latitude, destination.longitude
            )
        elif appointment.address:
            result = self.estimate_from_address(
                appointment.address, destination.latitude, destination.longitude
            )
        else:
            logger.debug("Appointment %s has no location, using default estimate", appointment.id)
            result = DEFAULT_ESTIMATE
        return self._store(key, result)

    def prefetch(
        self, appointments: Iterable[Appointment], destination: Location
    ) -> dict[str, DriveEstimate]:
        """
        Estimate every appointment against the destination.
        At most batch_size lookups run at once; returns only when all are done.
        """
        unique = list({a.id: a for a in appointments}.values())
        if not unique:
            return {}
        lookup = bind_context(lambda appt: self.estimate_for_appointment(appt, destination))
        with ThreadPoolExecutor(max_workers=self.batch_size) as pool:
            results = list(pool.map(lookup, unique))
        estimates = {appt.id: est for appt, est in zip(unique, results)}
        logger.info("Prefetched %s drive estimates", len(estimates))
        return estimates
