"""Distance lookup: postcodes.io geocoding, OSRM and Google Routes."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime
from urllib.parse import quote

import httpx

from backend.pricing.engine import round_half_up
from backend.scheduling import to_iso

logger = logging.getLogger(__name__)

POSTCODES_API = "https://api.postcodes.io/postcodes"
OSRM_ROUTE_API = "https://router.project-osrm.org/route/v1/driving"
GOOGLE_ROUTES_API = "https://routes.googleapis.com/directions/v2:computeRoutes"

METERS_PER_MILE = 1609.344
HTTP_TIMEOUT_SECONDS = 10

_DURATION_RE = re.compile(r"^(?:(\d+)h)?(?:(\d+)m)?(?:(\d+)(?:\.\d+)?s)?$")


class GeocodingError(ValueError):
    """A postcode could not be resolved."""


class RoutingError(RuntimeError):
    """The routing service gave no usable route."""


@dataclass(frozen=True)
class RouteEstimate:
    meters: float
    seconds: int

    @property
    def miles(self) -> float:
        return self.meters / METERS_PER_MILE

    @property
    def eta_text(self) -> str:
        return human_duration(self.seconds)


def meters_to_miles(meters: float) -> float:
    """Road miles to one decimal place, never less than 1."""
    return max(1, round_half_up(meters / METERS_PER_MILE, 0.1))


def parse_duration(value: str | None) -> int:
    """Google duration ("1234s", also "1h2m3s") to whole seconds."""
    match = _DURATION_RE.match(str(value or "").strip())
    if not match:
        return 0
    h, m, s = (int(g or 0) for g in match.groups())
    return h * 3600 + m * 60 + s


def human_duration(total_seconds: int) -> str:
    hours = total_seconds // 3600
    minutes = round_half_up((total_seconds % 3600) / 60)
    if hours <= 0:
        return f"{minutes} mins"
    return f"{hours} hr {minutes} min"


class DistanceService:
    """Road distance between two places for quoting."""

    @classmethod
    def google_configured(cls) -> bool:
        return bool(os.getenv("GOOGLE_MAPS_API_KEY"))

    def __init__(self, transport: httpx.AsyncBaseTransport | None = None):
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS, transport=self.transport)

    async def geocode(self, client: httpx.AsyncClient, postcode: str) -> tuple[float, float]:
        """Resolve a UK postcode to (lat, lon).

        Raises:
            GeocodingError: Unknown postcode or lookup failure
        """
        try:
            resp = await client.get(f"{POSTCODES_API}/{quote(postcode, safe='')}")
            body = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise GeocodingError(f"Invalid postcode: {postcode}") from e

        if not isinstance(body, dict):
            body = {}
        result = body.get("result")
        if not resp.is_success or body.get("status") != 200 or not result:
            raise GeocodingError(f"Invalid postcode: {postcode}")
        return result["latitude"], result["longitude"]

    async def postcode_miles(self, from_postcode: str, to_postcode: str) -> float:
        """Driving miles between two postcodes via the public OSRM server.

        Raises:
            GeocodingError: Either postcode is unknown
            RoutingError: OSRM returned no route
        """
        async with self._client() as client:
            a_lat, a_lon = await self.geocode(client, from_postcode)
            b_lat, b_lon = await self.geocode(client, to_postcode)

            url = f"{OSRM_ROUTE_API}/{a_lon},{a_lat};{b_lon},{b_lat}"
            try:
                resp = await client.get(url, params={"overview": "false"})
                body = resp.json()
            except (httpx.HTTPError, ValueError) as e:
                raise RoutingError("Routing failed") from e

        if not isinstance(body, dict):
            body = {}
        routes = body.get("routes")
        if not resp.is_success or body.get("code") != "Ok" or not routes:
            logger.warning("OSRM returned no route: %s", str(body)[:500])
            raise RoutingError("Routing failed")
        return meters_to_miles(float(routes[0]["distance"]))

    async def address_route(self, origin: str, destination: str, departure: datetime | None = None) -> RouteEstimate:
        """Traffic-aware road distance and duration between two addresses.

        Raises:
            ValueError: GOOGLE_MAPS_API_KEY not set
            RoutingError: Google returned an error or no route
        """
        api_key = os.getenv("GOOGLE_MAPS_API_KEY")
        if not api_key:
            raise ValueError("GOOGLE_MAPS_API_KEY not set.")

        body = {
            "origin": {"address": origin},
            "destination": {"address": destination},
            "travelMode": "DRIVE",
            "routingPreference": "TRAFFIC_AWARE_OPTIMAL",
        }
        if departure is not None:
            body["departureTime"] = to_iso(departure)

        try:
            async with self._client() as client:
                resp = await client.post(
                    GOOGLE_ROUTES_API,
                    json=body,
                    headers={
                        "X-Goog-Api-Key": api_key,
                        "X-Goog-FieldMask": "routes.distanceMeters,routes.duration",
                    },
                )
        except httpx.HTTPError as e:
            raise RoutingError("Routing failed") from e

        if not resp.is_success:
            logger.error("Routes API error: %s", resp.text[:500])
            raise RoutingError("Routing failed")

        try:
            body = resp.json()
        except ValueError as e:
            logger.error("Routes API returned non-JSON: %s", resp.text[:500])
            raise RoutingError("Routing failed") from e

        if not isinstance(body, dict):
            body = {}
        routes = body.get("routes") or []
        if not routes:
            raise RoutingError("No route found")
        route = routes[0]
        return RouteEstimate(
            meters=float(route.get("distanceMeters") or 0),
            seconds=parse_duration(route.get("duration")),
        )
