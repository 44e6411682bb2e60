"""Mapbox forward and reverse geocoding.

Mapbox returns `center` as [lon, lat]. `relevance` becomes the confidence.
"""

import logging
from urllib.parse import quote

import httpx

from capabilities import Capabilities, Capability
from config import Settings
from errors import UpstreamError, ValidationError
from services.adapters import AdapterResult, with_fallback

logger = logging.getLogger(__name__)

MAPBOX_PLACES_URL = "https://api.mapbox.com/geocoding/v5/mapbox.places"

MOCK_LAT = 40.7589
MOCK_LON = -73.9851
DEFAULT_CONFIDENCE = 0.8


def validate_coordinates(lat: float | None, lon: float | None) -> tuple[float, float]:
    if lat is None or lon is None:
        raise ValidationError("Latitude and longitude are required")
    if not -90 <= lat <= 90:
        raise ValidationError(f"Latitude out of range: {lat}")
    if not -180 <= lon <= 180:
        raise ValidationError(f"Longitude out of range: {lon}")
    return float(lat), float(lon)


def mock_geocode(name: str) -> dict:
    return {"location_name": name, "lat": MOCK_LAT, "lon": MOCK_LON, "confidence": 0.5}


def mock_reverse(lat: float, lon: float) -> dict:
    return {"location_name": "Mock Location", "lat": lat, "lon": lon, "confidence": 0.5, "context": []}


class Geocoder:
    def __init__(
        self,
        capabilities: Capabilities,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._capabilities = capabilities
        self._token = settings.mapbox_token
        self._timeout = settings.http_timeout_seconds
        self._transport = transport

    @property
    def _live(self) -> bool:
        return self._capabilities.is_live(Capability.GEOCODER)

    async def geocode(self, name: str) -> AdapterResult:
        return await with_fallback(
            "geocoding",
            self._live,
            lambda: self._geocode_live(name),
            lambda: mock_geocode(name),
        )

    async def reverse(self, lat: float | None, lon: float | None) -> AdapterResult:
        lat, lon = validate_coordinates(lat, lon)
        return await with_fallback(
            "reverse geocoding",
            self._live,
            lambda: self._reverse_live(lat, lon),
            lambda: mock_reverse(lat, lon),
        )

    async def _first_feature(self, query: str) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.get(
                    f"{MAPBOX_PLACES_URL}/{query}.json",
                    params={"access_token": self._token, "limit": 1},
                )
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamError(f"Mapbox request failed: {e}") from e

        if not isinstance(data, dict):
            raise UpstreamError("Malformed Mapbox response: not an object")
        features = data.get("features") or []
        if not isinstance(features, list) or not features:
            raise UpstreamError(f"No Mapbox results for {query!r}")
        if not isinstance(features[0], dict):
            raise UpstreamError(f"Malformed Mapbox feature for {query!r}")
        return features[0]

    async def _geocode_live(self, name: str) -> dict:
        feature = await self._first_feature(quote(name, safe=""))
        try:
            lon, lat = feature["center"]
        except (KeyError, TypeError, ValueError) as e:
            raise UpstreamError(f"Malformed Mapbox feature for {name!r}") from e
        logger.info("Geocoded %r -> (%s, %s)", name, lat, lon)
        return {
            "location_name": name,
            "lat": lat,
            "lon": lon,
            "confidence": feature.get("relevance", DEFAULT_CONFIDENCE),
        }

    async def _reverse_live(self, lat: float, lon: float) -> dict:
        feature = await self._first_feature(f"{lon},{lat}")
        return {
            "location_name": feature.get("place_name", "Unknown location"),
            "lat": lat,
            "lon": lon,
            "confidence": feature.get("relevance", DEFAULT_CONFIDENCE),
            "context": feature.get("context", []),
        }
