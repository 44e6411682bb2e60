"""Geocoding routes: free text to coordinates, and coordinates to a place."""

import logging

from fastapi import APIRouter, Depends, Query

from dependencies import Services, get_services
from schemas import GeocodeRequest
from services.adapters import unwrap
from services.cache import cache_key
from services.geocoding import validate_coordinates
from services.location import resolve_location

logger = logging.getLogger(__name__)

router = APIRouter(tags=["geocode"])


@router.post("/geocode")
async def geocode(body: GeocodeRequest, services: Services = Depends(get_services)) -> dict:
    """Extract a place name from the text with the model, then geocode it.

    Cached on the original text: the extracted name can differ between runs.
    """
    logger.info("Geocoding request: %s", body.text[:100])
    key = cache_key("geocode", body.text)

    async def resolve() -> dict:
        return unwrap(await resolve_location(services.locations, services.geocoder, body.text), key)

    return await services.cache.get_or_compute(key, services.ttl, resolve)


@router.get("/geocode/reverse")
async def reverse_geocode(
    lat: float | None = Query(None),
    lon: float | None = Query(None),
    services: Services = Depends(get_services),
) -> dict:
    lat, lon = validate_coordinates(lat, lon)
    key = cache_key("reverse_geocode", lat, lon)

    async def lookup() -> dict:
        return unwrap(await services.geocoder.reverse(lat, lon), key)

    return await services.cache.get_or_compute(key, services.ttl, lookup)
