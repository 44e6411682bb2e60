"""Emergency resource CRUD and radius search."""

import asyncio
import logging

from fastapi import APIRouter, Depends, Query, Response

from auth import User, current_user
from dependencies import Services, get_services
from errors import ValidationError
from schemas import ResourceBulkIn, ResourceIn
from services.events import CREATED, DELETED, RESOURCES_UPDATED, UPDATED
from services.geocoding import validate_coordinates

logger = logging.getLogger(__name__)

router = APIRouter(tags=["resources"])


@router.post("/resources", status_code=201)
async def create_resource(
    body: ResourceIn,
    user: User = Depends(current_user),
    services: Services = Depends(get_services),
) -> dict:
    resource = await asyncio.to_thread(services.records.create_resource, body.model_dump(mode="json"))
    logger.info("Resource created: %s for disaster %s by %s", resource["id"], resource["disaster_id"], user.id)
    await services.events.emit(RESOURCES_UPDATED, CREATED, resource)
    return resource


@router.post("/resources/bulk", status_code=201)
async def create_resources_bulk(
    body: ResourceBulkIn,
    user: User = Depends(current_user),
    services: Services = Depends(get_services),
) -> list[dict]:
    items = [r.model_dump(mode="json") for r in body.resources]
    resources = await asyncio.to_thread(services.records.create_resources, items)
    logger.info("Bulk resources created: %d by %s", len(resources), user.id)
    for resource in resources:
        await services.events.emit(RESOURCES_UPDATED, CREATED, resource)
    return resources


@router.get("/resources")
async def list_resources(
    disaster_id: str | None = Query(None),
    type: str | None = Query(None),
    lat: float | None = Query(None, ge=-90, le=90),
    lon: float | None = Query(None, ge=-180, le=180),
    radius: float = Query(10.0, ge=0.1, le=100),
    services: Services = Depends(get_services),
) -> list[dict]:
    """List resources; with lat+lon only those within `radius` km, nearest first."""
    if (lat is None) != (lon is None):
        raise ValidationError("Provide both lat and lon, or neither")

    if lat is not None:
        resources = await asyncio.to_thread(
            services.records.nearby_resources, lat, lon, radius, type=type, disaster_id=disaster_id
        )
    else:
        resources = await asyncio.to_thread(services.records.list_resources, disaster_id=disaster_id, type=type)
    logger.info("Resources fetched: %d (disaster=%s, type=%s)", len(resources), disaster_id, type or "all")
    return resources


@router.get("/resources/nearby")
async def nearby_resources(
    lat: float | None = Query(None),
    lon: float | None = Query(None),
    radius: float = Query(10.0, ge=0.1, le=100),
    type: str | None = Query(None),
    services: Services = Depends(get_services),
) -> list[dict]:
    lat, lon = validate_coordinates(lat, lon)
    return await asyncio.to_thread(services.records.nearby_resources, lat, lon, radius, type=type)


@router.get("/resources/types")
async def resource_types(services: Services = Depends(get_services)) -> list[str]:
    return await asyncio.to_thread(services.records.resource_types)


@router.get("/resources/{resource_id}")
async def get_resource(resource_id: str, services: Services = Depends(get_services)) -> dict:
    return await asyncio.to_thread(services.records.get_resource, resource_id)


@router.put("/resources/{resource_id}")
async def update_resource(
    resource_id: str,
    body: ResourceIn,
    user: User = Depends(current_user),
    services: Services = Depends(get_services),
) -> dict:
    resource = await asyncio.to_thread(
        services.records.update_resource, resource_id, body.model_dump(mode="json")
    )
    logger.info("Resource updated: %s by %s", resource_id, user.id)
    await services.events.emit(RESOURCES_UPDATED, UPDATED, resource)
    return resource


@router.delete("/resources/{resource_id}", status_code=204)
async def delete_resource(
    resource_id: str,
    user: User = Depends(current_user),
    services: Services = Depends(get_services),
) -> Response:
    await asyncio.to_thread(services.records.delete_resource, resource_id)
    logger.info("Resource deleted: %s by %s", resource_id, user.id)
    await services.events.emit(RESOURCES_UPDATED, DELETED, {"id": resource_id})
    return Response(status_code=204)
