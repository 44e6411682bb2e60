"""Disaster CRUD plus the per-disaster feeds, reports and image checks."""

import asyncio
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, Response

from auth import User, current_user, ensure_owner
from dependencies import Services, get_services
from schemas import DisasterIn, ReportIn, VerifyImageRequest
from services.adapters import unwrap
from services.cache import cache_key
from services.events import CREATED, DELETED, DISASTER_UPDATED, SOCIAL_MEDIA_UPDATED, UPDATED

logger = logging.getLogger(__name__)

router = APIRouter(tags=["disasters"])


@router.post("/disasters", status_code=201)
async def create_disaster(
    body: DisasterIn,
    user: User = Depends(current_user),
    services: Services = Depends(get_services),
) -> dict:
    disaster = await asyncio.to_thread(
        services.records.create_disaster, body.model_dump(), owner_id=user.id
    )
    logger.info("Disaster created: %s by %s", disaster["id"], user.id)
    await services.events.emit(DISASTER_UPDATED, CREATED, disaster)
    return disaster


@router.get("/disasters")
async def list_disasters(
    tag: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    services: Services = Depends(get_services),
) -> list[dict]:
    disasters = await asyncio.to_thread(services.records.list_disasters, tag=tag, limit=limit, offset=offset)
    logger.info("Disasters fetched: %d (tag=%s)", len(disasters), tag or "all")
    return disasters


@router.get("/disasters/{disaster_id}")
async def get_disaster(disaster_id: str, services: Services = Depends(get_services)) -> dict:
    return await asyncio.to_thread(services.records.get_disaster, disaster_id)


@router.put("/disasters/{disaster_id}")
async def update_disaster(
    disaster_id: str,
    body: DisasterIn,
    user: User = Depends(current_user),
    services: Services = Depends(get_services),
) -> dict:
    ensure_owner(await asyncio.to_thread(services.records.get_disaster, disaster_id), user)
    disaster = await asyncio.to_thread(
        services.records.update_disaster, disaster_id, body.model_dump(), user_id=user.id
    )
    logger.info("Disaster updated: %s by %s", disaster_id, user.id)
    await services.events.emit(DISASTER_UPDATED, UPDATED, disaster)
    return disaster


@router.delete("/disasters/{disaster_id}", status_code=204)
async def delete_disaster(
    disaster_id: str,
    user: User = Depends(current_user),
    services: Services = Depends(get_services),
) -> Response:
    ensure_owner(await asyncio.to_thread(services.records.get_disaster, disaster_id), user)
    await asyncio.to_thread(services.records.delete_disaster, disaster_id)
    logger.info("Disaster deleted: %s by %s", disaster_id, user.id)
    await services.events.emit(DISASTER_UPDATED, DELETED, {"id": disaster_id})
    return Response(status_code=204)


@router.get("/disasters/{disaster_id}/social-media")
async def disaster_social_media(
    disaster_id: str,
    query: str | None = Query(None, max_length=200),
    services: Services = Depends(get_services),
) -> list[dict]:
    """Recent posts about a disaster. Searches its tags, else its title."""
    disaster = await asyncio.to_thread(services.records.get_disaster, disaster_id)
    search = query or " OR ".join(disaster["tags"]) or disaster["title"]
    key = cache_key("social", disaster_id, search)

    async def fetch() -> list[dict]:
        posts = unwrap(await services.social.fetch_posts(search), key)
        await services.events.emit(
            SOCIAL_MEDIA_UPDATED, UPDATED, {"disaster_id": disaster_id, "posts": posts}
        )
        return posts

    return await services.cache.get_or_compute(key, services.ttl, fetch)


@router.get("/disasters/{disaster_id}/official-updates")
async def disaster_official_updates(
    disaster_id: str,
    source: str | None = Query(None),
    services: Services = Depends(get_services),
) -> list[dict]:
    await asyncio.to_thread(services.records.get_disaster, disaster_id)
    key = cache_key("official_updates", disaster_id, source)

    async def scrape() -> list[dict]:
        return unwrap(await services.scraper.scrape(source), key)

    return await services.cache.get_or_compute(key, services.ttl, scrape)


@router.post("/disasters/{disaster_id}/verify-image")
async def verify_image(
    disaster_id: str,
    body: VerifyImageRequest,
    user: User = Depends(current_user),
    services: Services = Depends(get_services),
) -> dict:
    """Check an image for manipulation and file the outcome as a report."""
    await asyncio.to_thread(services.records.get_disaster, disaster_id)
    image_url = str(body.image_url)
    key = cache_key("verify_image", image_url)

    async def check() -> dict:
        return unwrap(await services.verifier.verify_image(image_url), key)

    verification = await services.cache.get_or_compute(key, services.ttl, check)
    report = await asyncio.to_thread(
        services.records.create_report,
        disaster_id,
        user_id=user.id,
        content="Image verification completed",
        image_url=image_url,
        verification_status="verified" if verification["verified"] else "suspicious",
    )
    logger.info("Image verified for disaster %s: verified=%s", disaster_id, verification["verified"])
    return {
        "report": report,
        "verification": {**verification, "timestamp": datetime.now(timezone.utc).isoformat()},
    }


@router.post("/disasters/{disaster_id}/reports", status_code=201)
async def create_report(
    disaster_id: str,
    body: ReportIn,
    user: User = Depends(current_user),
    services: Services = Depends(get_services),
) -> dict:
    data = body.model_dump(mode="json")
    return await asyncio.to_thread(
        services.records.create_report,
        disaster_id,
        user_id=user.id,
        content=data["content"],
        image_url=data["image_url"],
    )


@router.get("/disasters/{disaster_id}/reports")
async def list_reports(disaster_id: str, services: Services = Depends(get_services)) -> list[dict]:
    return await asyncio.to_thread(services.records.list_reports, disaster_id)
