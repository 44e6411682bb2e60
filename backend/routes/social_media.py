"""Social media feed, official updates and post verification routes."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query

from dependencies import Services, get_services
from schemas import VerifyPostRequest
from services.adapters import unwrap
from services.cache import cache_key

logger = logging.getLogger(__name__)

router = APIRouter(tags=["social-media"])


@router.get("/social-media/mock")
async def mock_feed(
    disaster_id: str | None = Query(None),
    platform: str = Query("twitter"),
    services: Services = Depends(get_services),
) -> list[dict]:
    logger.info("Mock social feed requested (disaster=%s, platform=%s)", disaster_id, platform)
    return services.social.mock_posts(platform)


@router.get("/social-media/twitter")
async def twitter_feed(
    disaster_id: str | None = Query(None),
    query: str | None = Query(None, max_length=200),
    services: Services = Depends(get_services),
) -> list[dict]:
    key = cache_key("twitter", disaster_id, query)

    async def fetch() -> list[dict]:
        return unwrap(await services.social.fetch_posts(query), key)

    return await services.cache.get_or_compute(key, services.ttl, fetch)


@router.get("/social-media/official-updates")
async def official_updates(
    disaster_id: str | None = Query(None),
    source: str | None = Query(None),
    services: Services = Depends(get_services),
) -> list[dict]:
    logger.info("Official updates requested (disaster=%s, source=%s)", disaster_id, source)
    key = cache_key("official_updates", disaster_id, source)

    async def scrape() -> list[dict]:
        return unwrap(await services.scraper.scrape(source), key)

    return await services.cache.get_or_compute(key, services.ttl, scrape)


@router.post("/social-media/verify-post")
async def verify_post(body: VerifyPostRequest, services: Services = Depends(get_services)) -> dict:
    image_url = str(body.image_url) if body.image_url else None
    key = cache_key("verify_post", body.content, image_url)

    async def check() -> dict:
        return unwrap(await services.verifier.verify_post(body.content, image_url), key)

    verdict = await services.cache.get_or_compute(key, services.ttl, check)
    logger.info("Post verification: post=%s verified=%s", body.post_id, verdict["verified"])
    return {
        "post_id": body.post_id,
        "platform": body.platform,
        **verdict,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
