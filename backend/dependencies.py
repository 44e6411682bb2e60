"""Process-wide service handles, built once per app and injected into routes."""

import logging
from dataclasses import dataclass

import httpx
from fastapi import Request

from capabilities import Capabilities, Capability, detect_capabilities
from config import Settings
from db import IN_MEMORY_URL, init_db, make_engine, make_session_factory
from services.ai_client import AIClient
from services.cache import CacheThrough
from services.cache_store import CacheStore
from services.events import EventHub
from services.geocoding import Geocoder
from services.location import LocationExtractor
from services.official_updates import OfficialUpdatesScraper
from services.records import RecordStore
from services.social_media import SocialFeed
from services.verification import ImageVerifier

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    capabilities: Capabilities
    records: RecordStore
    cache_store: CacheStore
    cache: CacheThrough
    events: EventHub
    locations: LocationExtractor
    geocoder: Geocoder
    social: SocialFeed
    scraper: OfficialUpdatesScraper
    verifier: ImageVerifier

    @property
    def ttl(self) -> int:
        return self.settings.cache_ttl_seconds


def build_services(
    settings: Settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Services:
    """Wire every component from settings. `transport` lets tests stub outbound HTTP."""
    capabilities = detect_capabilities(settings)

    if capabilities.is_live(Capability.DATASTORE):
        database_url = settings.database_url
    else:
        logger.warning("DATABASE_URL not configured: records are in-memory and caching is off")
        database_url = IN_MEMORY_URL

    engine = make_engine(database_url)
    init_db(engine)
    sessions = make_session_factory(engine)

    cache_store = CacheStore(sessions)
    ai = AIClient(settings)

    return Services(
        settings=settings,
        capabilities=capabilities,
        records=RecordStore(sessions),
        cache_store=cache_store,
        cache=CacheThrough(cache_store, capabilities),
        events=EventHub(),
        locations=LocationExtractor(capabilities, ai),
        geocoder=Geocoder(capabilities, settings, transport),
        social=SocialFeed(capabilities, settings, transport),
        scraper=OfficialUpdatesScraper(capabilities, settings, transport),
        verifier=ImageVerifier(capabilities, ai),
    )


def get_services(request: Request) -> Services:
    return request.app.state.services
