"""Scrape official government / NGO update pages into structured items.

Each source page is fetched once and parsed with a short list of item
selectors tried in order; the first selector that yields usable items wins.
A page that yields nothing is treated as a failed scrape and the caller gets
the mock updates instead. That means "genuinely no updates" and "layout
changed" look the same from outside.
"""

import logging
from datetime import datetime, timedelta, timezone

import httpx
from bs4 import BeautifulSoup

from capabilities import Capabilities, Capability
from config import Settings
from errors import UpstreamError
from services.adapters import AdapterResult, with_fallback

logger = logging.getLogger(__name__)

OFFICIAL_SOURCES = {
    "fema": "https://www.fema.gov/news-disasters",
    "redcross": "https://www.redcross.org/about-us/news-and-events/news.html",
    "weather": "https://www.weather.gov/news",
}
DEFAULT_SOURCE = "fema"

ITEM_SELECTORS = ["article", ".news-item", ".update"]
TITLE_SELECTOR = "h1, h2, h3, .title"
BODY_SELECTOR = "p, .content, .description"
TIME_SELECTOR = "time, .date"

MAX_CONTENT_CHARS = 500
MAX_UPDATES = 10
USER_AGENT = "Mozilla/5.0 (compatible; DisasterCoordinationBot/1.0)"

# (default source label, title, content, minutes_ago, priority)
_MOCK_UPDATES = [
    (
        "City Emergency Management",
        "Evacuation Order Issued",
        "Residents in affected areas are ordered to evacuate immediately. "
        "Emergency shelters are open at the following locations...",
        0,
        "high",
    ),
    (
        "National Weather Service",
        "Severe Weather Warning Extended",
        "The severe weather warning has been extended for the next 6 hours. "
        "Heavy rainfall and flooding expected.",
        30,
        "high",
    ),
    (
        "Red Cross",
        "Emergency Response Team Deployed",
        "Red Cross emergency response teams have been deployed to provide "
        "assistance to affected communities.",
        60,
        "medium",
    ),
]


def resolve_source(source: str | None) -> tuple[str, str]:
    """Map a source name to (name, url); unknown names fall back to FEMA."""
    name = (source or "").lower()
    if name not in OFFICIAL_SOURCES:
        name = DEFAULT_SOURCE
    return name, OFFICIAL_SOURCES[name]


def mock_updates(source: str | None = None) -> list[dict]:
    now = datetime.now(timezone.utc)
    stamp = int(now.timestamp() * 1000)
    return [
        {
            "id": f"update_{stamp}_{i}",
            "source": source or label,
            "title": title,
            "content": content,
            "timestamp": (now - timedelta(minutes=minutes_ago)).isoformat(),
            "priority": priority,
            "url": "#",
        }
        for i, (label, title, content, minutes_ago, priority) in enumerate(_MOCK_UPDATES, 1)
    ]


def extract_updates(html: str, source: str, url: str) -> list[dict]:
    """Pull title/body/timestamp triples out of a page. Empty list if nothing matched."""
    soup = BeautifulSoup(html, "html.parser")
    now = datetime.now(timezone.utc)
    stamp = int(now.timestamp() * 1000)

    for selector in ITEM_SELECTORS:
        updates = []
        for i, element in enumerate(soup.select(selector)):
            title_el = element.select_one(TITLE_SELECTOR)
            body_el = element.select_one(BODY_SELECTOR)
            time_el = element.select_one(TIME_SELECTOR)

            title = title_el.get_text(strip=True) if title_el else ""
            content = body_el.get_text(" ", strip=True) if body_el else ""
            if not title or not content:
                continue

            timestamp = ""
            if time_el:
                timestamp = time_el.get("datetime") or time_el.get_text(strip=True)

            updates.append({
                "id": f"update_{stamp}_{i}",
                "source": source,
                "title": title,
                "content": content[:MAX_CONTENT_CHARS],
                "timestamp": timestamp or now.isoformat(),
                "priority": "medium",
                "url": url,
            })
            if len(updates) >= MAX_UPDATES:
                break

        if updates:
            logger.debug("Selector %r matched %d updates", selector, len(updates))
            return updates
    return []


class OfficialUpdatesScraper:
    def __init__(
        self,
        capabilities: Capabilities,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._capabilities = capabilities
        self._timeout = settings.http_timeout_seconds
        self._transport = transport

    async def scrape(self, source: str | None = None) -> AdapterResult:
        return await with_fallback(
            "official updates scrape",
            self._capabilities.is_live(Capability.SCRAPER),
            lambda: self._scrape_live(source),
            lambda: mock_updates(source),
        )

    async def _scrape_live(self, source: str | None) -> list[dict]:
        name, url = resolve_source(source)
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                headers={"User-Agent": USER_AGENT},
                follow_redirects=True,
            ) as client:
                resp = await client.get(url)
                resp.raise_for_status()
        except httpx.HTTPError as e:
            raise UpstreamError(f"Fetching {url} failed: {e}") from e

        updates = extract_updates(resp.text, source or name, url)
        if not updates:
            raise UpstreamError(f"No updates extracted from {url}")

        logger.info("Scraped %d updates from %s", len(updates), url)
        return updates
