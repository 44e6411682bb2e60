"""Place-name extraction from free text, backed by the chat model."""

import asyncio
import logging
import re

from capabilities import Capabilities, Capability
from services.adapters import AdapterResult, Source, with_fallback
from services.ai_client import AIClient
from services.geocoding import Geocoder

logger = logging.getLogger(__name__)

UNKNOWN_LOCATION = "Unknown location"

_PROMPT = (
    "Extract the specific location name from this text. Return only the location "
    f'name, nothing else. If no clear location is mentioned, return "{UNKNOWN_LOCATION}".'
    '\n\nText: "{text}"\n\nLocation:'
)

# "flooding in Lower Manhattan, NYC" -> "Lower Manhattan, NYC"
_PLACE_AFTER_PREPOSITION = re.compile(
    r"\b(?:in|at|near)\s+((?:[A-Z][\w'.-]*)(?:,?\s+[A-Z][\w'.-]*)*)"
)


def mock_location(text: str) -> dict:
    match = _PLACE_AFTER_PREPOSITION.search(text)
    return {"location_name": match.group(1).strip(" ,.") if match else UNKNOWN_LOCATION}


class LocationExtractor:
    def __init__(self, capabilities: Capabilities, ai: AIClient):
        self._capabilities = capabilities
        self._ai = ai

    async def extract(self, text: str) -> AdapterResult:
        return await with_fallback(
            "location extraction",
            self._capabilities.is_live(Capability.TEXT_AI),
            lambda: self._extract_live(text),
            lambda: mock_location(text),
        )

    async def _extract_live(self, text: str) -> dict:
        reply = await asyncio.to_thread(
            self._ai.complete,
            messages=[{"role": "user", "content": _PROMPT.replace("{text}", text)}],
            temperature=0.0,
            max_tokens=50,
        )
        lines = reply.strip().splitlines()
        name = lines[0].strip().strip("\"'") if lines else ""
        logger.info("Extracted location %r", name)
        return {"location_name": name or UNKNOWN_LOCATION}


async def resolve_location(extractor: LocationExtractor, geocoder: Geocoder, text: str) -> AdapterResult:
    """Free text -> place name -> coordinates. Mock if either step fell back."""
    extracted = await extractor.extract(text)
    geocoded = await geocoder.geocode(extracted.value["location_name"])
    source = Source.MOCK if extracted.is_mock or geocoded.is_mock else Source.LIVE
    return AdapterResult(geocoded.value, source)
