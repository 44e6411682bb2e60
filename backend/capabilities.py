"""Degraded-mode detection: which external dependencies are live.

Computed once from Settings when the app is built. Every adapter and the
cache-through layer ask this object instead of inspecting credentials
themselves, so a single request always sees one consistent answer.
"""

from dataclasses import dataclass
from enum import Enum

from config import Settings, is_configured


class Capability(str, Enum):
    DATASTORE = "datastore"
    TEXT_AI = "text_ai"
    GEOCODER = "geocoder"
    SOCIAL_FEED = "social_feed"
    SCRAPER = "scraper"
    IMAGE_VERIFIER = "image_verifier"


class Availability(str, Enum):
    LIVE = "live"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class Capabilities:
    states: dict

    def availability(self, capability: Capability) -> Availability:
        return self.states.get(capability, Availability.UNAVAILABLE)

    def is_live(self, capability: Capability) -> bool:
        return self.availability(capability) is Availability.LIVE

    def as_dict(self) -> dict[str, str]:
        return {cap.value: self.availability(cap).value for cap in Capability}


def detect_capabilities(settings: Settings) -> Capabilities:
    """Evaluate every capability from configuration presence."""
    ai_live = settings.ai_auth is not None

    live = {
        Capability.DATASTORE: is_configured(settings.database_url),
        Capability.TEXT_AI: ai_live,
        Capability.GEOCODER: is_configured(settings.mapbox_token),
        Capability.SOCIAL_FEED: is_configured(settings.twitter_bearer),
        Capability.SCRAPER: settings.scraper_enabled,
        Capability.IMAGE_VERIFIER: ai_live,
    }
    return Capabilities(
        states={
            cap: Availability.LIVE if ok else Availability.UNAVAILABLE
            for cap, ok in live.items()
        }
    )
