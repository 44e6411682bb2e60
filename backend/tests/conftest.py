from datetime import datetime, timedelta, timezone

import httpx
import pytest
from fastapi.testclient import TestClient

from app import create_app
from capabilities import Availability, Capabilities, Capability
from config import Settings
from db import IN_MEMORY_URL, init_db, make_engine, make_session_factory

_ENV_VARS = [
    "ENVIRONMENT",
    "DATABASE_URL",
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
    "FOUNDRY_ENDPOINT",
    "MANAGED_IDENTITY_CLIENT_ID",
    "MAPBOX_TOKEN",
    "TWITTER_BEARER",
    "SCRAPER_ENABLED",
    "CACHE_TTL_SECONDS",
    "RATE_LIMIT",
    "RATE_LIMIT_ENABLED",
]


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeAI:
    """Stands in for AIClient.complete."""

    def __init__(self, reply: str | None = None, error: Exception | None = None):
        self.reply = reply
        self.error = error
        self.calls: list[list[dict]] = []

    def complete(self, messages, temperature=0.2, max_tokens=300):
        self.calls.append(messages)
        if self.error:
            raise self.error
        return self.reply


def all_live() -> Capabilities:
    return Capabilities(states={cap: Availability.LIVE for cap in Capability})


def none_live() -> Capabilities:
    return Capabilities(states={cap: Availability.UNAVAILABLE for cap in Capability})


def failing_transport(status_code: int = 503) -> httpx.MockTransport:
    return httpx.MockTransport(lambda request: httpx.Response(status_code, text="upstream down"))


@pytest.fixture
def make_settings(monkeypatch):
    def _make(**env) -> Settings:
        for var in _ENV_VARS:
            monkeypatch.delenv(var, raising=False)
        for var, value in env.items():
            monkeypatch.setenv(var, value)
        return Settings()

    return _make


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sessions():
    engine = make_engine(IN_MEMORY_URL)
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def client(make_settings):
    settings = make_settings(DATABASE_URL=IN_MEMORY_URL)
    with TestClient(create_app(settings, transport=failing_transport())) as c:
        yield c


@pytest.fixture
def services(client):
    return client.app.state.services
