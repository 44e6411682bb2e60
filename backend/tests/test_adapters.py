import json

import httpx
import pytest

from errors import UpstreamError, ValidationError
from services.adapters import AdapterResult, Source, parse_json_reply, with_fallback
from services.geocoding import Geocoder, mock_geocode, mock_reverse
from services.location import UNKNOWN_LOCATION, LocationExtractor, mock_location, resolve_location
from services.official_updates import OfficialUpdatesScraper, extract_updates, mock_updates, resolve_source
from services.social_media import SocialFeed, mock_posts
from services.verification import ImageVerifier, mock_post_verification

from conftest import FakeAI, all_live, failing_transport, none_live

ARTICLES_HTML = """
<html><body>
  <article><h2>Shelter opened</h2><p>The community center is open as a shelter.</p>
    <time datetime="2026-01-01T10:00:00Z">Jan 1</time></article>
  <article><h2>Title only</h2></article>
  <article><h3>Road closures</h3><div class="content">Highway 9 closed due to flooding.</div>
    <span class="date">Jan 2</span></article>
</body></html>
"""

NEWS_ITEM_HTML = """
<html><body>
  <div class="news-item"><span class="title">Boil water notice</span>
    <p class="description">Residents in the north district should boil water.</p></div>
</body></html>
"""


def _json_transport(payload) -> httpx.MockTransport:
    return httpx.MockTransport(lambda request: httpx.Response(200, json=payload))


def _html_transport(html: str) -> httpx.MockTransport:
    return httpx.MockTransport(lambda request: httpx.Response(200, text=html))


@pytest.fixture
def settings(make_settings):
    return make_settings(MAPBOX_TOKEN="pk.test", TWITTER_BEARER="bearer-test", OPENAI_API_KEY="sk-test")


# -- fallback machinery ------------------------------------------------------


@pytest.mark.asyncio
async def test_unavailable_capability_never_calls_live():
    async def live():
        raise AssertionError("live variant must not run")

    result = await with_fallback("thing", False, live, lambda: {"mock": True})

    assert result == AdapterResult({"mock": True}, Source.MOCK)
    assert result.is_mock


@pytest.mark.asyncio
async def test_upstream_error_falls_back_to_mock():
    async def live():
        raise UpstreamError("timeout")

    result = await with_fallback("thing", True, live, lambda: "mock")

    assert result.source is Source.MOCK
    assert result.value == "mock"


@pytest.mark.asyncio
async def test_other_errors_are_not_masked():
    async def live():
        raise ValidationError("bad input")

    with pytest.raises(ValidationError):
        await with_fallback("thing", True, live, lambda: "mock")


def test_parse_json_reply_handles_fences():
    assert parse_json_reply('```json\n{"a": 1}\n```') == {"a": 1}
    with pytest.raises(UpstreamError):
        parse_json_reply("I think it is real")
    with pytest.raises(UpstreamError):
        parse_json_reply("[1, 2]")


# -- geocoding -----------------------------------------------------------------


@pytest.mark.asyncio
async def test_geocode_live(settings):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"features": [{"center": [2.35, 48.85], "relevance": 0.97}]})

    geocoder = Geocoder(all_live(), settings, transport=httpx.MockTransport(handler))
    result = await geocoder.geocode("Paris, France")

    assert result.source is Source.LIVE
    assert result.value == {"location_name": "Paris, France", "lat": 48.85, "lon": 2.35, "confidence": 0.97}
    assert seen[0].url.params["access_token"] == "pk.test"
    assert seen[0].url.params["limit"] == "1"


@pytest.mark.asyncio
async def test_geocode_failure_matches_mock_shape(settings):
    geocoder = Geocoder(all_live(), settings, transport=failing_transport())
    result = await geocoder.geocode("Paris")

    assert result.source is Source.MOCK
    assert result.value == mock_geocode("Paris")
    assert set(result.value) == {"location_name", "lat", "lon", "confidence"}


@pytest.mark.asyncio
async def test_geocode_no_features_is_a_failure(settings):
    geocoder = Geocoder(all_live(), settings, transport=_json_transport({"features": []}))
    result = await geocoder.geocode("Atlantis")
    assert result.is_mock


@pytest.mark.asyncio
@pytest.mark.parametrize("payload", [[], "features", {"features": "oops"}, {"features": ["oops"]}])
async def test_malformed_mapbox_reply_falls_back(settings, payload):
    geocoder = Geocoder(all_live(), settings, transport=_json_transport(payload))

    forward = await geocoder.geocode("Paris")
    reverse = await geocoder.reverse(1.0, 2.0)

    assert forward.is_mock
    assert forward.value == mock_geocode("Paris")
    assert reverse.is_mock
    assert reverse.value == mock_reverse(1.0, 2.0)


@pytest.mark.asyncio
async def test_reverse_live_and_mock_share_shape(settings):
    payload = {"features": [{"place_name": "Paris, France", "relevance": 1, "context": [{"id": "country.1"}]}]}
    live = await Geocoder(all_live(), settings, transport=_json_transport(payload)).reverse(48.85, 2.35)
    mock = await Geocoder(all_live(), settings, transport=failing_transport()).reverse(48.85, 2.35)

    assert live.source is Source.LIVE
    assert live.value["location_name"] == "Paris, France"
    assert mock.value == mock_reverse(48.85, 2.35)
    assert set(live.value) == set(mock.value)


@pytest.mark.asyncio
@pytest.mark.parametrize("lat,lon", [(None, 2.0), (1.0, None), (91.0, 0.0), (0.0, -181.0)])
async def test_reverse_rejects_bad_coordinates(settings, lat, lon):
    geocoder = Geocoder(none_live(), settings)
    with pytest.raises(ValidationError):
        await geocoder.reverse(lat, lon)


# -- location extraction -------------------------------------------------------


def test_mock_location_heuristic():
    assert mock_location("Severe flooding in Lower Manhattan, NYC this morning") == {
        "location_name": "Lower Manhattan, NYC"
    }
    assert mock_location("water everywhere") == {"location_name": UNKNOWN_LOCATION}


@pytest.mark.asyncio
async def test_extract_live_strips_quotes():
    ai = FakeAI(reply='"Houston, Texas"\n')
    result = await LocationExtractor(all_live(), ai).extract("Flooding near downtown Houston")

    assert result.source is Source.LIVE
    assert result.value == {"location_name": "Houston, Texas"}
    assert "Flooding near downtown Houston" in ai.calls[0][0]["content"]


@pytest.mark.asyncio
async def test_extract_failure_uses_heuristic():
    ai = FakeAI(error=UpstreamError("quota"))
    result = await LocationExtractor(all_live(), ai).extract("Fire at Griffith Park today")

    assert result.is_mock
    assert result.value == {"location_name": "Griffith Park"}


@pytest.mark.asyncio
async def test_resolve_location_is_mock_if_any_step_is(settings):
    extractor = LocationExtractor(all_live(), FakeAI(reply="Paris"))
    payload = {"features": [{"center": [2.35, 48.85]}]}
    live = await resolve_location(extractor, Geocoder(all_live(), settings, _json_transport(payload)), "x")
    degraded = await resolve_location(extractor, Geocoder(all_live(), settings, failing_transport()), "x")

    assert live.source is Source.LIVE
    assert live.value == {"location_name": "Paris", "lat": 48.85, "lon": 2.35, "confidence": 0.8}
    assert degraded.is_mock
    assert set(degraded.value) == set(live.value)


# -- social feed ---------------------------------------------------------------


@pytest.mark.asyncio
async def test_social_live_maps_tweets(settings):
    payload = {
        "data": [
            {
                "id": "17",
                "text": "Bridge out on Route 5",
                "created_at": "2026-01-01T00:00:00Z",
                "author_id": "99",
                "public_metrics": {"like_count": 4, "retweet_count": 2, "reply_count": 1},
            }
        ]
    }
    feed = SocialFeed(all_live(), settings, transport=_json_transport(payload))
    result = await feed.fetch_posts("flood")

    assert result.source is Source.LIVE
    post = result.value[0]
    assert post["content"] == "Bridge out on Route 5"
    assert post["author"] == "@user_99"
    assert post["engagement"] == {"likes": 4, "retweets": 2, "replies": 1}
    assert set(post) == set(mock_posts()[0])


@pytest.mark.asyncio
async def test_social_failure_returns_mock_feed(settings):
    result = await SocialFeed(all_live(), settings, transport=failing_transport(401)).fetch_posts("flood")

    assert result.is_mock
    assert len(result.value) == 3
    assert [p["author"] for p in result.value] == ["@local_reporter", "@concerned_citizen", "@city_emergency"]


def test_mock_posts_use_requested_platform():
    assert {p["platform"] for p in mock_posts("facebook")} == {"facebook"}


# -- official updates scraper ----------------------------------------------------


def test_extract_updates_requires_title_and_body():
    updates = extract_updates(ARTICLES_HTML, "fema", "https://example.org")

    assert [u["title"] for u in updates] == ["Shelter opened", "Road closures"]
    assert updates[0]["timestamp"] == "2026-01-01T10:00:00Z"
    assert updates[1]["timestamp"] == "Jan 2"
    assert updates[1]["content"] == "Highway 9 closed due to flooding."


def test_extract_updates_tries_next_selector():
    updates = extract_updates(NEWS_ITEM_HTML, "redcross", "https://example.org")
    assert [u["title"] for u in updates] == ["Boil water notice"]


def test_extract_updates_truncates_and_limits():
    body = "x" * 800
    html = "".join(f"<article><h2>T{i}</h2><p>{body}</p></article>" for i in range(15))

    updates = extract_updates(html, "fema", "https://example.org")

    assert len(updates) == 10
    assert all(len(u["content"]) == 500 for u in updates)


def test_unknown_source_falls_back_to_fema():
    assert resolve_source("nope") == ("fema", "https://www.fema.gov/news-disasters")
    assert resolve_source(None)[0] == "fema"
    assert resolve_source("RedCross")[0] == "redcross"


@pytest.mark.asyncio
async def test_scrape_live(settings):
    scraper = OfficialUpdatesScraper(all_live(), settings, transport=_html_transport(ARTICLES_HTML))
    result = await scraper.scrape("weather")

    assert result.source is Source.LIVE
    assert result.value[0]["url"] == "https://www.weather.gov/news"
    assert result.value[0]["source"] == "weather"


@pytest.mark.asyncio
async def test_scrape_with_zero_items_returns_three_mock_updates(settings):
    scraper = OfficialUpdatesScraper(all_live(), settings, transport=_html_transport("<html><p>Nothing</p></html>"))
    result = await scraper.scrape("fema")

    assert result.is_mock
    assert len(result.value) == 3
    assert set(result.value[0]) == {"id", "source", "title", "content", "timestamp", "priority", "url"}
    assert [u["priority"] for u in result.value] == ["high", "high", "medium"]


@pytest.mark.asyncio
async def test_scrape_transport_failure_matches_live_shape(settings):
    live = await OfficialUpdatesScraper(all_live(), settings, _html_transport(ARTICLES_HTML)).scrape("fema")
    failed = await OfficialUpdatesScraper(all_live(), settings, failing_transport()).scrape("fema")

    assert failed.is_mock
    assert set(failed.value[0]) == set(live.value[0])


def test_mock_updates_label_with_source():
    assert {u["source"] for u in mock_updates("redcross")} == {"redcross"}
    assert mock_updates()[1]["source"] == "National Weather Service"


# -- verification ---------------------------------------------------------------


@pytest.mark.asyncio
async def test_verify_image_live():
    reply = "```json\n" + json.dumps({"verified": False, "confidence": 1.4, "analysis": "Cloned smoke."}) + "\n```"
    ai = FakeAI(reply=reply)
    result = await ImageVerifier(all_live(), ai).verify_image("https://img.example/1.jpg")

    assert result.source is Source.LIVE
    assert result.value == {"verified": False, "confidence": 1.0, "analysis": "Cloned smoke."}
    user_content = ai.calls[0][1]["content"]
    assert user_content[1]["image_url"]["url"] == "https://img.example/1.jpg"


@pytest.mark.asyncio
async def test_verify_image_unparseable_reply_falls_back():
    result = await ImageVerifier(all_live(), FakeAI(reply="Looks fine to me")).verify_image("https://img.example/1.jpg")

    assert result.is_mock
    assert result.value == {
        "verified": True,
        "confidence": 0.85,
        "analysis": "Image appears to be authentic with no signs of manipulation",
    }


@pytest.mark.asyncio
async def test_verify_post_unconfigured_uses_keyword_heuristic():
    ai = FakeAI(reply="unused")
    result = await ImageVerifier(none_live(), ai).verify_post("Flood waters rising on 5th street", "https://i/x.png")

    assert result.is_mock
    assert result.value["confidence"] == 0.8
    assert result.value["verified"] is True
    assert ai.calls == []


@pytest.mark.parametrize(
    "content,image,confidence,verified",
    [
        ("EMERGENCY at the plant", None, 0.6, True),
        ("Wildfire! fire everywhere", "https://i/x.png", 0.8, True),
        ("Nice weather today", "https://i/x.png", 0.3, False),
    ],
)
def test_post_heuristic(content, image, confidence, verified):
    verdict = mock_post_verification(content, image)
    assert verdict["confidence"] == confidence
    assert verdict["verified"] is verified


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "flag,confidence,expected",
    [("false", 0.9, True), ("true", 0.2, False), (1, 0.1, False), (False, 0.9, False), (True, 0.1, True)],
)
async def test_verdict_flag_must_be_a_boolean(flag, confidence, expected):
    reply = json.dumps({"verified": flag, "confidence": confidence, "analysis": "ok"})
    result = await ImageVerifier(all_live(), FakeAI(reply=reply)).verify_post("Flood on Main St")

    assert result.source is Source.LIVE
    assert result.value["verified"] is expected
