"""Social feed search (Twitter/X v2 recent search) with a mock feed."""

import logging
from datetime import datetime, timedelta, timezone

import httpx

from capabilities import Capabilities, Capability
from config import Settings
from errors import UpstreamError
from services.adapters import AdapterResult, with_fallback

logger = logging.getLogger(__name__)

TWITTER_SEARCH_URL = "https://api.twitter.com/2/tweets/search/recent"
DEFAULT_QUERY = "disaster emergency"
MAX_RESULTS = 10

# (content, author, author_verified, minutes_ago, likes, retweets, replies, location, verified)
_MOCK_POSTS = [
    (
        "Heavy flooding reported in the downtown area. Emergency services are responding.",
        "@local_reporter", True, 5, 45, 12, 8, "Downtown Area", True,
    ),
    (
        "Just saw emergency vehicles heading towards the affected area. Stay safe everyone!",
        "@concerned_citizen", False, 10, 23, 5, 3, "Near Main Street", False,
    ),
    (
        "Official evacuation order issued for residents in flood-prone areas. Please follow instructions.",
        "@city_emergency", True, 15, 156, 89, 23, "City Hall", True,
    ),
]


def mock_posts(platform: str = "twitter") -> list[dict]:
    now = datetime.now(timezone.utc)
    stamp = int(now.timestamp() * 1000)
    return [
        {
            "id": f"post_{stamp}_{i}",
            "platform": platform,
            "content": content,
            "author": author,
            "author_verified": author_verified,
            "timestamp": (now - timedelta(minutes=minutes_ago)).isoformat(),
            "engagement": {"likes": likes, "retweets": retweets, "replies": replies},
            "location": location,
            "verified": verified,
        }
        for i, (content, author, author_verified, minutes_ago, likes, retweets, replies, location, verified)
        in enumerate(_MOCK_POSTS, 1)
    ]


def _tweet_to_post(tweet: dict) -> dict:
    metrics = tweet.get("public_metrics") or {}
    return {
        "id": tweet["id"],
        "platform": "twitter",
        "content": tweet.get("text", ""),
        "author": f"@user_{tweet.get('author_id', tweet['id'])}",
        "author_verified": False,
        "timestamp": tweet.get("created_at"),
        "engagement": {
            "likes": metrics.get("like_count", 0),
            "retweets": metrics.get("retweet_count", 0),
            "replies": metrics.get("reply_count", 0),
        },
        "location": None,
        "verified": False,
    }


class SocialFeed:
    def __init__(
        self,
        capabilities: Capabilities,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._capabilities = capabilities
        self._bearer = settings.twitter_bearer
        self._timeout = settings.http_timeout_seconds
        self._transport = transport

    def mock_posts(self, platform: str = "twitter") -> list[dict]:
        return mock_posts(platform)

    async def fetch_posts(self, query: str | None = None) -> AdapterResult:
        query = (query or DEFAULT_QUERY).strip() or DEFAULT_QUERY
        return await with_fallback(
            "social feed",
            self._capabilities.is_live(Capability.SOCIAL_FEED),
            lambda: self._fetch_live(query),
            lambda: mock_posts("twitter"),
        )

    async def _fetch_live(self, query: str) -> list[dict]:
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.get(
                    TWITTER_SEARCH_URL,
                    params={
                        "query": query,
                        "max_results": MAX_RESULTS,
                        "tweet.fields": "created_at,public_metrics,author_id",
                    },
                    headers={"Authorization": f"Bearer {self._bearer}"},
                )
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise UpstreamError(f"Twitter search failed: {e}") from e

        try:
            posts = [_tweet_to_post(t) for t in data.get("data") or []]
        except (KeyError, TypeError, AttributeError) as e:
            raise UpstreamError(f"Malformed Twitter response: {e}") from e

        logger.info("Twitter search %r returned %d posts", query, len(posts))
        return posts
