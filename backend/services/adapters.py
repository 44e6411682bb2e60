"""Live/mock plumbing shared by every external adapter.

Each adapter has a live variant (real network call) and a mock variant
(synthetic data with the same shape). `with_fallback` picks the variant and
turns an UpstreamError from the live call into the mock result, so callers
always get a value. The result keeps which path ran; routes unwrap `.value`.
"""

import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from errors import UpstreamError

logger = logging.getLogger(__name__)


class Source(str, Enum):
    LIVE = "live"
    MOCK = "mock"


@dataclass(frozen=True)
class AdapterResult:
    value: Any
    source: Source

    @property
    def is_mock(self) -> bool:
        return self.source is Source.MOCK


async def with_fallback(
    name: str,
    available: bool,
    live_call: Callable[[], Awaitable[Any]],
    mock_call: Callable[[], Any],
) -> AdapterResult:
    if not available:
        logger.info("%s not configured, using mock data", name)
        return AdapterResult(mock_call(), Source.MOCK)

    try:
        value = await live_call()
    except UpstreamError as e:
        logger.warning("%s failed, falling back to mock data: %s", name, e)
        return AdapterResult(mock_call(), Source.MOCK)

    return AdapterResult(value, Source.LIVE)


def unwrap(result: AdapterResult, key: str) -> Any:
    """Collapse to the plain value, flagging mock data that is about to be cached."""
    if result.is_mock:
        logger.warning("Caching mock data under %s", key)
    return result.value


def parse_json_reply(reply: str) -> dict:
    """Parse a model reply that should be a JSON object, tolerating ``` fences."""
    clean = reply.strip()
    if clean.startswith("```"):
        clean = clean.split("\n", 1)[-1].rsplit("```", 1)[0].strip()
    try:
        parsed = json.loads(clean)
    except json.JSONDecodeError as e:
        raise UpstreamError(f"Model returned non-JSON reply: {reply[:200]!r}") from e
    if not isinstance(parsed, dict):
        raise UpstreamError("Model returned JSON that is not an object")
    return parsed
