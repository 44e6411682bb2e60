"""Cache-through reads for slow third-party calls.

Values live in the datastore's `cache` table (see services/cache_store.py) for
a fixed TTL. There is no single-flight: two requests missing the same key both
run the producer and the later write wins. Producers are idempotent so that
only costs an extra upstream call.

When the datastore itself is unavailable the cache is skipped entirely and
every call goes straight to the producer. Store reads and writes are
blocking SQLAlchemy calls and run in worker threads.
"""

import asyncio
import base64
import hashlib
import json
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

from capabilities import Capabilities, Capability
from errors import StorageError
from models import utcnow
from services.cache_store import CacheStore

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 3600

# Leaves room for the namespace inside String(512)
MAX_ENCODED_KEY_CHARS = 256

Producer = Callable[[], Awaitable[Any]]


def cache_key(namespace: str, *parts: Any) -> str:
    """Build a collision-free key, e.g. cache_key("geocode", text) -> "geocode:<b64>".

    Inputs too long to spell out become "namespace:h:<sha256>" so every key
    fits the `cache.key` column.
    """
    raw = json.dumps(list(parts), separators=(",", ":"), ensure_ascii=False, default=str)
    encoded = base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii").rstrip("=")
    if len(encoded) > MAX_ENCODED_KEY_CHARS:
        digest = hashlib.sha256(raw.encode("utf-8")).hexdigest()
        return f"{namespace}:h:{digest}"
    return f"{namespace}:{encoded}"


class CacheThrough:
    def __init__(
        self,
        store: CacheStore | None,
        capabilities: Capabilities,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._capabilities = capabilities
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return self._store is not None and self._capabilities.is_live(Capability.DATASTORE)

    async def get_or_compute(self, key: str, ttl_seconds: int, producer: Producer) -> Any:
        """Return the cached value for `key` if unexpired, else compute, store and return it.

        Producer errors propagate and nothing is written. A failed write is
        logged and the fresh value is still returned. A failed read raises
        StorageError.
        """
        if not self.enabled:
            logger.debug("Cache bypassed (datastore unavailable): %s", key)
            return await producer()

        cached = await asyncio.to_thread(self._store.get, key)
        if cached is not None and cached.expires_at > self._clock():
            logger.debug("Cache hit: %s", key)
            return cached.value

        logger.debug("Cache miss: %s", key)
        value = await producer()

        try:
            await asyncio.to_thread(self._store.put, key, value, ttl_seconds)
        except StorageError as e:
            logger.warning("Cache write failed, serving uncached value for %s: %s", key, e)
        return value


async def run_sweeper(store: CacheStore, interval_seconds: int) -> None:
    """Purge expired cache rows every `interval_seconds` until cancelled."""
    logger.info("Cache sweeper started (every %ds)", interval_seconds)
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            removed = await asyncio.to_thread(store.purge_expired)
        except StorageError as e:
            logger.warning("Cache sweep failed: %s", e)
            continue
        logger.info("Cache sweep removed %d expired entries", removed)
