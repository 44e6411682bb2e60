"""Durable TTL cache table: key -> (JSON value, expires_at)."""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any, NamedTuple

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from errors import StorageError
from models import CacheEntry, as_utc, utcnow

logger = logging.getLogger(__name__)


class CachedValue(NamedTuple):
    value: Any
    expires_at: datetime


class CacheStore:
    """get / put / purge_expired over the `cache` table.

    Expiry is not checked on read; callers compare `expires_at` against their
    own clock. Datastore failures raise StorageError instead of looking like
    a miss.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Callable[[], datetime] = utcnow,
    ):
        self._sessions = session_factory
        self._clock = clock

    def get(self, key: str) -> CachedValue | None:
        try:
            with self._sessions() as session:
                entry = session.get(CacheEntry, key)
                if entry is None:
                    return None
                return CachedValue(entry.value, as_utc(entry.expires_at))
        except SQLAlchemyError as e:
            raise StorageError(f"Cache read failed for {key!r}: {e}") from e

    def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        expires_at = self._clock() + timedelta(seconds=ttl_seconds)
        try:
            with self._sessions.begin() as session:
                # merge() is the portable upsert: one row per key, last write wins
                session.merge(CacheEntry(key=key, value=value, expires_at=expires_at))
        except SQLAlchemyError as e:
            raise StorageError(f"Cache write failed for {key!r}: {e}") from e

    def purge_expired(self, now: datetime | None = None) -> int:
        """Delete rows already expired at `now`. Returns how many were removed."""
        now = now or self._clock()
        try:
            with self._sessions.begin() as session:
                result = session.execute(delete(CacheEntry).where(CacheEntry.expires_at < now))
                return result.rowcount or 0
        except SQLAlchemyError as e:
            raise StorageError(f"Cache purge failed: {e}") from e

    def count(self) -> int:
        try:
            with self._sessions() as session:
                return session.scalar(select(func.count()).select_from(CacheEntry)) or 0
        except SQLAlchemyError as e:
            raise StorageError(f"Cache count failed: {e}") from e
