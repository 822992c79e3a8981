"""Object cache backends shared by the aggregate cache and job throttling.

The backend is picked once from configuration; unknown names fail fast.

- ``local``: in-process memory, per worker process
- ``database``: rows in ``wordcounter_cache``, shared by every process using the DB
- ``none``: caches nothing, every read misses and every ``add`` succeeds
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from sqlalchemy import delete
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import col

from wordcounter.config.logger import app_logger
from wordcounter.db.db import store_errors
from wordcounter.errors import ConfigurationError
from wordcounter.models.cache_entry import CacheEntry

Clock = Callable[[], float]

KEY_PREFIX = "wordcounter"


class CacheBackend(str, Enum):
    LOCAL = "local"
    DATABASE = "database"
    NONE = "none"

    @classmethod
    def parse(cls, name: str) -> "CacheBackend":
        try:
            return cls((name or "").strip().lower())
        except ValueError:
            valid = ", ".join(backend.value for backend in cls)
            raise ConfigurationError(f"Invalid cache service <{name}>. Valid options are: <{valid}>") from None


def make_key(*parts: object) -> str:
    return ":".join([KEY_PREFIX, *(str(part) for part in parts)])


class ObjectCache(ABC):
    """Async key/value cache with per-key TTL (seconds)."""

    def __init__(self, clock: Clock = time.time):
        self._clock = clock

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Cached value, or None when absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int) -> None:
        """Store ``value`` for ``ttl`` seconds."""

    @abstractmethod
    async def add(self, key: str, value: Any, ttl: int) -> bool:
        """Store only if no live value exists; True if this call stored it."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""

    async def get_with_set_callback(
        self,
        key: str,
        ttl: int,
        callback: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Cache-aside read: return the cached value or compute, store and return it."""
        value = await self.get(key)
        if value is not None:
            return value

        app_logger.debug(f"Cache miss for {key}, recomputing")
        value = await callback()
        await self.set(key, value, ttl)
        return value


class MemoryObjectCache(ObjectCache):
    """Thread-safe in-process cache."""

    def __init__(self, clock: Clock = time.time):
        super().__init__(clock)
        self._entries: Dict[str, Tuple[Any, float]] = {}
        self._lock = threading.Lock()

    def _live(self, key: str, now: float) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= now:
            del self._entries[key]
            return None
        return value

    async def get(self, key: str) -> Optional[Any]:
        with self._lock:
            return self._live(key, self._clock())

    async def set(self, key: str, value: Any, ttl: int) -> None:
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl)

    async def add(self, key: str, value: Any, ttl: int) -> bool:
        with self._lock:
            now = self._clock()
            if self._live(key, now) is not None:
                return False
            self._entries[key] = (value, now + ttl)
            return True

    async def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)


class NullObjectCache(ObjectCache):
    """Caches nothing."""

    async def get(self, key: str) -> Optional[Any]:
        return None

    async def set(self, key: str, value: Any, ttl: int) -> None:
        return None

    async def add(self, key: str, value: Any, ttl: int) -> bool:
        return True

    async def delete(self, key: str) -> None:
        return None


class DatabaseObjectCache(ObjectCache):
    """Cache rows in the application database, visible to every worker."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        dialect_name: str = "sqlite",
        clock: Clock = time.time,
    ):
        super().__init__(clock)
        self._session_maker = session_maker
        self._dialect_name = dialect_name

    def _insert(self):
        if self._dialect_name == "postgresql":
            return postgresql.insert(CacheEntry.__table__)
        return sqlite.insert(CacheEntry.__table__)

    async def get(self, key: str) -> Optional[Any]:
        with store_errors("cache.get"):
            async with self._session_maker() as session:
                entry = await session.get(CacheEntry, key)
        if entry is None or entry.expires_at <= self._clock():
            return None
        return (entry.value or {}).get("v")

    async def set(self, key: str, value: Any, ttl: int) -> None:
        stmt = self._insert().values(key=key, value={"v": value}, expires_at=self._clock() + ttl)
        stmt = stmt.on_conflict_do_update(
            index_elements=[CacheEntry.__table__.c.key],
            set_={"value": stmt.excluded.value, "expires_at": stmt.excluded.expires_at},
        )
        with store_errors("cache.set"):
            async with self._session_maker() as session:
                await session.execute(stmt)
                await session.commit()

    async def add(self, key: str, value: Any, ttl: int) -> bool:
        now = self._clock()
        with store_errors("cache.add"):
            async with self._session_maker() as session:
                # Expired rows do not block the insert
                await session.execute(
                    delete(CacheEntry).where(col(CacheEntry.key) == key, col(CacheEntry.expires_at) <= now)
                )
                result = await session.execute(
                    self._insert()
                    .values(key=key, value={"v": value}, expires_at=now + ttl)
                    .on_conflict_do_nothing(index_elements=[CacheEntry.__table__.c.key])
                )
                await session.commit()
        return bool(result.rowcount)

    async def delete(self, key: str) -> None:
        with store_errors("cache.delete"):
            async with self._session_maker() as session:
                await session.execute(delete(CacheEntry).where(col(CacheEntry.key) == key))
                await session.commit()


def create_cache(
    backend: CacheBackend,
    session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
    dialect_name: str = "sqlite",
    clock: Clock = time.time,
) -> ObjectCache:
    """Build the configured cache backend."""
    if backend is CacheBackend.LOCAL:
        return MemoryObjectCache(clock=clock)
    if backend is CacheBackend.NONE:
        return NullObjectCache(clock=clock)
    if session_maker is None:
        raise ConfigurationError("The database cache service needs a database session")
    return DatabaseObjectCache(session_maker, dialect_name=dialect_name, clock=clock)
