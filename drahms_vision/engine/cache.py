"""
Response Cache

Serves recent identical requests without re-invoking providers, and
coalesces concurrent identical requests onto one in-flight computation.

Keys hash (image fingerprint, category, context bucket, threshold).
Entries are immutable once written and expire by TTL; the in-memory store
additionally evicts least-recently-used entries past its capacity.

Stores:
- InMemoryCacheStore: process-local OrderedDict (default)
- RedisCacheStore: redis.asyncio, entries as JSON with ISO-8601 timestamps

Store failures raise CacheUnavailable; the cache logs them and behaves as a
miss (reads) or a no-op (writes), so a broken backend never fails a request.
"""

import asyncio
import hashlib
import json
import logging
from abc import ABC, abstractmethod
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from redis.exceptions import RedisError

from drahms_vision.core.exceptions import CacheUnavailable
from drahms_vision.engine.base import AggregatedResult, utcnow

logger = logging.getLogger(__name__)


class CacheStatus(str, Enum):
    HIT = "hit"
    MISS = "miss"
    COALESCED = "coalesced"


@dataclass(frozen=True)
class CacheEntry:
    """Stored result with its expiry."""
    key: str
    value: AggregatedResult
    created_at: datetime
    expires_at: datetime

    def is_fresh(self, now: datetime) -> bool:
        return now < self.expires_at

    @property
    def ttl(self) -> timedelta:
        return self.expires_at - self.created_at

    def to_json(self) -> str:
        return json.dumps({
            "key": self.key,
            "value": self.value.to_dict(),
            "created_at": self.created_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
        })

    @classmethod
    def from_json(cls, payload: str) -> "CacheEntry":
        data = json.loads(payload)
        return cls(
            key=data["key"],
            value=AggregatedResult.from_dict(data["value"]),
            created_at=datetime.fromisoformat(data["created_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
        )


class CacheStore(ABC):
    """Storage backend behind the response cache."""

    @abstractmethod
    async def get(self, key: str, now: datetime) -> Optional[CacheEntry]:
        """Fresh entry for key, or None."""
        pass

    @abstractmethod
    async def set(self, entry: CacheEntry) -> None:
        pass

    @abstractmethod
    async def clear(self) -> None:
        pass

    async def stats(self) -> Dict[str, Any]:
        return {}

    async def close(self) -> None:
        return None


class InMemoryCacheStore(CacheStore):
    """TTL + LRU store for a single process."""

    def __init__(self, capacity: Optional[int] = 512):
        self.capacity = capacity
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self.evictions = 0

    async def get(self, key: str, now: datetime) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if not entry.is_fresh(now):
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return entry

    async def set(self, entry: CacheEntry) -> None:
        if entry.key in self._entries:
            # Entries are never overwritten while fresh
            existing = self._entries[entry.key]
            if existing.is_fresh(entry.created_at):
                return
        self._entries[entry.key] = entry
        self._entries.move_to_end(entry.key)
        if self.capacity is not None:
            while len(self._entries) > self.capacity:
                evicted_key, _ = self._entries.popitem(last=False)
                self.evictions += 1
                logger.debug(f"Evicted cache entry {evicted_key[:12]}")

    async def clear(self) -> None:
        self._entries.clear()

    async def stats(self) -> Dict[str, Any]:
        return {
            "backend": "memory",
            "size": len(self._entries),
            "capacity": self.capacity,
            "evictions": self.evictions,
        }


class RedisCacheStore(CacheStore):
    """
    Redis-backed store.

    Values are CacheEntry JSON; Redis expires keys with the entry TTL.
    """

    def __init__(self, client: Any, prefix: str = "drahms:identify:"):
        """
        Args:
            client: redis.asyncio client (decode_responses=True)
            prefix: Key namespace
        """
        self.client = client
        self.prefix = prefix

    @classmethod
    def from_url(cls, url: str, prefix: str = "drahms:identify:") -> "RedisCacheStore":
        import redis.asyncio as redis

        return cls(redis.from_url(url, decode_responses=True), prefix=prefix)

    def _name(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def get(self, key: str, now: datetime) -> Optional[CacheEntry]:
        try:
            payload = await self.client.get(self._name(key))
        except (RedisError, OSError) as e:
            raise CacheUnavailable(f"Redis get failed: {e}") from e
        if payload is None:
            return None
        try:
            entry = CacheEntry.from_json(payload)
        except (ValueError, KeyError, TypeError) as e:
            logger.warning(f"Dropping unreadable cache entry {key[:12]}: {e}")
            return None
        return entry if entry.is_fresh(now) else None

    async def set(self, entry: CacheEntry) -> None:
        ttl_ms = max(1, int(entry.ttl.total_seconds() * 1000))
        try:
            # nx: an entry is immutable once written
            await self.client.set(self._name(entry.key), entry.to_json(), px=ttl_ms, nx=True)
        except (RedisError, OSError) as e:
            raise CacheUnavailable(f"Redis set failed: {e}") from e

    async def clear(self) -> None:
        try:
            async for name in self.client.scan_iter(match=f"{self.prefix}*"):
                await self.client.delete(name)
        except (RedisError, OSError) as e:
            raise CacheUnavailable(f"Redis clear failed: {e}") from e

    async def stats(self) -> Dict[str, Any]:
        return {"backend": "redis", "prefix": self.prefix}

    async def close(self) -> None:
        await self.client.aclose()


class ResponseCache:
    """
    Result cache with request coalescing.

    At most one computation per key is in flight: the first caller on a miss
    becomes the leader and starts the computation; concurrent callers join the
    same task and receive the same result object.
    """

    def __init__(
        self,
        store: Optional[CacheStore] = None,
        success_ttl: float = 1800.0,
        unidentified_ttl: float = 120.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        """
        Args:
            store: Storage backend (defaults to an in-memory store)
            success_ttl: Seconds an identified result stays cached
            unidentified_ttl: Seconds an unidentified result stays cached
            clock: Time source (injectable for tests)
        """
        self.store = store if store is not None else InMemoryCacheStore()
        self.success_ttl = success_ttl
        self.unidentified_ttl = unidentified_ttl
        self._clock = clock
        self._inflight: Dict[str, asyncio.Task] = {}
        self._lock = asyncio.Lock()
        self.hits = 0
        self.misses = 0
        self.coalesced = 0
        self.store_errors = 0

    @staticmethod
    def make_key(
        image_fingerprint: str,
        category: str,
        bucket: Tuple,
        threshold: float,
    ) -> str:
        """Stable cache key for a request."""
        material = json.dumps(
            [image_fingerprint, category, list(bucket), round(threshold, 4)],
            separators=(",", ":"),
        )
        return hashlib.sha256(material.encode("utf-8")).hexdigest()

    def ttl_for(self, result: AggregatedResult) -> float:
        return self.unidentified_ttl if result.unidentified else self.success_ttl

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    async def get(self, key: str) -> Optional[AggregatedResult]:
        """Cached result for key; store failures count as a miss."""
        try:
            entry = await self.store.get(key, self._clock())
        except CacheUnavailable as e:
            self.store_errors += 1
            logger.warning(f"Cache unavailable on read, treating as miss: {e}")
            return None
        return entry.value if entry else None

    async def put(self, key: str, result: AggregatedResult) -> None:
        """Store a result; store failures are logged and ignored."""
        now = self._clock()
        entry = CacheEntry(
            key=key,
            value=result,
            created_at=now,
            expires_at=now + timedelta(seconds=self.ttl_for(result)),
        )
        try:
            await self.store.set(entry)
        except CacheUnavailable as e:
            self.store_errors += 1
            logger.warning(f"Cache unavailable on write, result not cached: {e}")

    async def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[AggregatedResult]],
    ) -> Tuple[AggregatedResult, CacheStatus]:
        """
        Return the cached result, join an in-flight computation, or run one.

        The computation runs in a task owned by the cache. Callers wait on it
        through asyncio.shield, so a cancelled caller stops waiting while the
        computation continues for everyone else.

        Returns:
            (result, how it was obtained)
        """
        cached = await self.get(key)
        if cached is not None:
            self.hits += 1
            return cached, CacheStatus.HIT

        async with self._lock:
            task = self._inflight.get(key)
            leader = task is None
            if leader:
                task = asyncio.create_task(self._compute_and_store(key, compute))
                task.add_done_callback(lambda t: self._computation_done(key, t))
                self._inflight[key] = task

        if not leader:
            self.coalesced += 1
            logger.debug(f"Joining in-flight computation for {key[:12]}")
            result, _ = await asyncio.shield(task)
            return result, CacheStatus.COALESCED

        return await asyncio.shield(task)

    async def _compute_and_store(
        self,
        key: str,
        compute: Callable[[], Awaitable[AggregatedResult]],
    ) -> Tuple[AggregatedResult, CacheStatus]:
        # A previous leader may have finished between our lookup and registration
        cached = await self.get(key)
        if cached is not None:
            self.hits += 1
            return cached, CacheStatus.HIT

        self.misses += 1
        result = await compute()
        await self.put(key, result)
        return result, CacheStatus.MISS

    def _computation_done(self, key: str, task: asyncio.Task) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.debug(f"Computation for {key[:12]} failed: {error!r}")

    async def clear(self) -> None:
        try:
            await self.store.clear()
        except CacheUnavailable as e:
            self.store_errors += 1
            logger.warning(f"Cache unavailable on clear: {e}")
        logger.info("Response cache cleared")

    async def close(self) -> None:
        for task in list(self._inflight.values()):
            task.cancel()
        await self.store.close()

    async def stats(self) -> Dict[str, Any]:
        try:
            store_stats = await self.store.stats()
        except CacheUnavailable as e:
            store_stats = {"error": str(e)}
        return {
            "hits": self.hits,
            "misses": self.misses,
            "coalesced": self.coalesced,
            "in_flight": self.inflight_count,
            "store_errors": self.store_errors,
            "success_ttl_s": self.success_ttl,
            "unidentified_ttl_s": self.unidentified_ttl,
            **store_stats,
        }
