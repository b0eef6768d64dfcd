"""
Per-user quota for the AI coach: N requests per UTC clock hour and M per UTC day.

Counters live in a CounterStore keyed by user and window start, so a new
window starts from zero without any reset job. The default store is
process-local memory (lost on restart, not shared between workers); set
COACH_RATE_LIMIT_BACKEND=redis to share counters through Redis.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException

from tenk.config import settings

logger = logging.getLogger(__name__)

HOUR_SECONDS = 3600
DAY_SECONDS = 86400

RATE_LIMIT_MESSAGE = "You've hit your hype quota for now. Take a breather and come back later!"


class CounterStore:
    """Keyed counters that expire ``ttl`` seconds after their first increment."""

    async def count(self, key: str) -> int:
        raise NotImplementedError

    async def increment(self, key: str, ttl: int) -> int:
        raise NotImplementedError


class InMemoryCounterStore(CounterStore):
    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._counters: dict[str, tuple[int, float]] = {}

    def _prune(self, now: float) -> None:
        expired = [k for k, (_, exp) in self._counters.items() if exp <= now]
        for k in expired:
            del self._counters[k]

    async def count(self, key: str) -> int:
        with self._lock:
            self._prune(self._clock())
            return self._counters.get(key, (0, 0.0))[0]

    async def increment(self, key: str, ttl: int) -> int:
        with self._lock:
            now = self._clock()
            self._prune(now)
            value, expires = self._counters.get(key, (0, now + ttl))
            self._counters[key] = (value + 1, expires)
            return value + 1

    def clear(self) -> None:
        with self._lock:
            self._counters.clear()


class RedisCounterStore(CounterStore):
    def __init__(self, client):
        self._client = client

    async def count(self, key: str) -> int:
        value = await self._client.get(key)
        return int(value) if value else 0

    async def increment(self, key: str, ttl: int) -> int:
        pipe = self._client.pipeline()
        pipe.incr(key)
        pipe.ttl(key)
        results = await pipe.execute()
        if int(results[1]) == -1:
            await self._client.expire(key, ttl)
        return int(results[0])


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    retry_after: int = 0
    window: str | None = None  # "hour" | "day" when rejected


def _hour_start(now: datetime) -> datetime:
    return now.replace(minute=0, second=0, microsecond=0)


def _day_start(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


class CoachRateLimiter:
    def __init__(self, store: CounterStore, hourly_limit: int, daily_limit: int):
        self.store = store
        self.hourly_limit = hourly_limit
        self.daily_limit = daily_limit

    @staticmethod
    def hour_key(user_id: int, now: datetime) -> str:
        return f"rate_limit:coach:hour:{user_id}:{_hour_start(now).strftime('%Y-%m-%dT%H')}"

    @staticmethod
    def day_key(user_id: int, now: datetime) -> str:
        return f"rate_limit:coach:day:{user_id}:{_day_start(now).date().isoformat()}"

    async def check_and_increment(self, user_id: int, now: datetime | None = None) -> RateLimitDecision:
        """Reject when either window is full; otherwise count the request in both windows."""
        now = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
        hour_key = self.hour_key(user_id, now)
        day_key = self.day_key(user_id, now)

        if await self.store.count(day_key) >= self.daily_limit:
            retry = _day_start(now) + timedelta(days=1) - now
            return RateLimitDecision(False, max(1, int(retry.total_seconds())), "day")
        if await self.store.count(hour_key) >= self.hourly_limit:
            retry = _hour_start(now) + timedelta(hours=1) - now
            return RateLimitDecision(False, max(1, int(retry.total_seconds())), "hour")

        await self.store.increment(hour_key, HOUR_SECONDS)
        await self.store.increment(day_key, DAY_SECONDS)
        return RateLimitDecision(True)


# Lazy singletons
_redis_client = None
_limiter: CoachRateLimiter | None = None


def get_redis():
    """Async Redis client (lazy connect)."""
    global _redis_client
    if _redis_client is None:
        from redis.asyncio import from_url

        _redis_client = from_url(settings.redis_url, encoding="utf-8", decode_responses=True)
    return _redis_client


async def close_redis() -> None:
    global _redis_client
    if _redis_client is not None:
        try:
            await _redis_client.aclose()
        except Exception as e:
            logger.warning("Rate limit: error closing Redis: %s", e)
        _redis_client = None


def get_coach_rate_limiter() -> CoachRateLimiter:
    global _limiter
    if _limiter is None:
        if settings.coach_rate_limit_backend == "redis":
            store: CounterStore = RedisCounterStore(get_redis())
        else:
            store = InMemoryCounterStore()
        _limiter = CoachRateLimiter(store, settings.coach_hourly_limit, settings.coach_daily_limit)
        logger.info(
            "Rate limit: coach limiter backend=%s hourly=%s daily=%s",
            settings.coach_rate_limit_backend, settings.coach_hourly_limit, settings.coach_daily_limit,
        )
    return _limiter


def reset_coach_rate_limiter() -> None:
    """Drop the limiter so the next call builds a fresh one from settings."""
    global _limiter
    _limiter = None


async def check_and_consume_coach_limit(user_id: int) -> None:
    """
    Count one coach request for the user. Raises HTTPException(429) with
    Retry-After when the hourly or daily cap is reached. Redis errors fail open.
    """
    limiter = get_coach_rate_limiter()
    try:
        decision = await limiter.check_and_increment(user_id)
    except Exception as e:
        logger.warning("Rate limit: counter store error, allowing coach request: %s", e)
        return
    if not decision.allowed:
        logger.info("Rate limit: coach %s cap reached for user_id=%s", decision.window, user_id)
        raise HTTPException(
            status_code=429,
            detail=RATE_LIMIT_MESSAGE,
            headers={"Retry-After": str(decision.retry_after)},
        )
