"""Fixed-window rate limiting for the machine-to-machine endpoints.

Call sites depend only on ``RateLimiter``; the bucket store behind it is
either process-local memory or Redis. With the memory store every process
keeps its own buckets, so running N instances multiplies the effective limit
by N. Use ``RATE_LIMIT_BACKEND=redis`` to share buckets between instances.
"""

import logging
import math
import time
from dataclasses import dataclass
from threading import Lock
from typing import Callable

import redis
from fastapi import Request, Response

from clinic_scheduler.core import config
from clinic_scheduler.core.errors import BackingStoreFailure, RateLimited

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    success: bool
    remaining: int
    reset_at: int


class RateLimitStore:
    """Counts hits per key; ``hit`` must check and increment atomically."""

    def hit(self, key: str, limit: int, window_seconds: int, now: float) -> RateLimitResult:
        raise NotImplementedError


@dataclass
class _Bucket:
    count: int
    reset_at: float


class InMemoryRateLimitStore(RateLimitStore):
    cleanup_interval_seconds = 300

    def __init__(self):
        self._buckets: dict[str, _Bucket] = {}
        self._lock = Lock()
        self._last_cleanup = 0.0

    def _cleanup(self, now: float) -> None:
        if now - self._last_cleanup < self.cleanup_interval_seconds:
            return

        expired = [key for key, bucket in self._buckets.items() if bucket.reset_at <= now]
        for key in expired:
            del self._buckets[key]

        if expired:
            logger.debug('Cleaned up %d expired rate limit buckets', len(expired))
        self._last_cleanup = now

    def hit(self, key, limit, window_seconds, now):
        with self._lock:
            self._cleanup(now)

            bucket = self._buckets.get(key)
            if bucket is None or bucket.reset_at <= now:
                bucket = _Bucket(count=0, reset_at=now + window_seconds)
                self._buckets[key] = bucket

            reset_at = math.ceil(bucket.reset_at)
            if bucket.count >= limit:
                return RateLimitResult(success=False, remaining=0, reset_at=reset_at)

            bucket.count += 1
            return RateLimitResult(success=True, remaining=limit - bucket.count, reset_at=reset_at)

    def __len__(self) -> int:
        return len(self._buckets)


class RedisRateLimitStore(RateLimitStore):
    """Buckets shared through Redis: ``SET NX EX`` + ``INCR`` + ``TTL`` in one MULTI."""

    def __init__(self, client: redis.Redis, key_prefix: str = 'rate_limit'):
        self.client = client
        self.key_prefix = key_prefix

    def hit(self, key, limit, window_seconds, now):
        redis_key = f'{self.key_prefix}:{key}'

        pipe = self.client.pipeline(transaction=True)
        pipe.set(redis_key, 0, ex=window_seconds, nx=True)
        pipe.incr(redis_key)
        pipe.ttl(redis_key)
        _, count, ttl = pipe.execute()

        if ttl is None or ttl < 0:
            # Key lost its expiry; start a fresh window rather than block forever.
            self.client.expire(redis_key, window_seconds)
            ttl = window_seconds

        reset_at = int(now) + int(ttl)
        if count > limit:
            return RateLimitResult(success=False, remaining=0, reset_at=reset_at)

        return RateLimitResult(success=True, remaining=limit - count, reset_at=reset_at)


class RateLimiter:
    def __init__(self, store: RateLimitStore | None = None, clock: Callable[[], float] = time.time):
        self.store = store or InMemoryRateLimitStore()
        self.clock = clock

    def check(self, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        return self.store.hit(key, limit, window_seconds, self.clock())

    def retry_after(self, result: RateLimitResult) -> int:
        return max(1, math.ceil(result.reset_at - self.clock()))


_rate_limiter: RateLimiter | None = None
_rate_limiter_lock = Lock()


def _mask_url(url: str) -> str:
    if '@' not in url:
        return url
    scheme, rest = url.split('@', 1)
    return f"{scheme.split(':', 1)[0]}:****@{rest}"


def build_store_from_config() -> RateLimitStore:
    if config.RATE_LIMIT_BACKEND == 'redis':
        logger.info('Using Redis rate limit store at %s', _mask_url(config.REDIS_URL))
        client = redis.from_url(
            config.REDIS_URL,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
        )
        return RedisRateLimitStore(client)

    logger.info('Using in-memory rate limit store; limits apply per process')
    return InMemoryRateLimitStore()


def get_rate_limiter() -> RateLimiter:
    global _rate_limiter

    if _rate_limiter is None:
        with _rate_limiter_lock:
            if _rate_limiter is None:
                _rate_limiter = RateLimiter(build_store_from_config())

    return _rate_limiter


def set_rate_limiter(limiter: RateLimiter | None) -> None:
    global _rate_limiter
    _rate_limiter = limiter


def get_client_ip(request: Request) -> str:
    forwarded_for = request.headers.get('x-forwarded-for')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()

    for header in ('cf-connecting-ip', 'x-real-ip'):
        value = request.headers.get(header)
        if value:
            return value.strip()

    if request.client and request.client.host:
        return request.client.host

    return 'unknown'


def rate_limit_headers(limit: int, result: RateLimitResult) -> dict[str, str]:
    return {
        'X-RateLimit-Limit': str(limit),
        'X-RateLimit-Remaining': str(result.remaining),
        'X-RateLimit-Reset': str(result.reset_at),
    }


def create_rate_limiter(limit: int, window_seconds: int, key_prefix: str):
    """Build a FastAPI dependency enforcing ``limit`` hits per ``window_seconds`` per client IP.

    Example:
        cancel_limit = create_rate_limiter(50, 60, 'internal:cancel')

        @router.delete('/appointments/{appointment_id}', dependencies=[Depends(cancel_limit)])
        def cancel(...): ...
    """

    def rate_limiter(request: Request, response: Response) -> RateLimitResult:
        limiter = get_rate_limiter()
        key = f'{key_prefix}:{get_client_ip(request)}'

        try:
            result = limiter.check(key, limit, window_seconds)
        except redis.RedisError as exc:
            logger.exception('Rate limit store unavailable while checking %s', key)
            raise BackingStoreFailure('Rate limiting service temporarily unavailable') from exc

        headers = rate_limit_headers(limit, result)
        if not result.success:
            headers['Retry-After'] = str(limiter.retry_after(result))
            logger.warning('Rate limit exceeded for %s (%d per %ds)', key, limit, window_seconds)
            raise RateLimited(headers=headers)

        response.headers.update(headers)
        return result

    return rate_limiter
