"""
Rate Limiter

Per-user admission control in front of the chat and search pipelines.

Counters live in Redis, not process memory, so the quota holds across
workers and instances. Each check runs one Lua script, which makes the
read-then-increment atomic for concurrent callers sharing a key:

    no key          -> create window (count=1, TTL=window), allow
    count < limit   -> increment, allow
    count == limit  -> reject until the key expires

The count never goes past the limit, and the window resets when the key
expires. If Redis is not configured or unreachable the limiter fails open:
the request is allowed and a warning is logged.
"""

import logging
import time

import redis.asyncio as redis
from pydantic import BaseModel
from redis.exceptions import RedisError

from app.core.config import get_settings
from app.core.exceptions import RateLimitExceeded

logger = logging.getLogger(__name__)

KEY_PREFIX = "ratelimit"

# Returns {allowed (0/1), ttl_ms, count}
_ADMIT_SCRIPT = """
local limit = tonumber(ARGV[1])
local window_ms = tonumber(ARGV[2])
local current = redis.call('GET', KEYS[1])
if not current then
  redis.call('SET', KEYS[1], 1, 'PX', window_ms)
  return {1, window_ms, 1}
end
local count = tonumber(current)
local ttl = redis.call('PTTL', KEYS[1])
if ttl < 0 then
  redis.call('PEXPIRE', KEYS[1], window_ms)
  ttl = window_ms
end
if count < limit then
  count = redis.call('INCR', KEYS[1])
  return {1, ttl, count}
end
return {0, ttl, count}
"""


class RateLimitConfig(BaseModel):
    max_requests: int
    window_seconds: float


class RateLimitResult(BaseModel):
    allowed: bool
    remaining: int
    reset_at: int  # epoch milliseconds
    degraded: bool = False


def _now_ms() -> int:
    return int(time.time() * 1000)


class RateLimiter:
    """Fixed-duration windows keyed by "{scope}:{user_id}"."""

    def __init__(self, client: redis.Redis | None, prefix: str = KEY_PREFIX):
        self.client = client
        self.prefix = prefix
        self._script = client.register_script(_ADMIT_SCRIPT) if client is not None else None

    def _allow_all(self, config: RateLimitConfig) -> RateLimitResult:
        return RateLimitResult(
            allowed=True,
            remaining=config.max_requests,
            reset_at=_now_ms() + int(config.window_seconds * 1000),
            degraded=True,
        )

    async def check(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        if config.max_requests < 1 or config.window_seconds <= 0:
            raise ValueError("Rate limit needs max_requests >= 1 and a positive window")

        if self._script is None:
            logger.warning("[RateLimit] Redis not configured, rate limiting is disabled.")
            return self._allow_all(config)

        window_ms = max(1, int(config.window_seconds * 1000))
        try:
            allowed, ttl_ms, count = await self._script(
                keys=[f"{self.prefix}:{key}"],
                args=[config.max_requests, window_ms],
            )
        except RedisError as e:
            logger.warning("[RateLimit] Redis unavailable, allowing request for %s: %s", key, e)
            return self._allow_all(config)

        allowed = bool(int(allowed))
        return RateLimitResult(
            allowed=allowed,
            remaining=max(0, config.max_requests - int(count)) if allowed else 0,
            reset_at=_now_ms() + int(ttl_ms),
        )


# ── Singleton ─────────────────────────────────────────────────────────────────

_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    """
    Get or create the rate limiter singleton.

    The Redis client is only created when REDIS_URL is set; creating it
    does not open a connection until the first command.
    """
    global _limiter
    if _limiter is None:
        settings = get_settings()
        client = None
        if settings.redis_url:
            # A stalled Redis must time out and fail open, not hold the request
            client = redis.from_url(
                settings.redis_url,
                socket_connect_timeout=settings.redis_socket_connect_timeout_seconds,
                socket_timeout=settings.redis_socket_timeout_seconds,
            )
        _limiter = RateLimiter(client)
    return _limiter


def chat_rate_limit() -> RateLimitConfig:
    settings = get_settings()
    return RateLimitConfig(
        max_requests=settings.chat_rate_limit_requests,
        window_seconds=settings.chat_rate_limit_window_seconds,
    )


def search_rate_limit() -> RateLimitConfig:
    settings = get_settings()
    return RateLimitConfig(
        max_requests=settings.search_rate_limit_requests,
        window_seconds=settings.search_rate_limit_window_seconds,
    )


async def enforce_rate_limit(
    scope: str,
    user_id: str,
    config: RateLimitConfig,
    limiter: RateLimiter | None = None,
) -> RateLimitResult:
    """Check the limit for one user action and raise RateLimitExceeded if spent."""
    limiter = limiter or get_rate_limiter()
    result = await limiter.check(f"{scope}:{user_id}", config)
    if not result.allowed:
        logger.info("[RateLimit] %s limit reached for user %s", scope, user_id)
        raise RateLimitExceeded(reset_at=result.reset_at, remaining=0)
    return result
