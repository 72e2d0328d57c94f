"""Request rate limiting for authentication endpoints

Counters are keyed by "action:identifier" (e.g. "login:192.168.1.1").
A window opens on the first request of a key and the key is blocked once
max_requests have been counted inside it.
"""
import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, Mapping, Optional

from pydantic import BaseModel

from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitConfig:
    """Bucket configuration"""
    max_requests: int
    window_ms: int


class RateLimitResult(BaseModel):
    """Outcome of a rate limit check"""
    success: bool
    remaining: int
    reset_time: int  # epoch milliseconds
    retry_after_ms: Optional[int] = None


RATE_LIMIT_CONFIGS: Dict[str, RateLimitConfig] = {
    "login": RateLimitConfig(max_requests=5, window_ms=15 * 60 * 1000),
    "register": RateLimitConfig(max_requests=3, window_ms=60 * 60 * 1000),
    "password_reset": RateLimitConfig(max_requests=3, window_ms=60 * 60 * 1000),
    "api": RateLimitConfig(max_requests=100, window_ms=60 * 1000),
}


def _now_ms() -> int:
    return int(time.time() * 1000)


class MemoryRateLimitStore:
    """Process-local counter store.

    Each check-and-increment runs inside one lock so concurrent callers
    sharing a key cannot both slip under the limit.
    """

    def __init__(self, clock: Callable[[], int] = _now_ms):
        self._clock = clock
        self._entries: Dict[str, list] = {}  # key -> [count, reset_time]
        self._lock = threading.Lock()

    async def hit(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        with self._lock:
            now = self._clock()
            entry = self._entries.get(key)

            if entry is None or now > entry[1]:
                reset_time = now + config.window_ms
                self._entries[key] = [1, reset_time]
                return RateLimitResult(
                    success=True,
                    remaining=config.max_requests - 1,
                    reset_time=reset_time,
                )

            count, reset_time = entry
            if count >= config.max_requests:
                return RateLimitResult(
                    success=False,
                    remaining=0,
                    reset_time=reset_time,
                    retry_after_ms=max(reset_time - now, 1),
                )

            entry[0] = count + 1
            return RateLimitResult(
                success=True,
                remaining=config.max_requests - entry[0],
                reset_time=reset_time,
            )

    async def reset(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def sweep(self) -> int:
        """Drop expired windows, returns how many were removed"""
        with self._lock:
            now = self._clock()
            expired = [key for key, (_, reset_time) in self._entries.items() if now > reset_time]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)


# INCR and PEXPIRE must happen together, otherwise a crash between them
# leaves a key that never expires.
_REDIS_HIT_SCRIPT = """
local count = redis.call('INCR', KEYS[1])
if count == 1 then
    redis.call('PEXPIRE', KEYS[1], ARGV[1])
end
local ttl = redis.call('PTTL', KEYS[1])
return {count, ttl}
"""


class RedisRateLimitStore:
    """Counter store shared by every instance through redis"""

    def __init__(self, redis, prefix: str = "ratelimit:", clock: Callable[[], int] = _now_ms):
        self._redis = redis
        self._prefix = prefix
        self._clock = clock

    async def hit(self, key: str, config: RateLimitConfig) -> RateLimitResult:
        count, ttl = await self._redis.eval(
            _REDIS_HIT_SCRIPT, 1, f"{self._prefix}{key}", config.window_ms
        )
        count = int(count)
        ttl = int(ttl) if int(ttl) > 0 else config.window_ms
        reset_time = self._clock() + ttl

        if count > config.max_requests:
            return RateLimitResult(
                success=False,
                remaining=0,
                reset_time=reset_time,
                retry_after_ms=ttl,
            )

        return RateLimitResult(
            success=True,
            remaining=config.max_requests - count,
            reset_time=reset_time,
        )

    async def reset(self, key: str) -> None:
        await self._redis.delete(f"{self._prefix}{key}")

    def sweep(self) -> int:
        # Redis expires keys by itself
        return 0


class RateLimiter:
    """Rate limiter facade over a pluggable counter store"""

    def __init__(self, store=None):
        self.store = store or MemoryRateLimitStore()
        self._sweeper: Optional[asyncio.Task] = None

    @staticmethod
    def make_key(action: str, identifier: str) -> str:
        return f"{action}:{identifier}"

    async def check(
        self,
        action: str,
        identifier: str,
        config: Optional[RateLimitConfig] = None,
    ) -> RateLimitResult:
        """Count a request and report whether it is allowed"""
        config = config or RATE_LIMIT_CONFIGS.get(action, RATE_LIMIT_CONFIGS["api"])
        result = await self.store.hit(self.make_key(action, identifier), config)
        if not result.success:
            logger.warning(f"Rate limit exceeded for {action} ({identifier})")
        return result

    async def reset(self, action: str, identifier: str) -> None:
        """Forget the counter for a key, e.g. after a successful login"""
        await self.store.reset(self.make_key(action, identifier))

    async def _sweep_forever(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            removed = self.store.sweep()
            if removed:
                logger.debug(f"Rate limit sweep removed {removed} expired entries")

    def start_sweeper(self, interval: Optional[float] = None) -> None:
        """Start the periodic cleanup task on the running loop"""
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.create_task(
                self._sweep_forever(interval or settings.RATE_LIMIT_SWEEP_INTERVAL)
            )

    async def stop_sweeper(self) -> None:
        if self._sweeper is not None:
            self._sweeper.cancel()
            try:
                await self._sweeper
            except asyncio.CancelledError:
                pass
            self._sweeper = None


rate_limiter = RateLimiter()


def configure_rate_limiter(redis=None) -> RateLimiter:
    """Select the counter store from settings"""
    if settings.RATE_LIMIT_BACKEND == "redis" and redis is not None:
        rate_limiter.store = RedisRateLimitStore(redis)
    else:
        rate_limiter.store = MemoryRateLimitStore()
    logger.info(f"Rate limiter using {type(rate_limiter.store).__name__}")
    return rate_limiter


async def check_rate_limit(
    action: str,
    identifier: str,
    config: Optional[RateLimitConfig] = None,
) -> RateLimitResult:
    """Check and count a request against the shared limiter"""
    return await rate_limiter.check(action, identifier, config)


async def reset_rate_limit(action: str, identifier: str) -> None:
    """Reset the shared limiter for one key"""
    await rate_limiter.reset(action, identifier)


def get_client_identifier(headers: Mapping[str, str]) -> str:
    """Best-effort client IP from proxy headers"""
    forwarded_for = headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip

    return "unknown-client"
