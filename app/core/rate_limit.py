"""Fixed-window limiter for OTP requests, keyed by normalised phone number."""
import threading
import time
from typing import Callable, Protocol

from app.core.config import settings
from app.core.logger import logger


class WindowStore(Protocol):
    async def hit(self, key: str, window_seconds: int, max_requests: int) -> bool: ...

    async def reset(self, key: str) -> None: ...


class MemoryWindowStore:
    """Process-local windows. Only correct for a single server process."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[str, dict[str, float]] = {}

    async def hit(self, key: str, window_seconds: int, max_requests: int) -> bool:
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or now > window["reset_time"]:
                self._windows[key] = {"count": 1, "reset_time": now + window_seconds}
                return True
            if window["count"] >= max_requests:
                return False
            window["count"] += 1
            return True

    async def reset(self, key: str) -> None:
        with self._lock:
            self._windows.pop(key, None)


class RedisWindowStore:
    """Windows shared by every instance pointing at the same Redis."""

    def __init__(self, client=None):
        if client is None:
            from app.core.redis import redis_client
            client = redis_client
        self.client = client

    async def hit(self, key: str, window_seconds: int, max_requests: int) -> bool:
        count = await self.client.hit(key, window_seconds)
        return count <= max_requests

    async def reset(self, key: str) -> None:
        await self.client.reset(key)


class RateLimiter:
    def __init__(
        self,
        store: WindowStore,
        max_requests: int = settings.OTP_RATE_LIMIT_MAX_REQUESTS,
        window_seconds: int = settings.OTP_RATE_LIMIT_WINDOW_SECONDS,
    ):
        self.store = store
        self.max_requests = max_requests
        self.window_seconds = window_seconds

    async def allow(self, phone: str) -> bool:
        allowed = await self.store.hit(phone, self.window_seconds, self.max_requests)
        if not allowed:
            logger.warning(f"OTP rate limit exceeded for {phone}")
        return allowed

    async def reset(self, phone: str) -> None:
        await self.store.reset(phone)


def build_rate_limiter() -> RateLimiter:
    if settings.RATE_LIMIT_BACKEND == "redis":
        return RateLimiter(RedisWindowStore())
    return RateLimiter(MemoryWindowStore())


otp_rate_limiter = build_rate_limiter()


def get_rate_limiter() -> RateLimiter:
    return otp_rate_limiter
