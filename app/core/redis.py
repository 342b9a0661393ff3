import redis.asyncio as redis
from app.core.config import settings

class RedisClient:
    def __init__(self, url: str | None = None, connection: redis.Redis | None = None):
        if connection is None:
            connection = redis.from_url(url or settings.REDIS_URL, encoding="utf-8", decode_responses=True)
        self.redis = connection

    async def hit(self, key: str, window_seconds: int) -> int:
        """Increment a fixed-window counter, starting its TTL on first use."""
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.set(f"ratelimit:{key}", 0, ex=window_seconds, nx=True)
            pipe.incr(f"ratelimit:{key}")
            _, count = await pipe.execute()
        return int(count)

    async def reset(self, key: str):
        await self.redis.delete(f"ratelimit:{key}")

    async def close(self):
        await self.redis.aclose()

redis_client = RedisClient()
