from datetime import date, time
from typing import Optional

import redis.asyncio as redis
import structlog
from redis.exceptions import RedisError

from app.core.config import settings
from app.core.exceptions import SlotHoldUnavailableError

logger = structlog.get_logger(__name__)


class RedisClient:
    """Redis client for short-lived slot holds during booking."""

    def __init__(self, url: Optional[str] = None):
        self.url = url or settings.REDIS_URL
        self.redis_pool = None

    async def init_redis(self):
        """Initialize Redis connection pool."""
        try:
            self.redis_pool = redis.ConnectionPool.from_url(
                self.url,
                decode_responses=True,
                retry_on_timeout=True,
                socket_keepalive=True,
            )

            # Test connection
            async with redis.Redis(connection_pool=self.redis_pool) as r:
                await r.ping()
                logger.info("Redis connection established")

        except Exception as e:
            logger.error("Failed to connect to Redis", exc_info=e)
            raise

    async def get_redis(self) -> redis.Redis:
        """Get Redis client instance."""
        if not self.redis_pool:
            await self.init_redis()
        return redis.Redis(connection_pool=self.redis_pool)

    async def close(self):
        if self.redis_pool:
            await self.redis_pool.disconnect()
            self.redis_pool = None

    @staticmethod
    def slot_lock_key(branch: str, appointment_date: date, slot_time: time) -> str:
        return f"slot_lock:{branch}:{appointment_date.isoformat()}:{slot_time.strftime('%H:%M')}"

    async def acquire_slot_lock(
        self,
        branch: str,
        appointment_date: date,
        slot_time: time,
        owner: str,
        expire_seconds: Optional[int] = None,
    ) -> bool:
        """Hold a slot while a booking for it is written.

        Returns False when another request already holds the slot. Raises
        SlotHoldUnavailableError when Redis cannot be reached.
        """
        key = self.slot_lock_key(branch, appointment_date, slot_time)
        try:
            client = await self.get_redis()
            acquired = await client.set(
                key, owner, ex=expire_seconds or settings.SLOT_HOLD_SECONDS, nx=True
            )
            return bool(acquired)
        except (RedisError, OSError) as e:
            logger.error("Redis slot lock error", key=key, exc_info=e)
            raise SlotHoldUnavailableError(
                branch, appointment_date, slot_time, reason=str(e)
            ) from e

    async def release_slot_lock(
        self, branch: str, appointment_date: date, slot_time: time, owner: str
    ) -> bool:
        """Release a slot hold if it is still owned by ``owner``."""
        key = self.slot_lock_key(branch, appointment_date, slot_time)
        try:
            client = await self.get_redis()
            if await client.get(key) != owner:
                return False
            return await client.delete(key) > 0
        except Exception as e:
            logger.error("Redis slot unlock error", key=key, exc_info=e)
            return False


# Global Redis client instance
redis_client = RedisClient()


async def get_slot_locker() -> RedisClient:
    """Dependency returning the shared slot lock client."""
    return redis_client
