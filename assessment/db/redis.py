"""
Redis connection for the Assessment Engine
"""

import redis
from typing import Optional
import logging
from assessment.core.config import settings

logger = logging.getLogger(__name__)

class RedisPublisher:
    """Redis pub/sub publisher with graceful fallback"""

    def __init__(self, url: Optional[str] = None):
        self.url = url or settings.get_redis_url()
        self.redis_client: Optional[redis.Redis] = None

    def connect(self) -> redis.Redis:
        """Create the client lazily; redis-py connects on first command"""
        if self.redis_client is None:
            self.redis_client = redis.Redis.from_url(
                self.url,
                encoding="utf-8",
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
        return self.redis_client

    def publish(self, channel: str, message: str) -> int:
        """Publish a message; returns the number of receiving subscribers"""
        return self.connect().publish(channel, message)

    def ping(self) -> bool:
        try:
            return bool(self.connect().ping())
        except redis.RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    def close(self):
        """Disconnect from Redis"""
        if self.redis_client is not None:
            self.redis_client.close()
            self.redis_client = None
