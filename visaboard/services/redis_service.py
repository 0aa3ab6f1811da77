import redis
import json
import logging
from datetime import datetime, timezone
from typing import Optional
from visaboard.config import settings

logger = logging.getLogger("visaboard.redis")

class RedisService:
    def __init__(self, redis_url: Optional[str] = None):
        self.redis_url = redis_url
        self.redis_client = None
        self.connect()

    def connect(self):
        if not self.redis_url:
            logger.info("No Redis URL provided, token blacklisting disabled")
            return
        try:
            self.redis_client = redis.from_url(
                self.redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True
            )
            # Test connection
            self.redis_client.ping()
            logger.info("Redis connected successfully")
        except redis.RedisError as e:
            logger.warning(f"Redis connection failed: {e}")
            self.redis_client = None

    @property
    def available(self) -> bool:
        return self.redis_client is not None

    def ping(self) -> bool:
        if not self.available:
            return False
        try:
            return bool(self.redis_client.ping())
        except redis.RedisError:
            return False

    def blacklist_token(self, token: str, expires_in_minutes: Optional[int] = None) -> bool:
        """Add token to blacklist until it would have expired anyway"""
        if not self.available:
            return False
        try:
            if expires_in_minutes is None:
                expires_in_minutes = settings.access_token_expire_minutes

            blacklist_data = {
                "blacklisted_at": datetime.now(timezone.utc).isoformat(),
                "reason": "user_logout"
            }

            return bool(self.redis_client.setex(
                f"blacklist:{token}",
                expires_in_minutes * 60,
                json.dumps(blacklist_data)
            ))
        except redis.RedisError as e:
            logger.error(f"Redis blacklist error: {e}")
            return False

    def is_token_blacklisted(self, token: str) -> bool:
        if not self.available:
            return False
        try:
            return self.redis_client.get(f"blacklist:{token}") is not None
        except redis.RedisError as e:
            logger.error(f"Redis blacklist check error: {e}")
            return False

# Global Redis instance
redis_service = RedisService(settings.redis_url)
