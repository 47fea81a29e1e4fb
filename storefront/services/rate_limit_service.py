# storefront/services/rate_limit_service.py
import time
from typing import Tuple

import redis

from storefront.utils.retry import redis_retry
from storefront.utils.settings import REDIS_URL
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


class RateLimiter:
    """
    Fixed window na redisie: INCR ratelimit:{key}:{window_start} + EXPIRE.
    Przy awarii redisa przepuszczamy (fail-open) z warningiem.
    """

    def __init__(self, client: redis.Redis = None, clock=time.time):
        self.redis = client or redis.Redis.from_url(REDIS_URL, decode_responses=True)
        self.clock = clock

    @redis_retry()
    def _hit(self, redis_key: str, window_seconds: int) -> int:
        pipe = self.redis.pipeline()
        pipe.incr(redis_key)
        pipe.expire(redis_key, window_seconds)
        count, _ = pipe.execute()
        return int(count)

    def check(self, key: str, limit: int, window_seconds: int) -> Tuple[bool, int]:
        """Zwraca (success, retry_after_seconds)."""
        now = int(self.clock())
        window_start = now - (now % window_seconds)
        retry_after = window_start + window_seconds - now

        try:
            count = self._hit(f"ratelimit:{key}:{window_start}", window_seconds)
        except redis.RedisError as e:
            logger.warning(f"Rate limiter unavailable, allowing request for {key.split(':')[0]}: {e}")
            return True, 0

        if count > limit:
            logger.info(f"Rate limit exceeded for {key.split(':')[0]} ({count}/{limit})")
            return False, retry_after
        return True, 0
