"""
Redis-based rate limiter for the webhook endpoint (per IP and per source).
Uses sliding window counter pattern for accurate rate limiting.
"""
import logging
import time
from typing import Optional

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60


async def check_rate_limit(
    key: str,
    limit: int,
    window: int = WINDOW_SECONDS,
) -> tuple[bool, Optional[int]]:
    """
    Check if a request is within rate limits using Redis sliding window.

    Returns: (allowed: bool, retry_after_seconds: int | None)
    """
    try:
        from pushtomemory.utils.redis_client import get_redis
        redis = await get_redis()

        redis_key = f"pushtomemory:ratelimit:{key}"
        now = time.time()
        window_start = now - window

        pipe = redis.pipeline()
        pipe.zremrangebyscore(redis_key, 0, window_start)
        pipe.zadd(redis_key, {str(now): now})
        pipe.zcard(redis_key)
        pipe.expire(redis_key, window + 1)

        results = await pipe.execute()
        request_count = results[2]

        if request_count > limit:
            logger.warning(
                "Rate limit exceeded: key=%s count=%d limit=%d",
                key, request_count, limit,
            )
            return False, window

        return True, None
    except Exception as e:
        # Redis failure should not block webhooks - allow through
        logger.warning("Rate limiter Redis error: %s. Allowing request.", str(e))
        return True, None


async def check_webhook_rate_limit(client_ip: str) -> tuple[bool, Optional[int]]:
    """
    Coarse per-IP limit for inbound deliveries. GitHub sends every user's hooks
    from a shared address pool, so this stays well above the per-source limit.
    """
    from pushtomemory.config import get_settings
    limit = get_settings().webhook_ip_rate_limit_per_minute
    return await check_rate_limit(f"ip:{client_ip}", limit)


async def check_source_rate_limit(source_kind: str, source_key: str) -> tuple[bool, Optional[int]]:
    """Per-source limit (one organization or repository). Returns (allowed, retry_after_seconds)."""
    from pushtomemory.config import get_settings
    limit = get_settings().webhook_rate_limit_per_minute
    return await check_rate_limit(f"source:{source_kind}:{source_key}", limit)
