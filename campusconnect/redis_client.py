import redis.asyncio as redis

from .config import REDIS_URL

# optional: without it locks stay in-process and rate limiting is off
redis_client = redis.from_url(REDIS_URL, decode_responses=True) if REDIS_URL else None
