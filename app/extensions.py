"""
Shared client instances — Redis.

redis.from_url() does not open a connection until the first command, so
importing this module is always safe (even when Redis is down during tests).
"""
import logging
import redis

from app.config import REDIS_URL

logger = logging.getLogger('app.extensions')

# ── Redis ─────────────────────────────────────────────────────────────────────
# Run state, the scrape log relay (pub/sub) and the RQ queue all share this client.
redis_client = redis.from_url(REDIS_URL, decode_responses=True)
