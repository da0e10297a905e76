import json
import logging
from typing import Dict, Iterable, Optional

from utils import config
from utils import redis_client

logger = logging.getLogger("redis")

def seen_cache_key(user_id: str) -> str:
    return f"seen:{user_id}:posts"

def _text(value) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else value

class RedisSeenStore:
    """
    Durable tier of the seen cache: one hash per user, field = item id,
    value = JSON {"timestamp": <epoch ms>}.

    Writes touch only the given fields, so concurrent writers sharing the
    hash do not clobber each other. Errors from Redis propagate; the cache
    above decides how to degrade.
    """

    def __init__(self, client=None, ttl_ms: Optional[int] = None):
        self._client = client
        self.ttl_ms = config.SEEN_CACHE_TTL_MS if ttl_ms is None else ttl_ms

    @property
    def client(self):
        if self._client is None:
            self._client = redis_client.RedisClient().get_client()
        return self._client

    def load(self, user_id: str) -> Dict[str, int]:
        """Raw entries for `user_id`, expired ones included. Malformed fields are skipped."""
        raw = self.client.hgetall(seen_cache_key(user_id))
        entries = {}
        for item_id, value in raw.items():
            item_id = _text(item_id)
            try:
                entries[item_id] = int(json.loads(_text(value))["timestamp"])
            except (ValueError, KeyError, TypeError) as e:
                logger.warning("Skipping malformed seen cache field %s for user %s: %s", item_id, user_id, e)
        return entries

    def save(self, user_id: str, entries: Dict[str, int], expired: Iterable[str] = ()):
        """Write the touched `entries` and drop the `expired` fields; other fields are left alone."""
        key = seen_cache_key(user_id)
        expired = [item_id for item_id in expired if item_id not in entries]
        pipe = self.client.pipeline()
        if expired:
            pipe.hdel(key, *expired)
        if entries:
            pipe.hset(key, mapping={
                item_id: json.dumps({"timestamp": ts}) for item_id, ts in entries.items()
            })
            # whole key lapses once the newest entry would have expired
            pipe.pexpire(key, self.ttl_ms)
        pipe.execute()

    def delete(self, user_id: str) -> bool:
        result = self.client.delete(seen_cache_key(user_id))
        if result == 1:
            logger.info("🧹 Deleted seen cache key for user %s.", user_id)
        else:
            logger.info("ℹ️ No seen cache key found for user %s.", user_id)
        return result == 1
