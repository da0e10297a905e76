import logging
from datetime import datetime, timedelta
from typing import Optional, Set

from utils import config

logger = logging.getLogger("seen-loader")

class BulkSeenLoader:
    """
    Warms the seen cache for a user from the remote store at session start.

    Only records from the last `window_days` (optionally within one scope)
    are fetched, newest first, at most `limit` of them.
    """

    def __init__(self, cache, store, clock=datetime.utcnow):
        self.cache = cache
        self.store = store
        self._clock = clock

    def load(self, user_id: str, scope_id: Optional[str] = None,
             window_days: Optional[int] = None, limit: Optional[int] = None) -> Set[str]:
        if not user_id:
            return set()

        window_days = config.SEEN_WINDOW_DAYS if window_days is None else window_days
        limit = config.SEEN_BULK_LIMIT if limit is None else limit
        since = self._clock() - timedelta(days=window_days)

        try:
            item_ids = self.store.query_seen_records(user_id, scope_id=scope_id, since=since, limit=limit)
        except Exception as e:
            logger.error("Error loading seen posts for user %s: %s", user_id, e)
            # fall back to what this session already knows
            return self.cache.session_seen(user_id)

        self.cache.bulk_mark_seen(user_id, item_ids)
        logger.info("Loaded %d seen posts for user %s (scope=%s)", len(item_ids), user_id, scope_id)
        return self.cache.session_seen(user_id) | set(item_ids)
