import logging
import threading
from collections import defaultdict
from typing import Callable, Dict, Iterable, Optional, Set

from redis.exceptions import RedisError

from utils import config
from utils.rate_limiter import now_ms

logger = logging.getLogger("seen-cache")

# Failures of the durable tier that degrade the cache instead of raising
STORAGE_ERRORS = (RedisError, OSError, ValueError, KeyError, TypeError)

class DedupCache:
    """
    Two-tier cache answering "has this user already been counted for this item".

    1. Session tier: in-memory set per user, lives as long as the process.
    2. Persistent tier: durable map item -> {timestamp} per user with a TTL,
       backed by `store` (see service.redis.RedisSeenStore).

    Presence in either tier means seen. Absence in both proves nothing: the
    remote record may simply not have been loaded yet.

    Durable read/write failures are logged and the cache keeps working on the
    session tier alone.
    """

    def __init__(self, store=None, ttl_ms: Optional[int] = None,
                 clock: Callable[[], float] = now_ms):
        self.store = store
        self.ttl_ms = config.SEEN_CACHE_TTL_MS if ttl_ms is None else ttl_ms
        self._clock = clock
        self._session: Dict[str, Set[str]] = defaultdict(set)
        self._lock = threading.RLock()
        self.degraded = False

    # ---------- persistent tier ----------
    def _load(self, user_id: str) -> Optional[Dict[str, int]]:
        """Persistent entries for `user_id`, expired ones included. None when the read failed."""
        if self.store is None:
            return None
        try:
            return self.store.load(user_id)
        except STORAGE_ERRORS as e:
            self._degrade("load", user_id, e)
            return None

    def _expired(self, ts: int, now: float) -> bool:
        return now - ts >= self.ttl_ms

    def _save(self, user_id: str, entries: Dict[str, int], expired):
        try:
            self.store.save(user_id, entries, expired=expired)
        except STORAGE_ERRORS as e:
            self._degrade("save", user_id, e)

    def _degrade(self, op: str, user_id: str, error: Exception):
        if not self.degraded:
            logger.error("Seen cache storage degraded (%s failed for user %s): %s", op, user_id, error)
        else:
            logger.warning("Seen cache %s failed for user %s: %s", op, user_id, error)
        self.degraded = True

    # ---------- public API ----------
    def is_seen(self, user_id: str, item_id: str) -> bool:
        with self._lock:
            if item_id in self._session.get(user_id, ()):
                return True

            stored = self._load(user_id) or {}
            ts = stored.get(item_id)
            if ts is not None and not self._expired(ts, self._clock()):
                # promote so the next lookup skips the durable tier
                self._session[user_id].add(item_id)
                return True
            return False

    def mark_seen(self, user_id: str, item_id: str):
        self.bulk_mark_seen(user_id, [item_id])

    def bulk_mark_seen(self, user_id: str, item_ids: Iterable[str]):
        item_ids = list(item_ids)
        if not item_ids:
            return
        with self._lock:
            self._session[user_id].update(item_ids)

            stored = self._load(user_id)
            if stored is None:
                # unreadable durable tier: keep it as it is and stay session-only
                return
            now = self._clock()
            timestamp = int(now)
            expired = [i for i, ts in stored.items() if self._expired(ts, now)]
            self._save(user_id, {item_id: timestamp for item_id in item_ids}, expired)

    def clear(self, user_id: str):
        """Forget everything for `user_id` (logout)."""
        with self._lock:
            self._session.pop(user_id, None)
            if self.store is None:
                return
            try:
                self.store.delete(user_id)
            except STORAGE_ERRORS as e:
                self._degrade("delete", user_id, e)

    def session_seen(self, user_id: str) -> Set[str]:
        with self._lock:
            return set(self._session.get(user_id, ()))
