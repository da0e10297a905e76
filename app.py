import logging
import threading
from typing import Any, Callable, Optional

from pymongo.errors import PyMongoError

from handler.seen_loader import BulkSeenLoader
from handler.seen_tracker import SeenTracker
from handler.seen_writer import SeenWriteCoordinator
from handler.visibility import ManualVisibilitySource, VisibilityOptions
from service.mongo import MongoSeenStore
from service.redis import RedisSeenStore
from service.seen_cache import DedupCache
from utils import config
from utils.event_bus import EventBus
from utils.rate_limiter import RateLimiter, now_ms

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("seen-tracking")

class SeenContext:
    """
    Owns the process-wide seen-tracking singletons for one user session:
    the dedup cache, the rate limiter, the event bus and the remote store.
    Coordinators, loaders and trackers built here all share them.
    """

    def __init__(self, cache: DedupCache, limiter: RateLimiter, store, bus: EventBus,
                 visibility_source=None, options: Optional[VisibilityOptions] = None,
                 timer_factory: Callable[..., Any] = threading.Timer,
                 use_conditional_write: Optional[bool] = None):
        self.cache = cache
        self.limiter = limiter
        self.store = store
        self.bus = bus
        self.visibility_source = visibility_source or ManualVisibilitySource()
        self.options = options or VisibilityOptions()
        self.timer_factory = timer_factory
        self.use_conditional_write = use_conditional_write
        self._trackers = []

    def coordinator(self) -> SeenWriteCoordinator:
        return SeenWriteCoordinator(self.cache, self.limiter, self.store, bus=self.bus,
                                    use_conditional_write=self.use_conditional_write)

    def loader(self) -> BulkSeenLoader:
        return BulkSeenLoader(self.cache, self.store)

    def tracker(self) -> SeenTracker:
        tracker = SeenTracker(self.coordinator(), self.visibility_source, self.options,
                              timer_factory=self.timer_factory)
        self._trackers.append(tracker)
        return tracker

    def logout(self, user_id: str):
        """Stop tracking and forget the user's cached seen posts."""
        for tracker in self._trackers:
            tracker.detach_all()
        self._trackers.clear()
        self.cache.clear(user_id)
        logger.info("Cleared seen tracking state for user %s", user_id)

def create_seen_context(redis_client=None, db=None, clock: Callable[[], float] = now_ms,
                        **overrides) -> SeenContext:
    """
    Wire a SeenContext from configuration. `redis_client` and `db` default to
    the shared RedisClient / MongoDB connections.
    """
    store = overrides.pop("store", None) or MongoSeenStore(db)
    if hasattr(store, "ensure_seen_indexes"):
        try:
            store.ensure_seen_indexes()
        except PyMongoError as e:
            # Mongo being unreachable at startup is not fatal; writes will report WRITE_FAILED
            logger.warning("Could not ensure seen indexes: %s", e)

    cache = overrides.pop("cache", None) or DedupCache(RedisSeenStore(redis_client), clock=clock)
    limiter = overrides.pop("limiter", None) or RateLimiter(clock=clock)
    bus = overrides.pop("bus", None) or EventBus()
    return SeenContext(cache, limiter, store, bus, **overrides)
