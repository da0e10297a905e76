import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pymongo.errors import DuplicateKeyError, PyMongoError

from utils import config
from utils.event_bus import SEEN_FAILED, SEEN_RECORDED

logger = logging.getLogger("seen-writer")

class ErrorKind(str, Enum):
    MISSING_PARAMETERS = "missing_parameters"
    RATE_LIMITED = "rate_limited"
    CONFLICT = "conflict"
    WRITE_FAILED = "write_failed"
    STORAGE_DEGRADED = "storage_degraded"

@dataclass(frozen=True)
class WriteResult:
    wrote: bool
    error: Optional[ErrorKind] = None

    @property
    def terminal(self) -> bool:
        """True when the caller should stop watching the item."""
        return self.error is not ErrorKind.RATE_LIMITED

ALREADY_SEEN = WriteResult(wrote=False)

class SeenWriteCoordinator:
    """
    Records that a user has seen an item, at most once per (user, item).

    Order of operations:
    1. cache hit -> nothing to do
    2. rate limiter refuses -> soft skip, cache untouched so a later
       visibility event may retry
    3. mark the cache optimistically, before the remote write resolves
    4. existence check, then create (or a single create-if-absent when the
       store offers one)
    5. a create that loses the race to another tab/device counts as done
    6. anything else is WRITE_FAILED; the cache stays marked and nothing
       is retried, so a late failure undercounts by one
    """

    def __init__(self, cache, limiter, store, bus=None, use_conditional_write: Optional[bool] = None):
        self.cache = cache
        self.limiter = limiter
        self.store = store
        self.bus = bus
        if use_conditional_write is None:
            use_conditional_write = config.SEEN_CONDITIONAL_WRITE
        self.use_conditional_write = use_conditional_write and hasattr(store, "create_seen_record_if_absent")

    def attempt_mark_seen(self, user_id: str, item_id: str, scope_id: str) -> WriteResult:
        if not user_id or not item_id or not scope_id:
            return WriteResult(wrote=False, error=ErrorKind.MISSING_PARAMETERS)

        if self.cache.is_seen(user_id, item_id):
            return ALREADY_SEEN

        if not self.limiter.try_acquire():
            return WriteResult(wrote=False, error=ErrorKind.RATE_LIMITED)

        logger.info("Marking item %s as seen for user %s", item_id, user_id)
        self.cache.mark_seen(user_id, item_id)

        try:
            if self.use_conditional_write:
                wrote = self.store.create_seen_record_if_absent(user_id, item_id, scope_id)
            else:
                wrote = self._check_then_create(user_id, item_id, scope_id)
        except PyMongoError as e:
            logger.warning("Failed to mark item %s as seen for user %s: %s", item_id, user_id, e)
            return self._failed(user_id, item_id, scope_id)
        except Exception as e:
            logger.exception("Unexpected error marking item %s as seen: %s", item_id, e)
            return self._failed(user_id, item_id, scope_id)

        if not wrote:
            return ALREADY_SEEN

        self._publish(SEEN_RECORDED, {"user_id": user_id, "item_id": item_id, "scope_id": scope_id})
        return WriteResult(wrote=True)

    def _check_then_create(self, user_id, item_id, scope_id) -> bool:
        if self.store.get_seen_record(user_id, item_id) is not None:
            # created earlier by another tab/device
            return False
        try:
            self.store.create_seen_record(user_id, item_id, scope_id)
        except DuplicateKeyError:
            logger.info("Seen record for user %s item %s created concurrently elsewhere", user_id, item_id)
            return False
        return True

    def _failed(self, user_id, item_id, scope_id) -> WriteResult:
        self._publish(SEEN_FAILED, {
            "user_id": user_id, "item_id": item_id, "scope_id": scope_id,
            "error": ErrorKind.WRITE_FAILED,
        })
        return WriteResult(wrote=False, error=ErrorKind.WRITE_FAILED)

    def _publish(self, event, payload):
        if self.bus is not None:
            self.bus.publish(event, payload)
