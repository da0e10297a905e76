import logging
import threading
from typing import Any, Callable, Optional

from handler.visibility import VisibilityObserver, VisibilityOptions

logger = logging.getLogger("seen-tracker")

def _noop():
    pass

class SeenTracker:
    """
    Per-item wiring between visibility and the seen write.

    Features:
    - skips previews and items with missing identifiers
    - checks the cache before watching so known items cost nothing
    - debounced visibility (threshold / debounce_ms) before marking
    - a rate-limited attempt is retried on the next qualifying visibility
    - every other outcome ends tracking for the item
    """

    def __init__(self, coordinator, source, options: Optional[VisibilityOptions] = None,
                 timer_factory: Callable[..., Any] = threading.Timer):
        self.coordinator = coordinator
        self.source = source
        self.options = options or VisibilityOptions()
        self._timer_factory = timer_factory
        self._observers = {}
        self._lock = threading.Lock()

    @property
    def cache(self):
        return self.coordinator.cache

    def track(self, element, user_id: str, item_id: str, scope_id: str,
              is_preview: bool = False) -> Callable[[], None]:
        if not user_id or not item_id or not scope_id or is_preview:
            return _noop
        if self.cache.is_seen(user_id, item_id):
            return _noop

        key = (element, user_id, item_id)
        self._watch(key, element, user_id, item_id, scope_id)
        return lambda: self.untrack(key)

    def _watch(self, key, element, user_id, item_id, scope_id):
        observer = VisibilityObserver(self.source, self.options, timer_factory=self._timer_factory)
        with self._lock:
            previous = self._observers.pop(key, None)
            self._observers[key] = observer
        if previous is not None:
            previous.detach()

        def on_visible():
            self._on_visible(key, observer, element, user_id, item_id, scope_id)

        observer.attach(element, on_visible)

    def _on_visible(self, key, observer, element, user_id, item_id, scope_id):
        # the cache may have been filled by a bulk load since we started watching
        if self.cache.is_seen(user_id, item_id):
            self._forget(key, observer)
            return

        result = self.coordinator.attempt_mark_seen(user_id, item_id, scope_id)

        if not result.terminal:
            with self._lock:
                still_tracked = self._observers.get(key) is observer
            if still_tracked:
                self._watch(key, element, user_id, item_id, scope_id)
            return

        if result.error is not None:
            logger.warning("Failed to mark post %s as seen: %s", item_id, result.error.value)
        self._forget(key, observer)

    def _forget(self, key, observer):
        with self._lock:
            if self._observers.get(key) is observer:
                del self._observers[key]

    def untrack(self, key):
        with self._lock:
            observer = self._observers.pop(key, None)
        if observer is not None:
            observer.detach()

    def detach_all(self):
        with self._lock:
            observers = list(self._observers.values())
            self._observers.clear()
        for observer in observers:
            observer.detach()

    def tracked_count(self) -> int:
        with self._lock:
            return len(self._observers)
