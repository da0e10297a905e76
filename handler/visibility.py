import logging
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List

from utils import config

logger = logging.getLogger("visibility")

class VisibilityState(str, Enum):
    IDLE = "idle"
    ARMED = "armed"
    FIRED = "fired"
    DETACHED = "detached"

@dataclass
class VisibilityOptions:
    threshold: float = field(default_factory=lambda: config.SEEN_VISIBILITY_THRESHOLD)
    debounce_ms: int = field(default_factory=lambda: config.SEEN_DEBOUNCE_MS)

class ManualVisibilitySource:
    """
    Visibility primitive driven by the host.

    The host (a viewport tracker, a headless renderer, a test) calls
    `report(element, ratio)` whenever the visible fraction of an element
    changes; every watcher of that element receives the ratio.
    """

    def __init__(self):
        self._watchers: Dict[Any, List[Callable[[float], None]]] = defaultdict(list)
        self._lock = threading.Lock()

    def watch(self, element, callback: Callable[[float], None]) -> Callable[[], None]:
        with self._lock:
            self._watchers[element].append(callback)

        def unwatch():
            with self._lock:
                callbacks = self._watchers.get(element)
                if callbacks and callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._watchers.pop(element, None)
        return unwatch

    def report(self, element, ratio: float):
        with self._lock:
            callbacks = list(self._watchers.get(element, ()))
        for callback in callbacks:
            callback(ratio)

    def watcher_count(self, element=None) -> int:
        with self._lock:
            if element is not None:
                return len(self._watchers.get(element, ()))
            return sum(len(v) for v in self._watchers.values())

class VisibilityObserver:
    """
    Fires `on_visible` once when an element stays at or above `threshold`
    for `debounce_ms`. Dropping below the threshold before that cancels the
    pending timer. After firing, the observer disconnects itself.
    """

    def __init__(self, source, options: VisibilityOptions = None,
                 timer_factory: Callable[..., Any] = threading.Timer):
        self.source = source
        self.options = options or VisibilityOptions()
        self._timer_factory = timer_factory
        self._timer = None
        self._unwatch = None
        self._on_visible = None
        self._attached = False
        self.state = VisibilityState.IDLE
        self._lock = threading.RLock()

    def attach(self, element, on_visible: Callable[[], None]) -> Callable[[], None]:
        with self._lock:
            if self._attached:
                raise RuntimeError("VisibilityObserver instances are single use; create a new one")
            self._attached = True
            self._on_visible = on_visible
            self.element = element
            self._unwatch = self.source.watch(element, self._on_ratio)
        return self.detach

    def _on_ratio(self, ratio: float):
        with self._lock:
            if self.state in (VisibilityState.FIRED, VisibilityState.DETACHED):
                return

            if ratio < self.options.threshold:
                # scrolled away before the debounce elapsed
                if self.state == VisibilityState.ARMED:
                    self._cancel_timer()
                    self.state = VisibilityState.IDLE
                return

            if self.state == VisibilityState.IDLE:
                self.state = VisibilityState.ARMED
                timer = self._timer_factory(self.options.debounce_ms / 1000, self._elapsed)
                timer.daemon = True
                self._timer = timer
                timer.start()

    def _elapsed(self):
        with self._lock:
            if self.state != VisibilityState.ARMED:
                return
            self.state = VisibilityState.FIRED
            self._timer = None
            self._release_watch()
            callback = self._on_visible

        logger.debug("Element %r visible for %dms", self.element, self.options.debounce_ms)
        try:
            callback()
        except Exception as e:
            logger.exception("on_visible callback failed: %s", e)

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _release_watch(self):
        if self._unwatch is not None:
            self._unwatch()
            self._unwatch = None

    def detach(self):
        """Tear down the timer and the watch. Safe to call repeatedly."""
        with self._lock:
            self._cancel_timer()
            self._release_watch()
            if self.state != VisibilityState.FIRED:
                self.state = VisibilityState.DETACHED

def attach(source, element, options: VisibilityOptions, on_visible: Callable[[], None],
           timer_factory: Callable[..., Any] = threading.Timer) -> Callable[[], None]:
    """Watch `element` and return its detach function."""
    observer = VisibilityObserver(source, options, timer_factory=timer_factory)
    return observer.attach(element, on_visible)
