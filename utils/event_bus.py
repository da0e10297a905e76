from typing import Callable, Dict, List, Any
import logging
import threading

logger = logging.getLogger("event-bus")

SEEN_RECORDED = "seen.recorded"
SEEN_FAILED = "seen.failed"

class EventBus:
    """In-process pub/sub for seen-tracking outcomes. Handler errors never reach the publisher."""

    def __init__(self):
        self._subs: Dict[str, List[Callable[[Any], None]]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event: str, handler: Callable[[Any], None]) -> Callable[[], None]:
        with self._lock:
            self._subs.setdefault(event, []).append(handler)
        logger.debug("Subscribed handler %s to event '%s'", getattr(handler, '__name__', repr(handler)), event)

        def unsubscribe():
            with self._lock:
                handlers = self._subs.get(event, [])
                if handler in handlers:
                    handlers.remove(handler)
        return unsubscribe

    def publish(self, event: str, payload: Any) -> int:
        with self._lock:
            handlers = list(self._subs.get(event, []))
        logger.debug("Dispatching event '%s' to %d handler(s)", event, len(handlers))
        delivered = 0
        for h in handlers:
            try:
                h(payload)
                delivered += 1
            except Exception as e:
                logger.exception("Handler %s failed: %s", getattr(h, '__name__', repr(h)), e)
        return delivered
