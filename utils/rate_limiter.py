import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, Optional

from utils import config

logger = logging.getLogger("rate-limiter")

def now_ms() -> float:
    return time.time() * 1000

class RateLimiter:
    """
    Sliding-window limiter shared by every seen write in the process.

    At most `max_ops` attempts are admitted within any trailing `window_ms`.
    A refused attempt leaves the window untouched.
    """

    def __init__(self, max_ops: Optional[int] = None, window_ms: Optional[int] = None,
                 clock: Callable[[], float] = now_ms):
        self.max_ops = config.SEEN_RATE_LIMIT_MAX if max_ops is None else max_ops
        self.window_ms = config.SEEN_RATE_LIMIT_WINDOW_MS if window_ms is None else window_ms
        self._clock = clock
        self._window: Deque[float] = deque()
        self._lock = threading.Lock()

    def _prune(self, now: float):
        cutoff = now - self.window_ms
        while self._window and self._window[0] < cutoff:
            self._window.popleft()

    def try_acquire(self) -> bool:
        with self._lock:
            now = self._clock()
            self._prune(now)
            if len(self._window) >= self.max_ops:
                logger.warning("Rate limit exceeded (%d/%dms), skipping mark", self.max_ops, self.window_ms)
                return False
            self._window.append(now)
            return True

    def remaining(self) -> int:
        with self._lock:
            self._prune(self._clock())
            return self.max_ops - len(self._window)

    def reset(self):
        with self._lock:
            self._window.clear()
