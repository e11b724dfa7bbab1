"""
Rate-limited work queue of reconcile keys.

A key is queued at most once. A key added while a worker is processing it
is held back until the worker calls ``done``, so one key is never
reconciled by two workers at the same time.
"""
import logging
import threading
from collections import deque
from typing import Deque, Dict, Hashable, List, Optional, Set

logger = logging.getLogger(__name__)


class RateLimitingQueue:
    """De-duplicating queue with per-key exponential backoff."""

    def __init__(self, base_delay: float = 0.5, max_delay: float = 300.0):
        self.base_delay = base_delay
        self.max_delay = max_delay
        self._cond = threading.Condition()
        self._queue: Deque[Hashable] = deque()
        self._dirty: Set[Hashable] = set()
        self._processing: Set[Hashable] = set()
        self._failures: Dict[Hashable, int] = {}
        self._timers: List[threading.Timer] = []
        self._shutting_down = False

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    def add(self, key: Hashable) -> None:
        with self._cond:
            if self._shutting_down or key in self._dirty:
                return
            self._dirty.add(key)
            if key in self._processing:
                return
            self._queue.append(key)
            self._cond.notify()

    def get(self, timeout: Optional[float] = None) -> Optional[Hashable]:
        """
        Block until a key is available.

        Returns:
            The next key, or None on shutdown or timeout
        """
        with self._cond:
            if not self._cond.wait_for(lambda: self._queue or self._shutting_down, timeout=timeout):
                return None
            if not self._queue:
                return None
            key = self._queue.popleft()
            self._processing.add(key)
            self._dirty.discard(key)
            return key

    def done(self, key: Hashable) -> None:
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty:
                self._queue.append(key)
                self._cond.notify()

    def add_after(self, key: Hashable, delay: float) -> None:
        if delay <= 0:
            self.add(key)
            return
        with self._cond:
            if self._shutting_down:
                return
            timer = threading.Timer(delay, self._fire, args=(key,))
            timer.daemon = True
            self._timers.append(timer)
        timer.start()

    def _fire(self, key: Hashable) -> None:
        with self._cond:
            self._timers = [t for t in self._timers if t.is_alive() and t is not threading.current_thread()]
        self.add(key)

    def when(self, key: Hashable) -> float:
        """Next backoff delay for ``key``; counts as one more failure."""
        with self._cond:
            failures = self._failures.get(key, 0)
            self._failures[key] = failures + 1
        return min(self.base_delay * (2 ** min(failures, 32)), self.max_delay)

    def add_rate_limited(self, key: Hashable) -> None:
        delay = self.when(key)
        logger.debug(f"Requeue {key} in {delay:.2f}s")
        self.add_after(key, delay)

    def num_requeues(self, key: Hashable) -> int:
        with self._cond:
            return self._failures.get(key, 0)

    def forget(self, key: Hashable) -> None:
        with self._cond:
            self._failures.pop(key, None)

    def shut_down(self) -> None:
        with self._cond:
            self._shutting_down = True
            timers, self._timers = self._timers, []
            self._cond.notify_all()
        for timer in timers:
            timer.cancel()
