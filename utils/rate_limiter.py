"""Minimum-interval rate limiter."""
import time
import threading


class RateLimiter:
    """Spaces calls at least `min_interval_ms` apart, thread-safe.

    The limiter remembers when the last call was let through and sleeps the
    remainder of the interval before letting the next one go. Callers sharing
    one limiter are serialized by its lock.
    """

    def __init__(self, min_interval_ms, clock=time.monotonic, sleep=time.sleep):
        self.min_interval = max(0.0, min_interval_ms / 1000.0)
        self.last_call = None
        self.calls = 0
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()

    def wait(self):
        """Block until the next call is allowed, then record it."""
        with self._lock:
            if self.last_call is not None:
                remaining = self.min_interval - (self._clock() - self.last_call)
                if remaining > 0:
                    self._sleep(remaining)
            self.last_call = self._clock()
            self.calls += 1
            return self.last_call

    def reset(self):
        with self._lock:
            self.last_call = None
            self.calls = 0
