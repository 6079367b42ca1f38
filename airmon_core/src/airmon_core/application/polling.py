import logging
import random
import threading
import time
from typing import Callable, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class BackoffPolicy(Protocol):
    """Protocol for backoff policy implementations."""

    def next_delay(self, *, success: bool) -> float: ...


class ExponentialBackoff(BackoffPolicy):
    """Retry delay that doubles per consecutive failure, capped at *max_*, spread by *jitter*."""

    def __init__(self, base: float = 1.0, max_: float = 60.0, jitter: float = 0.5):
        self._base = base
        self._max = max_
        self._jitter = jitter
        self.attempt = 0

    def next_delay(self, *, success: bool) -> float:
        if success:
            self.attempt = 0
            return 0.0

        self.attempt = min(self.attempt + 1, 32)
        delay = min(self._base * 2**self.attempt, self._max)
        return delay * (1 + random.uniform(-self._jitter, self._jitter))


class CoalescingRunner:
    """Runs a callable unless a previous run is still in flight."""

    def __init__(self, fn: Callable[[], None]):
        self._fn = fn
        self._in_flight = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._in_flight.locked()

    def run(self) -> bool:
        """Returns False when the call was skipped because another run is in progress."""
        if not self._in_flight.acquire(blocking=False):
            logger.debug("Refresh already in flight, skipping")
            return False
        try:
            self._fn()
        finally:
            self._in_flight.release()
        return True


class RefreshPoller(threading.Thread):
    """
    Thread that calls *refresh* every *interval_s* seconds.

    Failures are retried silently with backoff. Once *max_failures*
    consecutive refreshes have failed, *on_error* is called with the last
    exception; it is not called again until a refresh succeeds.
    """

    daemon = True

    def __init__(
        self,
        name: str,
        interval_s: float,
        refresh: Callable[[], None],
        backoff: Optional[BackoffPolicy] = None,
        max_failures: int = 3,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        super().__init__(name=name)
        self.interval_s = interval_s
        self.runner = CoalescingRunner(refresh)
        self.backoff = backoff or ExponentialBackoff(base=interval_s, max_=interval_s * 8)
        self.max_failures = max_failures
        self.on_error = on_error
        self.failures = 0
        self.s_stop = threading.Event()

    def stop(self):
        self.s_stop.set()

    def poll_once(self) -> float:
        """Run one refresh and return the delay before the next one."""
        try:
            self.runner.run()
        except Exception as exc:
            self.failures += 1
            logger.warning("%s refresh failed (%d in a row): %s", self.name, self.failures, exc)
            if self.failures == self.max_failures and self.on_error is not None:
                self.on_error(exc)
            return max(self.interval_s, self.backoff.next_delay(success=False))
        if self.failures:
            logger.info("%s recovered after %d failures", self.name, self.failures)
        self.failures = 0
        self.backoff.next_delay(success=True)
        return self.interval_s

    def run(self):
        next_tick = time.time() + self.interval_s
        while not self.s_stop.is_set():
            now = time.time()
            if now >= next_tick:
                next_tick = time.time() + self.poll_once()
            else:
                self.s_stop.wait(next_tick - now)
