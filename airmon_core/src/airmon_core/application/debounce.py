import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class Debouncer:
    """
    Coalesces bursts of triggers into one call of *fn* per *delay_s*.

    The first trigger schedules *fn*; triggers arriving before it runs are
    absorbed by that pending call.
    """

    def __init__(self, delay_s: float, fn: Callable[[], None]):
        self.delay_s = delay_s
        self._fn = fn
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def trigger(self) -> None:
        with self._lock:
            if self._timer is not None:
                return
            self._timer = threading.Timer(self.delay_s, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def flush(self) -> None:
        """Run now, replacing any pending call."""
        self.cancel()
        self._run()

    def cancel(self) -> None:
        with self._lock:
            timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

    def _fire(self) -> None:
        with self._lock:
            self._timer = None
        self._run()

    def _run(self) -> None:
        try:
            self._fn()
        except Exception:
            logger.exception("Debounced call failed")
