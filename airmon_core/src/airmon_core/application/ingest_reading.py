import logging
import threading
from collections import defaultdict
from typing import Callable, DefaultDict, List, Optional

from airmon_core.domain.models import SensorReading
from airmon_core.domain.ports import Unsubscribe, UnitOfWork

logger = logging.getLogger(__name__)

ReadingCallback = Callable[[SensorReading], None]


class ReadingNotifier:
    """In-process insert notifications, keyed by device."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: DefaultDict[str, List[ReadingCallback]] = defaultdict(list)

    def subscribe(self, device_id: str, callback: ReadingCallback) -> Unsubscribe:
        with self._lock:
            self._subscribers[device_id].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(device_id, [])
                if callback in callbacks:
                    callbacks.remove(callback)
                if not callbacks:
                    self._subscribers.pop(device_id, None)

        return unsubscribe

    def subscriber_count(self, device_id: str) -> int:
        with self._lock:
            return len(self._subscribers.get(device_id, []))

    def publish(self, reading: SensorReading) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(reading.device_id, []))
        for callback in callbacks:
            try:
                callback(reading)
            except Exception:
                logger.exception("Insert subscriber failed for device %s", reading.device_id)


def ingest_reading(
    reading: SensorReading, uow: UnitOfWork, notifier: Optional[ReadingNotifier] = None
) -> None:
    with uow:
        uow.reading_repo().insert(reading)
    if notifier is not None:
        notifier.publish(reading)
