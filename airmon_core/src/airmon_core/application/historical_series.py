import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple, Union

from airmon_core.application.polling import CoalescingRunner
from airmon_core.domain.bucketing import BucketRecord, TimeZone, aggregate_readings
from airmon_core.domain.errors import ReadingSourceError
from airmon_core.domain.models import Period, SensorReading
from airmon_core.domain.ports import InsertSubscriptions, ReadingSource, Unsubscribe

logger = logging.getLogger(__name__)


@dataclass
class SeriesResult:
    device_id: str
    period: Period
    records: List[BucketRecord] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def rows(self) -> List[dict]:
        return [record.as_row() for record in self.records]


def get_historical_series(
    device_id: str,
    period: Union[Period, str],
    source: ReadingSource,
    *,
    now: Optional[float] = None,
    include_aqi: bool = True,
    tz: TimeZone = "UTC",
) -> SeriesResult:
    """
    Bucketed history of one device for a period selector.

    A failed fetch yields an empty result with ``error`` set, never a partial
    series.
    """
    period = Period(period)
    now = time.time() if now is None else now
    try:
        readings = source.fetch_readings(device_id, now - period.window_s, now)
    except ReadingSourceError as exc:
        logger.error("Fetching readings for %s failed: %s", device_id, exc)
        return SeriesResult(device_id=device_id, period=period, error=str(exc))

    records = aggregate_readings(readings, period, now, include_aqi=include_aqi, tz=tz)
    logger.debug(
        "Built %s series for %s from %d readings", period.value, device_id, len(readings)
    )
    return SeriesResult(device_id=device_id, period=period, records=records)


class HistoricalSeriesFeed:
    """
    Keeps the series for the currently selected device and period up to date.

    ``refresh`` may be driven by a poller and, after ``follow``, by insert
    notifications for the selected device at the same time; overlapping refreshes are skipped, and a result fetched for a
    subject that has since been replaced is dropped. A failed fetch raises
    ReadingSourceError instead of publishing an empty series.
    """

    def __init__(
        self,
        source_factory: Callable[[], ReadingSource],
        on_series: Callable[[SeriesResult], None],
        *,
        include_aqi: bool = True,
        tz: TimeZone = "UTC",
        clock: Callable[[], float] = time.time,
    ):
        self._source_factory = source_factory
        self._on_series = on_series
        self._include_aqi = include_aqi
        self._tz = tz
        self._clock = clock
        self._lock = threading.Lock()
        self._subject: Optional[Tuple[str, Period]] = None
        self._generation = 0
        self._runner = CoalescingRunner(self._refresh)
        self._subscriptions: Optional[InsertSubscriptions] = None
        self._unsubscribe: Optional[Unsubscribe] = None

    @property
    def subject(self) -> Optional[Tuple[str, Period]]:
        with self._lock:
            return self._subject

    def select(self, device_id: str, period: Union[Period, str]) -> None:
        with self._lock:
            previous = self._subject
            self._subject = (device_id, Period(period))
            self._generation += 1
        if previous is None or previous[0] != device_id:
            self._resubscribe(device_id)

    def follow(self, subscriptions: InsertSubscriptions) -> None:
        """Refresh whenever a reading is inserted for the selected device."""
        self._subscriptions = subscriptions
        subject = self.subject
        if subject is not None:
            self._resubscribe(subject[0])

    def unfollow(self) -> None:
        self._subscriptions = None
        self._resubscribe(None)

    def _resubscribe(self, device_id: Optional[str]) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._subscriptions is not None and device_id is not None:
            self._unsubscribe = self._subscriptions.subscribe(device_id, self._on_insert)

    def _on_insert(self, reading: SensorReading) -> None:
        try:
            self.refresh()
        except ReadingSourceError as exc:
            logger.warning("Refresh after insert for %s failed: %s", reading.device_id, exc)

    def refresh(self) -> bool:
        """Returns False when skipped because a refresh is already running."""
        return self._runner.run()

    def _refresh(self) -> None:
        with self._lock:
            subject, generation = self._subject, self._generation
        if subject is None:
            return
        device_id, period = subject
        result = get_historical_series(
            device_id,
            period,
            self._source_factory(),
            now=self._clock(),
            include_aqi=self._include_aqi,
            tz=self._tz,
        )
        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding stale series for %s/%s", device_id, period.value)
                return
        if not result.ok:
            # left to the poller's retry and backoff
            raise ReadingSourceError(result.error)
        self._on_series(result)
