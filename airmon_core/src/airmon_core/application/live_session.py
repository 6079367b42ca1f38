"""
Rolling-window live aggregation.

A LiveSession owns the bucket map for one device. Readings are folded in as
they arrive; ``materialize`` turns the window into a gap-free series with AQI
computed per bucket and evicts buckets that have left the window.
"""

import logging
import math
import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from airmon_core.application.debounce import Debouncer
from airmon_core.application.polling import RefreshPoller
from airmon_core.domain.aqi import AqiBreakdown, aqi_from_averages
from airmon_core.domain.bucketing import LIVE_LABEL_FORMAT, TimeZone, format_label, resolve_tz
from airmon_core.domain.errors import ReadingSourceError
from airmon_core.domain.models import SensorReading, TimeBucket, parse_reading
from airmon_core.domain.ports import InsertSubscriptions, ReadingSource, Unsubscribe

logger = logging.getLogger(__name__)

LIVE_METRICS = (
    "temperature",
    "humidity",
    "co2",
    "voc",
    "hcho",
    "nox",
    "pm25",
    "pm10",
    "pm03",
    "pm1",
    "pm5",
    "pc03",
    "pc05",
    "pc1",
    "pc25",
    "pc5",
    "pc10",
)

# co2 never reads below the outdoor baseline
LIVE_DEFAULTS: Dict[str, float] = {"co2": 400.0}


@dataclass
class LiveRecord:
    timestamp: float
    label: str
    values: Dict[str, float] = field(default_factory=dict)
    aqi: AqiBreakdown = field(default_factory=AqiBreakdown)
    has_data: bool = False

    def as_row(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {"timestamp": self.timestamp, "timestamp_label": self.label}
        row.update(self.values)
        row.update(self.aqi.as_row())
        return row


def _reading_key(reading: SensorReading) -> Tuple[str, float, float]:
    return reading.sensor_type, reading.ts, reading.value


class LiveSession:
    def __init__(
        self,
        device_id: str,
        window_s: float = 600,
        bucket_s: float = 10,
        carry_forward_s: float = 0,
        tz: TimeZone = "UTC",
        clock: Callable[[], float] = time.time,
    ):
        if bucket_s <= 0 or window_s < bucket_s:
            raise ValueError("window must hold at least one positive-width bucket")
        self.device_id = device_id
        self.window_s = window_s
        self.bucket_s = bucket_s
        self.carry_forward_s = carry_forward_s
        self.tz = resolve_tz(tz)
        self._clock = clock
        self._lock = threading.RLock()
        self._buckets: Dict[float, TimeBucket] = {}
        self._generation = 0
        self._since_backfill: Optional[List[SensorReading]] = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)

    def slot(self, ts: float) -> float:
        return math.floor(ts / self.bucket_s) * self.bucket_s

    def _fold(self, reading: SensorReading, now: float) -> None:
        start = self.slot(reading.ts)
        cutoff = now - self.window_s
        if start < cutoff or start > self.slot(now) + self.bucket_s:
            # outside the window, or from a clock running ahead
            return
        bucket = self._buckets.get(start)
        if bucket is None:
            # a new slot is the only way the map grows
            self._evict_before(cutoff)
            bucket = self._buckets[start] = TimeBucket(start_ts=start)
        bucket.add(reading.sensor_type, reading.value)

    def ingest(self, raw: Any) -> bool:
        reading = parse_reading(raw)
        if reading is None:
            logger.debug("Skipping malformed live reading for %s: %r", self.device_id, raw)
            return False
        with self._lock:
            self._fold(reading, self._clock())
            if self._since_backfill is not None:
                self._since_backfill.append(reading)
        return True

    def begin_backfill(self) -> int:
        with self._lock:
            self._generation += 1
            self._since_backfill = []
            return self._generation

    def complete_backfill(self, generation: int, readings: Iterable[Any]) -> bool:
        """
        Replace the bucket map with *readings* fetched since ``begin_backfill``.

        Live readings that arrived during the fetch are kept; one that the
        fetch already returned is folded once, matched by occurrence count so
        identical readings are not collapsed. Returns False when a newer
        backfill has started, in which case nothing changes.
        """
        parsed = [r for r in map(parse_reading, readings) if r is not None]
        with self._lock:
            if generation != self._generation:
                logger.debug("Dropping stale backfill for %s", self.device_id)
                return False
            arrived = self._since_backfill or []
            self._since_backfill = None
            now = self._clock()
            fetched = Counter(map(_reading_key, parsed))
            self._buckets.clear()
            for reading in parsed:
                self._fold(reading, now)
            for reading in arrived:
                key = _reading_key(reading)
                if fetched[key]:
                    fetched[key] -= 1
                else:
                    self._fold(reading, now)
        logger.debug("Backfilled %s with %d readings", self.device_id, len(parsed))
        return True

    def backfill(self, readings: Iterable[Any]) -> None:
        self.complete_backfill(self.begin_backfill(), readings)

    def _evict_before(self, cutoff: float) -> int:
        stale = [start for start in self._buckets if start < cutoff]
        for start in stale:
            del self._buckets[start]
        return len(stale)

    def evict(self, now: float) -> int:
        with self._lock:
            return self._evict_before(now - self.window_s)

    def materialize(self, now: Optional[float] = None) -> List[LiveRecord]:
        """The current window, oldest bucket first, one record per bucket slot."""
        now = self._clock() if now is None else now
        slots = math.ceil(self.window_s / self.bucket_s)
        last_val: Dict[str, float] = {}
        last_ts: Dict[str, float] = {}
        records = []

        with self._lock:
            for i in range(slots):
                start = self.slot(now - (slots - i - 1) * self.bucket_s)
                bucket = self._buckets.get(start)
                averages = bucket.averages() if bucket is not None else {}

                values: Dict[str, float] = {}
                for metric in LIVE_METRICS:
                    if metric in averages:
                        values[metric] = last_val[metric] = averages[metric]
                        last_ts[metric] = start
                    elif metric in last_ts and start - last_ts[metric] <= self.carry_forward_s:
                        values[metric] = last_val[metric]
                    else:
                        values[metric] = LIVE_DEFAULTS.get(metric, 0.0)
                for key, value in averages.items():
                    values.setdefault(key, value)

                records.append(
                    LiveRecord(
                        timestamp=start,
                        label=format_label(start, LIVE_LABEL_FORMAT, self.tz),
                        values=values,
                        aqi=aqi_from_averages(values),
                        has_data=bool(averages),
                    )
                )
            evicted = self.evict(now)

        if evicted:
            logger.debug("Evicted %d buckets for %s", evicted, self.device_id)
        return records


class LiveFeed:
    """
    Publishes a session's series as readings arrive and on a fixed tick.

    Ingestion is immediate; only the recompute-and-publish step is debounced.
    """

    def __init__(
        self,
        session: LiveSession,
        on_series: Callable[[List[LiveRecord]], None],
        debounce_s: float = 1.0,
    ):
        self.session = session
        self._on_series = on_series
        self._debouncer = Debouncer(debounce_s, self.publish)
        self._poller: Optional[RefreshPoller] = None

    def publish(self) -> None:
        self._on_series(self.session.materialize())

    def notify(self) -> None:
        self._debouncer.trigger()

    def on_reading(self, reading: Any) -> None:
        if self.session.ingest(reading):
            self.notify()

    def tick(self) -> None:
        self._debouncer.flush()

    def start(self) -> None:
        if self._poller is not None:
            return
        self._poller = RefreshPoller(
            name=f"live-{self.session.device_id}",
            interval_s=self.session.bucket_s,
            refresh=self.tick,
        )
        self._poller.start()

    def stop(self) -> None:
        self._debouncer.cancel()
        if self._poller is not None:
            self._poller.stop()
            self._poller.join(timeout=1.0)
            self._poller = None


@dataclass
class _RegistryEntry:
    session: LiveSession
    unsubscribe: Unsubscribe
    ready: threading.Event = field(default_factory=threading.Event)


class LiveSessionRegistry:
    """One live session per device, backfilled on first use and fed by insert notifications."""

    def __init__(
        self,
        source_factory: Callable[[], ReadingSource],
        subscriptions: InsertSubscriptions,
        *,
        window_s: float = 600,
        bucket_s: float = 10,
        carry_forward_s: float = 0,
        tz: TimeZone = "UTC",
        clock: Callable[[], float] = time.time,
    ):
        self._source_factory = source_factory
        self._subscriptions = subscriptions
        self._options = dict(
            window_s=window_s, bucket_s=bucket_s, carry_forward_s=carry_forward_s, tz=tz, clock=clock
        )
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: Dict[str, _RegistryEntry] = {}

    def __contains__(self, device_id: str) -> bool:
        with self._lock:
            return device_id in self._sessions

    def session_for(self, device_id: str) -> LiveSession:
        """
        The device's session, opening it on first use.

        Callers arriving while the first backfill is in flight wait for it.

        Raises:
            ReadingSourceError: the initial backfill could not be fetched.
        """
        with self._lock:
            entry = self._sessions.get(device_id)
            opening = entry is None
            if opening:
                session = LiveSession(device_id, **self._options)
                generation = session.begin_backfill()
                unsubscribe = self._subscriptions.subscribe(device_id, session.ingest)
                entry = self._sessions[device_id] = _RegistryEntry(session, unsubscribe)

        if not opening:
            entry.ready.wait()
            with self._lock:
                if self._sessions.get(device_id) is not entry:
                    raise ReadingSourceError(f"live session for {device_id} failed to open")
            return entry.session

        now = self._clock()
        try:
            readings = self._source_factory().fetch_readings(
                device_id, now - session.window_s, now
            )
        except Exception:
            self.close(device_id)
            raise
        session.complete_backfill(generation, readings)
        entry.ready.set()
        logger.info("Opened live session for %s", device_id)
        return session

    def close(self, device_id: str) -> None:
        with self._lock:
            entry = self._sessions.pop(device_id, None)
        if entry is not None:
            entry.unsubscribe()
            entry.ready.set()
            logger.info("Closed live session for %s", device_id)

    def close_all(self) -> None:
        with self._lock:
            device_ids = list(self._sessions)
        for device_id in device_ids:
            self.close(device_id)
