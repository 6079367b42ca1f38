"""
Console monitor that keeps one device's latest bucket on screen.

Both modes poll the reading store; the live mode recomputes its rolling
window after every fetch.
"""

import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from airmon_core.application.historical_series import HistoricalSeriesFeed, SeriesResult
from airmon_core.application.live_session import LiveFeed, LiveRecord, LiveSession
from airmon_core.application.polling import RefreshPoller
from airmon_core.config.environments import Settings
from airmon_core.domain.models import Period
from airmon_core.domain.ports import ReadingSource

from airmon_server.adapters.db.uow import UoWReadingSource

log = logging.getLogger(__name__)

SUMMARY_FIELDS = ("overallAqi", "pm25", "pm10", "co2", "temperature", "humidity")


def format_row(row: Dict[str, Any]) -> str:
    parts = [row["timestamp_label"]]
    for key in SUMMARY_FIELDS:
        if key in row:
            parts.append(f"{key}={round(row[key], 1):g}")
    return "  ".join(parts)


def _report_failure(exc: Exception) -> None:
    log.error("Reading store unavailable: %s", exc)


def series_monitor(
    config: Settings,
    device_id: str,
    period: Period,
    source: Optional[ReadingSource] = None,
) -> RefreshPoller:
    source = source or UoWReadingSource()

    def show(result: SeriesResult) -> None:
        latest = next((r for r in reversed(result.records) if r.values), None)
        if latest is None:
            print(f"{device_id}: no readings in the last {period.value} window")
            return
        print(format_row(latest.as_row()))

    feed = HistoricalSeriesFeed(lambda: source, show, tz=config.DISPLAY_TIMEZONE)
    feed.select(device_id, period)
    return RefreshPoller(
        f"series-{device_id}",
        config.POLL_INTERVAL_SEC,
        feed.refresh,
        max_failures=config.POLL_MAX_FAILURES,
        on_error=_report_failure,
    )


def live_monitor(
    config: Settings,
    device_id: str,
    source: Optional[ReadingSource] = None,
) -> Tuple[LiveFeed, RefreshPoller]:
    source = source or UoWReadingSource()
    session = LiveSession(
        device_id,
        window_s=config.LIVE_WINDOW_SEC,
        bucket_s=config.LIVE_BUCKET_SEC,
        carry_forward_s=config.LIVE_CARRY_FORWARD_SEC,
        tz=config.DISPLAY_TIMEZONE,
    )

    def show(records: List[LiveRecord]) -> None:
        latest = next((r for r in reversed(records) if r.has_data), None)
        if latest is None:
            print(f"{device_id}: waiting for live readings")
            return
        print(format_row(latest.as_row()))

    feed = LiveFeed(session, show, debounce_s=config.LIVE_DEBOUNCE_SEC)

    def refetch() -> None:
        now = time.time()
        session.backfill(source.fetch_readings(device_id, now - session.window_s, now))
        feed.notify()

    poller = RefreshPoller(
        f"live-refetch-{device_id}",
        config.POLL_INTERVAL_SEC,
        refetch,
        max_failures=config.POLL_MAX_FAILURES,
        on_error=_report_failure,
    )
    return feed, poller
