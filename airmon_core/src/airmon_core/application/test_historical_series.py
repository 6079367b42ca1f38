import pytest

from airmon_core.application.historical_series import HistoricalSeriesFeed, get_historical_series
from airmon_core.application.ingest_reading import ReadingNotifier
from airmon_core.domain.aqi import sub_index_aqi
from airmon_core.domain.errors import ReadingSourceError
from airmon_core.domain.models import Period, SensorReading

NOW = 1_700_000_000.0


class FakeSource:
    def __init__(self, readings=(), on_fetch=None):
        self.readings = list(readings)
        self.calls = []
        self.on_fetch = on_fetch

    def fetch_readings(self, device_id, start_ts, end_ts, sensor_types=None):
        self.calls.append((device_id, start_ts, end_ts))
        if self.on_fetch is not None:
            self.on_fetch()
        return [r for r in self.readings if r.device_id == device_id and start_ts <= r.ts <= end_ts]


class FailingSource:
    def fetch_readings(self, device_id, start_ts, end_ts, sensor_types=None):
        raise ReadingSourceError("db down")


def pm25(value, ts, device_id="dev-1"):
    return SensorReading(device_id=device_id, sensor_type="pm25", value=value, ts=ts)


# ───────────── get_historical_series ─────────────
def test_series_fetches_the_period_window():
    source = FakeSource([pm25(10.0, NOW - 100), pm25(30.0, NOW - 200)])
    result = get_historical_series("dev-1", "1hr", source, now=NOW)

    assert source.calls == [("dev-1", NOW - 24 * 3600, NOW)]
    assert result.ok
    assert len(result.records) == 24
    last = result.rows()[-1]
    assert last["pm25"] == 20.0
    assert last["pm25Aqi"] == sub_index_aqi("pm25", 20.0)
    assert last["overallAqi"] == last["pm25Aqi"]


def test_series_without_aqi():
    result = get_historical_series(
        "dev-1", Period.TEN_MIN, FakeSource([pm25(10.0, NOW - 1)]), now=NOW, include_aqi=False
    )
    assert "pm25Aqi" not in result.rows()[-1]


def test_fetch_failure_returns_empty_result_with_error():
    result = get_historical_series("dev-1", "8hr", FailingSource(), now=NOW)
    assert not result.ok
    assert result.records == []
    assert "db down" in result.error


# ───────────── HistoricalSeriesFeed ─────────────
def test_feed_publishes_selected_subject():
    published = []
    source = FakeSource([pm25(10.0, NOW - 1)])
    feed = HistoricalSeriesFeed(lambda: source, published.append, clock=lambda: NOW)

    assert feed.refresh() is True
    assert published == []  # nothing selected yet

    feed.select("dev-1", "10min")
    feed.refresh()
    assert [(r.device_id, r.period) for r in published] == [("dev-1", Period.TEN_MIN)]


def test_feed_drops_result_for_replaced_subject():
    published = []
    feed = None

    def switch_device():
        feed.select("dev-2", "10min")

    source = FakeSource(on_fetch=switch_device)
    feed = HistoricalSeriesFeed(lambda: source, published.append, clock=lambda: NOW)
    feed.select("dev-1", "10min")
    feed.refresh()

    assert published == []
    assert feed.subject == ("dev-2", Period.TEN_MIN)


def test_feed_skips_overlapping_refresh():
    published = []
    nested = []
    feed = None

    source = FakeSource(on_fetch=lambda: nested.append(feed.refresh()))
    feed = HistoricalSeriesFeed(lambda: source, published.append, clock=lambda: NOW)
    feed.select("dev-1", "1hr")

    assert feed.refresh() is True
    assert nested == [False]
    assert len(source.calls) == 1
    assert len(published) == 1


def test_feed_raises_on_fetch_failure():
    published = []
    feed = HistoricalSeriesFeed(FailingSource, published.append, clock=lambda: NOW)
    feed.select("dev-1", "1hr")
    with pytest.raises(ReadingSourceError):
        feed.refresh()
    assert published == []


def test_feed_refreshes_on_insert_for_selected_device():
    published = []
    notifier = ReadingNotifier()
    source = FakeSource([pm25(10.0, NOW - 1)])
    feed = HistoricalSeriesFeed(lambda: source, published.append, clock=lambda: NOW)
    feed.select("dev-1", "10min")
    feed.follow(notifier)

    notifier.publish(pm25(10.0, NOW - 1))
    notifier.publish(pm25(10.0, NOW - 1, device_id="dev-2"))

    assert len(published) == 1
    assert published[0].device_id == "dev-1"


def test_feed_follows_device_changes():
    published = []
    notifier = ReadingNotifier()
    feed = HistoricalSeriesFeed(FakeSource, published.append, clock=lambda: NOW)
    feed.follow(notifier)
    feed.select("dev-1", "1hr")
    feed.select("dev-2", "1hr")

    assert notifier.subscriber_count("dev-1") == 0
    assert notifier.subscriber_count("dev-2") == 1

    notifier.publish(pm25(10.0, NOW - 1, device_id="dev-2"))
    assert [r.device_id for r in published] == ["dev-2"]

    feed.unfollow()
    assert notifier.subscriber_count("dev-2") == 0


def test_insert_refresh_failure_is_logged(caplog):
    notifier = ReadingNotifier()
    feed = HistoricalSeriesFeed(FailingSource, lambda result: None, clock=lambda: NOW)
    feed.select("dev-1", "1hr")
    feed.follow(notifier)

    notifier.publish(pm25(10.0, NOW - 1))
    assert "Refresh after insert for dev-1 failed" in caplog.text
