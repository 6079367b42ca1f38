from .delete_data import delete_device_readings
from .historical_series import HistoricalSeriesFeed, SeriesResult, get_historical_series
from .ingest_reading import ReadingNotifier, ingest_reading
from .live_session import LiveFeed, LiveSession, LiveSessionRegistry
from .reports import build_report

__all__ = [
    "delete_device_readings",
    "HistoricalSeriesFeed",
    "SeriesResult",
    "get_historical_series",
    "ReadingNotifier",
    "ingest_reading",
    "LiveFeed",
    "LiveSession",
    "LiveSessionRegistry",
    "build_report",
]
