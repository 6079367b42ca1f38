from typing import Callable, Iterable, List, Optional, Protocol

from airmon_core.domain.models import SensorReading

Unsubscribe = Callable[[], None]


class ReadingSource(Protocol):
    def fetch_readings(
        self,
        device_id: str,
        start_ts: float,
        end_ts: float,
        sensor_types: Optional[Iterable[str]] = None,
    ) -> List[SensorReading]:
        """Raises ReadingSourceError when the store is unavailable."""
        ...


class ReadingRepository(ReadingSource, Protocol):
    def insert(self, reading: SensorReading) -> None: ...

    def delete_for_device(self, device_id: str) -> None: ...


class InsertSubscriptions(Protocol):
    def subscribe(
        self, device_id: str, callback: Callable[[SensorReading], None]
    ) -> Unsubscribe: ...


class UnitOfWork(Protocol):
    def reading_repo(self) -> ReadingRepository: ...

    def __enter__(self) -> "UnitOfWork": ...

    def __exit__(self, exc_type, exc_val, exc_tb) -> None: ...
