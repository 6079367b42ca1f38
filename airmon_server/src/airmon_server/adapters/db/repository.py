import logging
from typing import Iterable, List, Optional

from airmon_core.domain.errors import ReadingSourceError
from airmon_core.domain.models import SensorReading
from airmon_core.domain.ports import ReadingRepository
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from airmon_server.adapters.db.sqlalchemy_models import SensorReadingORM

log = logging.getLogger(__name__)


class SqlAlchemyReadingRepository(ReadingRepository):
    def __init__(self, session: Session):
        self.session = session

    # READ side
    def fetch_readings(
        self,
        device_id: str,
        start_ts: float,
        end_ts: float,
        sensor_types: Optional[Iterable[str]] = None,
    ) -> List[SensorReading]:
        stmt = (
            select(SensorReadingORM)
            .where(SensorReadingORM.device_id == device_id)
            .where(SensorReadingORM.ts >= start_ts)
            .where(SensorReadingORM.ts <= end_ts)
        )
        if sensor_types is not None:
            stmt = stmt.where(SensorReadingORM.sensor_type.in_(list(sensor_types)))
        stmt = stmt.order_by(SensorReadingORM.ts.asc())
        try:
            rows = self.session.scalars(stmt).all()
        except SQLAlchemyError as exc:
            log.error("Reading query for %s failed: %s", device_id, exc)
            raise ReadingSourceError(f"reading store unavailable: {exc}") from exc
        return [self._to_domain(r) for r in rows]

    # WRITE side
    def insert(self, reading: SensorReading) -> None:
        row = SensorReadingORM()  # no keyword args
        row.device_id = reading.device_id
        row.sensor_type = reading.sensor_type
        row.value = reading.value
        row.ts = reading.ts
        self.session.add(row)

    def delete_for_device(self, device_id: str) -> None:
        stmt = delete(SensorReadingORM).where(SensorReadingORM.device_id == device_id)
        self.session.execute(stmt)

    # helper
    @staticmethod
    def _to_domain(row: SensorReadingORM) -> SensorReading:
        return SensorReading(
            device_id=row.device_id,
            sensor_type=row.sensor_type,
            value=row.value,
            ts=row.ts,
        )
