__all__ = ["SensorReadingORM"]

from sqlalchemy import Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from airmon_server.adapters.db.session import Base


class SensorReadingORM(Base):
    __tablename__ = "sensor_readings"
    __table_args__ = (Index("ix_sensor_readings_device_ts", "device_id", "ts"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    device_id: Mapped[str] = mapped_column(String, index=True, nullable=False)
    sensor_type: Mapped[str] = mapped_column(String, index=True, nullable=False)
    value: Mapped[float] = mapped_column(Float, nullable=False)
    ts: Mapped[float] = mapped_column(Float, index=True, nullable=False)
