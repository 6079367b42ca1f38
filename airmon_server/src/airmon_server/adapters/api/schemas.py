# airmon_server/adapters/api/schemas.py

from typing import Any, Dict, List, Optional

from airmon_core.domain.breakpoints import Pollutant
from pydantic import BaseModel, Field


class ReadingIn(BaseModel):
    device_id: str
    sensor_type: str
    value: float
    ts: float = Field(..., description="Measurement time, epoch seconds")


class SeriesOut(BaseModel):
    device_id: str
    period: str
    records: List[Dict[str, Any]]

    @classmethod
    def from_result(cls, result) -> "SeriesOut":
        return cls(device_id=result.device_id, period=result.period.value, records=result.rows())


class LiveSeriesOut(BaseModel):
    device_id: str
    window_s: float
    bucket_s: float
    records: List[Dict[str, Any]]


class SubIndexRequest(BaseModel):
    pollutant: Pollutant
    concentration: float = Field(..., ge=0)


class SubIndicesIn(BaseModel):
    pm25: Optional[int] = None
    pm10: Optional[int] = None
    voc: Optional[int] = None
    hcho: Optional[int] = None
    nox: Optional[int] = None


class AqiOut(BaseModel):
    aqi: float
    category: str
    color: str


class OccupancyReadingIn(BaseModel):
    ts: float
    co2: float
    temperature: Optional[float] = None
    humidity: Optional[float] = None


class OccupancyRequest(BaseModel):
    readings: List[OccupancyReadingIn]
    room_capacity: Optional[int] = Field(None, gt=0)


class OccupancyOut(BaseModel):
    estimated_occupancy: int
    confidence: float
    is_occupied: bool
    co2_trend: str
    occupancy_percentage: Optional[float] = None


class PollutantShareOut(BaseModel):
    pollutant: str
    count: int
    percentage: int


class HourlyLevelOut(BaseModel):
    hour: int
    value: float


class ProlongedExceedanceOut(BaseModel):
    sensor_type: str
    limit: float
    start_ts: float
    end_ts: float
    latest_value: float
    duration_h: float


class ReportOut(BaseModel):
    device_id: str
    period: str
    records: List[Dict[str, Any]]
    average_aqi: Dict[str, float]
    category: Optional[str]
    dominant_pollutants: List[PollutantShareOut]
    co2_peak_hours: List[HourlyLevelOut]
    occupancy: Optional[OccupancyOut]
    operating_split: Dict[str, float]
    metric_quality: Dict[str, str]
    prolonged: List[ProlongedExceedanceOut]


class DeleteRequest(BaseModel):
    device_id: str = Field(..., description="Device whose readings are removed")
