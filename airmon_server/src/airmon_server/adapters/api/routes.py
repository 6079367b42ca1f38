# airmon_server/adapters/api/routes.py

from dataclasses import asdict
from functools import lru_cache

from airmon_core.application.delete_data import delete_device_readings
from airmon_core.application.historical_series import get_historical_series
from airmon_core.application.ingest_reading import ReadingNotifier, ingest_reading
from airmon_core.application.live_session import LiveSessionRegistry
from airmon_core.application.reports import build_report
from airmon_core.config.environments import Settings, get_settings
from airmon_core.domain.aqi import (
    aqi_category,
    aqi_to_color,
    overall_aqi,
    quick_aqi_from_pm25,
    sub_index_aqi,
)
from airmon_core.domain.errors import ReadingSourceError
from airmon_core.domain.models import Period, SensorReading
from airmon_core.domain.occupancy import (
    OccupancyReading,
    detect_occupancy,
    enhanced_occupancy_percentage,
)
from fastapi import APIRouter, Depends, HTTPException, Query

from airmon_server.adapters.api.schemas import (
    AqiOut,
    DeleteRequest,
    LiveSeriesOut,
    OccupancyOut,
    OccupancyRequest,
    ProlongedExceedanceOut,
    ReadingIn,
    ReportOut,
    SeriesOut,
    SubIndexRequest,
    SubIndicesIn,
)
from airmon_server.adapters.db.uow import SqlAlchemyUoW, UoWReadingSource

router = APIRouter()


def get_uow():
    yield SqlAlchemyUoW()


@lru_cache(maxsize=1)
def get_config() -> Settings:
    return get_settings()


@lru_cache(maxsize=1)
def get_notifier() -> ReadingNotifier:
    return ReadingNotifier()


@lru_cache(maxsize=1)
def get_live_registry() -> LiveSessionRegistry:
    config = get_config()
    return LiveSessionRegistry(
        UoWReadingSource,
        get_notifier(),
        window_s=config.LIVE_WINDOW_SEC,
        bucket_s=config.LIVE_BUCKET_SEC,
        carry_forward_s=config.LIVE_CARRY_FORWARD_SEC,
        tz=config.DISPLAY_TIMEZONE,
    )


def _aqi_out(aqi: float) -> AqiOut:
    return AqiOut(aqi=aqi, category=aqi_category(aqi), color=aqi_to_color(aqi))


def _occupancy_out(result, percentage=None) -> OccupancyOut:
    return OccupancyOut(
        estimated_occupancy=result.estimated_occupancy,
        confidence=result.confidence,
        is_occupied=result.is_occupied,
        co2_trend=result.co2_trend.value,
        occupancy_percentage=percentage,
    )


def _prolonged_out(exceedance) -> ProlongedExceedanceOut:
    return ProlongedExceedanceOut(**asdict(exceedance), duration_h=exceedance.duration_h)


@router.get("/ping")
def ping():
    return {"status": "ok"}


@router.post("/ingest")
def ingest_reading_endpoint(
    reading_in: ReadingIn,
    uow: SqlAlchemyUoW = Depends(get_uow),
    notifier: ReadingNotifier = Depends(get_notifier),
):
    reading = SensorReading(**reading_in.model_dump())
    ingest_reading(reading, uow, notifier)
    return {"status": "ok"}


@router.get("/devices/{device_id}/series", response_model=SeriesOut)
def device_series(
    device_id: str,
    period: Period = Query(Period.ONE_HOUR),
    aqi: bool = Query(True),
    uow: SqlAlchemyUoW = Depends(get_uow),
    config: Settings = Depends(get_config),
):
    with uow:
        result = get_historical_series(
            device_id, period, uow.reading_repo(), include_aqi=aqi, tz=config.DISPLAY_TIMEZONE
        )
    if not result.ok:
        raise HTTPException(status_code=503, detail=result.error)
    return SeriesOut.from_result(result)


@router.get("/devices/{device_id}/live", response_model=LiveSeriesOut)
def device_live(
    device_id: str,
    registry: LiveSessionRegistry = Depends(get_live_registry),
):
    try:
        session = registry.session_for(device_id)
    except ReadingSourceError as exc:
        raise HTTPException(status_code=503, detail=str(exc))
    return LiveSeriesOut(
        device_id=device_id,
        window_s=session.window_s,
        bucket_s=session.bucket_s,
        records=[record.as_row() for record in session.materialize()],
    )


@router.delete("/devices/{device_id}/live")
def close_live(
    device_id: str,
    registry: LiveSessionRegistry = Depends(get_live_registry),
):
    registry.close(device_id)
    return {"status": "ok"}


@router.get("/devices/{device_id}/report", response_model=ReportOut)
def device_report(
    device_id: str,
    period: Period = Query(Period.ONE_DAY),
    uow: SqlAlchemyUoW = Depends(get_uow),
    config: Settings = Depends(get_config),
):
    with uow:
        report = build_report(
            device_id,
            period,
            uow.reading_repo(),
            tz=config.DISPLAY_TIMEZONE,
            prolonged_hours=config.PROLONGED_ALERT_HOURS,
        )
    if report.error is not None:
        raise HTTPException(status_code=503, detail=report.error)
    return ReportOut(
        device_id=report.device_id,
        period=report.period.value,
        records=[record.as_row() for record in report.records],
        average_aqi=asdict(report.average_aqi),
        category=report.category,
        dominant_pollutants=[asdict(s) for s in report.dominant_pollutants],
        co2_peak_hours=[asdict(h) for h in report.co2_peak_hours],
        occupancy=_occupancy_out(report.occupancy) if report.occupancy else None,
        operating_split=asdict(report.operating_split),
        metric_quality={name: q.value for name, q in report.metric_quality.items()},
        prolonged=[_prolonged_out(e) for e in report.prolonged],
    )


@router.post("/aqi/sub-index", response_model=AqiOut)
def aqi_sub_index(req: SubIndexRequest):
    return _aqi_out(sub_index_aqi(req.pollutant, req.concentration))


@router.post("/aqi/overall", response_model=AqiOut)
def aqi_overall(req: SubIndicesIn):
    return _aqi_out(overall_aqi(req.model_dump()))


@router.get("/aqi/quick", response_model=AqiOut)
def aqi_quick(pm25: float = Query(..., ge=0)):
    return _aqi_out(quick_aqi_from_pm25(pm25))


@router.post("/occupancy", response_model=OccupancyOut)
def occupancy(req: OccupancyRequest, config: Settings = Depends(get_config)):
    readings = [OccupancyReading(**r.model_dump()) for r in req.readings]
    result = detect_occupancy(readings, config.DISPLAY_TIMEZONE)
    percentage = enhanced_occupancy_percentage(
        readings, req.room_capacity or config.ROOM_CAPACITY, config.DISPLAY_TIMEZONE
    )
    return _occupancy_out(result, percentage)


@router.post("/admin/delete")
def delete_data(req: DeleteRequest, uow: SqlAlchemyUoW = Depends(get_uow)):
    delete_device_readings(req.device_id, uow)
    return {"status": "ok"}
