"""Telemetry router.

Rainfall, water-level and device endpoints backing the dashboard charts.
All reads go to the external time-series store.

Consumers:
    Dashboard SPA:
        GET /stations                                  — configured stations
        GET /stations/{station}/rainfall               — headline card numbers
        GET /stations/{station}/rainfall/{period}      — half-hourly | monthly | yearly series
        GET /stations/{station}/water-level/{period}   — half-hourly | monthly | yearly series
        GET /stations/{station}/history                — raw readings, last N days
        GET /devices/metadata                          — device map markers
"""

from collections.abc import Awaitable, Callable
from enum import StrEnum
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection

from riverwatch.config import StationConfig, settings
from riverwatch.db.engine import get_db
from riverwatch.logging_config import get_logger
from riverwatch.services import telemetry_service as telemetry

router = APIRouter(tags=["telemetry"])
logger = get_logger(__name__)


class Period(StrEnum):
    HALF_HOURLY = "half-hourly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


SeriesQuery = Callable[[AsyncConnection, StationConfig], Awaitable[list[dict[str, Any]]]]

_RAINFALL_SERIES: dict[Period, SeriesQuery] = {
    Period.HALF_HOURLY: telemetry.get_half_hourly_rainfall,
    Period.MONTHLY: telemetry.get_monthly_rainfall,
    Period.YEARLY: telemetry.get_yearly_rainfall,
}

_WATER_LEVEL_SERIES: dict[Period, SeriesQuery] = {
    Period.HALF_HOURLY: telemetry.get_half_hourly_water_level,
    Period.MONTHLY: telemetry.get_monthly_water_level,
    Period.YEARLY: telemetry.get_yearly_water_level,
}


def resolve_station(station: str) -> StationConfig:
    found = telemetry.get_station(station)
    if found is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown station: {station}",
        )
    return found


def _database_error(what: str, exc: SQLAlchemyError) -> HTTPException:
    logger.error("Telemetry query failed", query=what, error=str(exc))
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Internal Server Error",
    )


# --- Endpoints ---


@router.get("/stations")
async def list_stations() -> list[dict[str, Any]]:
    return [
        {"name": s.name, "source_id": s.source_id, "bottom_level_mm": s.bottom_level_mm}
        for s in telemetry.list_stations()
    ]


@router.get("/stations/{station}/rainfall")
async def rainfall_summary(
    station: StationConfig = Depends(resolve_station),
    bottomlevel: int | None = Query(None, ge=0, description="Override sensor height in mm"),
    db: AsyncConnection = Depends(get_db),
) -> dict[str, float]:
    try:
        summary = await telemetry.get_rainfall_summary(db, station, bottomlevel)
    except SQLAlchemyError as e:
        raise _database_error("rainfall_summary", e) from e
    return summary.to_response()


@router.get("/stations/{station}/rainfall/{period}")
async def rainfall_series(
    period: Period,
    station: StationConfig = Depends(resolve_station),
    db: AsyncConnection = Depends(get_db),
) -> list[dict[str, Any]]:
    try:
        return await _RAINFALL_SERIES[period](db, station)
    except SQLAlchemyError as e:
        raise _database_error(f"rainfall_{period}", e) from e


@router.get("/stations/{station}/water-level/{period}")
async def water_level_series(
    period: Period,
    station: StationConfig = Depends(resolve_station),
    db: AsyncConnection = Depends(get_db),
) -> list[dict[str, Any]]:
    try:
        return await _WATER_LEVEL_SERIES[period](db, station)
    except SQLAlchemyError as e:
        raise _database_error(f"water_level_{period}", e) from e


@router.get("/stations/{station}/history")
async def history(
    station: StationConfig = Depends(resolve_station),
    days: int = Query(7, ge=1),
    db: AsyncConnection = Depends(get_db),
) -> list[dict[str, Any]]:
    if days > settings.telemetry.max_history_days:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"days must be at most {settings.telemetry.max_history_days}",
        )
    try:
        return await telemetry.get_history(db, station, days)
    except SQLAlchemyError as e:
        raise _database_error("history", e) from e


@router.get("/devices/metadata")
async def devices_metadata(db: AsyncConnection = Depends(get_db)) -> list[dict[str, Any]]:
    try:
        return await telemetry.get_devices_metadata(db)
    except SQLAlchemyError as e:
        raise _database_error("devices_metadata", e) from e
