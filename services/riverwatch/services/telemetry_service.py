"""Read queries against the external time-series telemetry store.

Every station has its own set of continuous-aggregate tables in the
telemetry schema (e.g. ``tag.rainfall_in_monthly_kathua``). Table names are
assembled only from the configured station registry and are checked to be
plain identifiers; all request-derived values are bound parameters.
"""

import re
from dataclasses import dataclass
from typing import Any

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection

from riverwatch.config import StationConfig, settings
from riverwatch.logging_config import get_logger

logger = get_logger(__name__)

_IDENTIFIER = re.compile(r"^[a-z_][a-z0-9_]*$")


def get_station(name: str) -> StationConfig | None:
    """Look up a station by name (case-insensitive)."""
    wanted = name.lower()
    for station in settings.telemetry.stations:
        if station.name.lower() == wanted:
            return station
    return None


def list_stations() -> list[StationConfig]:
    return list(settings.telemetry.stations)


def _table(base: str, station: StationConfig | None = None) -> str:
    schema = settings.telemetry.schema_name
    name = f"{base}_{station.table_suffix}" if station is not None else base
    for part in (schema, name):
        if not _IDENTIFIER.match(part):
            raise ValueError(f"Refusing unsafe table identifier: {part!r}")
    return f"{schema}.{name}"


async def _rows(db: AsyncConnection, sql: str, **params: Any) -> list[dict[str, Any]]:
    result = await db.execute(text(sql), params)
    return [dict(row) for row in result.mappings().all()]


async def _scalar(db: AsyncConnection, sql: str, **params: Any) -> Any:
    result = await db.execute(text(sql), params)
    return result.scalar_one_or_none()


# --- Rainfall ---


@dataclass
class RainfallSummary:
    """Headline numbers for a station's dashboard card."""

    daily_rainfall: float
    monthly_rainfall: float
    yearly_rainfall: float
    flowrate: float
    water_level: float

    def to_response(self) -> dict[str, float]:
        return {
            "dailyRainfall": self.daily_rainfall,
            "monthlyRainfall": self.monthly_rainfall,
            "yearlyRainfall": self.yearly_rainfall,
            "flowrate": self.flowrate,
            "waterLevel": self.water_level,
        }


async def get_rainfall_summary(
    db: AsyncConnection,
    station: StationConfig,
    bottom_level_mm: int | None = None,
) -> RainfallSummary:
    """Today's, this month's and this year's rainfall plus live readings.

    Daily rainfall is the sum of the two most recent half-hourly buckets of
    today. Missing values are reported as 0.
    """
    bottom = bottom_level_mm if bottom_level_mm is not None else station.bottom_level_mm
    source_id = station.source_id

    daily = await _scalar(
        db,
        f"""
        SELECT SUM(totalrainfall) FROM (
            SELECT totalrainfall
            FROM {_table("rainfall_in_half_hourly", station)}
            WHERE bucket >= NOW()::date AND source_id = :source_id
            ORDER BY bucket DESC
            LIMIT 2
        ) sub
        """,
        source_id=source_id,
    )
    monthly = await _scalar(
        db,
        f"""
        SELECT totalrainfall
        FROM {_table("rainfall_in_monthly", station)}
        WHERE bucket >= NOW()::date AND source_id = :source_id
        ORDER BY bucket DESC
        LIMIT 1
        """,
        source_id=source_id,
    )
    yearly = await _scalar(
        db,
        f"""
        SELECT totalrainfall
        FROM {_table("rainfall_in_yearly", station)}
        WHERE source_id = :source_id
        ORDER BY bucket DESC
        LIMIT 1
        """,
        source_id=source_id,
    )
    flowrate = await _scalar(
        db,
        f"""
        SELECT flowrate
        FROM {_table("wms_live_data")}
        WHERE source_id = :source_id
        ORDER BY time DESC
        LIMIT 1
        """,
        source_id=source_id,
    )
    water_level = await _scalar(
        db,
        f"""
        SELECT (:bottom_level - emptyheightinmm)
        FROM {_table("wms_live_data")}
        WHERE source_id = :source_id
        ORDER BY time DESC
        LIMIT 1
        """,
        source_id=source_id,
        bottom_level=bottom,
    )

    return RainfallSummary(
        daily_rainfall=float(daily or 0),
        monthly_rainfall=float(monthly or 0),
        yearly_rainfall=float(yearly or 0),
        flowrate=float(flowrate or 0),
        water_level=float(water_level or 0),
    )


async def get_half_hourly_rainfall(
    db: AsyncConnection, station: StationConfig
) -> list[dict[str, Any]]:
    return await _rows(
        db,
        f"""
        SELECT bucket, totalrainfall
        FROM {_table("rainfall_in_half_hourly", station)}
        WHERE bucket::date = NOW()::date AND source_id = :source_id
        ORDER BY bucket ASC
        """,
        source_id=station.source_id,
    )


async def get_monthly_rainfall(
    db: AsyncConnection, station: StationConfig
) -> list[dict[str, Any]]:
    return await _rows(
        db,
        f"""
        SELECT bucket, totalrainfall
        FROM {_table("rainfall_in_monthly", station)}
        WHERE date_trunc('month', bucket) = date_trunc('month', NOW())
          AND source_id = :source_id
        ORDER BY bucket ASC
        """,
        source_id=station.source_id,
    )


async def get_yearly_rainfall(
    db: AsyncConnection, station: StationConfig
) -> list[dict[str, Any]]:
    """This year's rainfall, totalled per month."""
    return await _rows(
        db,
        f"""
        SELECT date_trunc('month', bucket) AS bucket, SUM(totalrainfall) AS totalrainfall
        FROM {_table("rainfall_in_yearly", station)}
        WHERE date_trunc('year', bucket) = date_trunc('year', NOW())
          AND source_id = :source_id
        GROUP BY 1
        ORDER BY 1 ASC
        """,
        source_id=station.source_id,
    )


# --- Water level ---

# Water level per bucket is the rise in empty-height against the previous
# bucket; negative and first-bucket values are dropped.


async def get_half_hourly_water_level(
    db: AsyncConnection, station: StationConfig
) -> list[dict[str, Any]]:
    return await _rows(
        db,
        f"""
        SELECT bucket, source_id, water_level FROM (
            SELECT
                bucket,
                source_id,
                last_emptyheight - LAG(last_emptyheight)
                    OVER (PARTITION BY source_id ORDER BY bucket) AS water_level
            FROM {_table("water_level_half_hourly_aggregate", station)}
            WHERE bucket::date = NOW()::date AND source_id = :source_id
        ) sub
        WHERE water_level IS NOT NULL AND water_level >= 0
        ORDER BY bucket ASC
        """,
        source_id=station.source_id,
    )


async def get_monthly_water_level(
    db: AsyncConnection, station: StationConfig
) -> list[dict[str, Any]]:
    return await _rows(
        db,
        f"""
        SELECT date, source_id, water_level FROM (
            SELECT
                bucket AS date,
                source_id,
                last_emptyheight - LAG(last_emptyheight)
                    OVER (PARTITION BY source_id ORDER BY bucket) AS water_level
            FROM {_table("water_level_daily_aggregate", station)}
            WHERE source_id = :source_id
        ) sub
        WHERE water_level IS NOT NULL
          AND water_level >= 0
          AND date_trunc('month', date) = date_trunc('month', CURRENT_DATE)
        ORDER BY date ASC
        """,
        source_id=station.source_id,
    )


async def get_yearly_water_level(
    db: AsyncConnection, station: StationConfig
) -> list[dict[str, Any]]:
    return await _rows(
        db,
        f"""
        SELECT date, source_id, water_level FROM (
            SELECT
                date_trunc('month', bucket) AS date,
                source_id,
                last_emptyheight - LAG(last_emptyheight)
                    OVER (PARTITION BY source_id ORDER BY bucket) AS water_level
            FROM {_table("water_level_monthly_aggregate", station)}
            WHERE source_id = :source_id
        ) sub
        WHERE water_level IS NOT NULL AND water_level >= 0
        ORDER BY date ASC
        """,
        source_id=station.source_id,
    )


# --- Raw readings ---


async def get_history(
    db: AsyncConnection,
    station: StationConfig,
    days: int = 7,
) -> list[dict[str, Any]]:
    """Live sensor readings for the last ``days`` days, oldest first."""
    return await _rows(
        db,
        f"""
        SELECT
            time,
            COALESCE(:bottom_level - emptyheightinmm, 0) AS water_level,
            COALESCE(flowrate, 0) AS flowrate,
            COALESCE(liquidlevelinmm, 0) AS liquidlevelinmm,
            COALESCE(rainfallonthedaycnt, 0) AS rainfallonthedaycnt
        FROM {_table("wms_live_data")}
        WHERE source_id = :source_id AND time >= NOW() - make_interval(days => :days)
        ORDER BY time ASC
        """,
        source_id=station.source_id,
        bottom_level=station.bottom_level_mm,
        days=days,
    )


async def get_devices_metadata(db: AsyncConnection) -> list[dict[str, Any]]:
    """Most recent metadata row for every device."""
    return await _rows(
        db,
        f"""
        SELECT DISTINCT ON (source_id)
            time, host, altitude, datetime, latitude, location_name,
            longitude, vndid, source_id, sensor1, sensor2
        FROM {_table("wms_metadata")}
        ORDER BY source_id, time DESC
        """,
    )
