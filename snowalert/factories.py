"""Factories that turn loosely typed payloads into fully populated records.

Every field falls back to a default when it is missing or cannot be coerced,
and bounded numeric fields are clamped, so the factories never raise and
applying one to its own output is a no-op.
"""
from __future__ import annotations

import math
from dataclasses import is_dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Tuple

from .entities import (
    CityDetail,
    CurrentConditions,
    FavoriteCity,
    SnowForecast,
    SnowLevel,
    SnowRegion,
)


def clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


def to_number(value: Any, default: float) -> float:
    """Best-effort numeric coercion; ``default`` when the result is not finite."""
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return default
    if math.isnan(number) or math.isinf(number):
        return default
    return number


def to_text(value: Any, default: str = "") -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return default
    if isinstance(value, SnowLevel):
        return value.value
    return str(value)


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _fields(data: Any) -> Mapping[str, Any]:
    if is_dataclass(data) and not isinstance(data, type):
        return data.to_dict()
    if isinstance(data, Mapping):
        return data
    return {}


def _pick(values: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if name in values:
            return values[name]
    return None


def create_snow_region(data: Any = None) -> SnowRegion:
    values = _fields(data)
    return SnowRegion(
        city_id=to_text(_pick(values, "cityId", "city_id")),
        city_name=to_text(_pick(values, "cityName", "city_name")),
        province=to_text(_pick(values, "province")),
        latitude=clamp(to_number(_pick(values, "latitude"), 0.0), -90.0, 90.0),
        longitude=clamp(to_number(_pick(values, "longitude"), 0.0), -180.0, 180.0),
        temperature=to_number(_pick(values, "temperature"), 0.0),
        humidity=clamp(to_number(_pick(values, "humidity"), 0.0), 0.0, 100.0),
        wind_speed=max(to_number(_pick(values, "windSpeed", "wind_speed"), 0.0), 0.0),
        wind_direction=to_text(_pick(values, "windDirection", "wind_direction")),
        snow_level=SnowLevel.parse(_pick(values, "snowLevel", "snow_level")),
        visibility=max(to_number(_pick(values, "visibility"), 0.0), 0.0),
        updated_at=to_text(_pick(values, "updatedAt", "updated_at"), utcnow_iso()),
    )


def create_snow_forecast(data: Any = None) -> SnowForecast:
    values = _fields(data)
    return SnowForecast(
        city_id=to_text(_pick(values, "cityId", "city_id")),
        date=to_text(_pick(values, "date")),
        snow_level=SnowLevel.parse(_pick(values, "snowLevel", "snow_level")),
        snow_period=to_text(_pick(values, "snowPeriod", "snow_period")),
        accumulation=max(to_number(_pick(values, "accumulation"), 0.0), 0.0),
        temp_high=to_number(_pick(values, "tempHigh", "temp_high"), 0.0),
        temp_low=to_number(_pick(values, "tempLow", "temp_low"), 0.0),
    )


def create_favorite_city(data: Any = None) -> FavoriteCity:
    values = _fields(data)
    return FavoriteCity(
        id=to_text(_pick(values, "_id", "id")),
        open_id=to_text(_pick(values, "openId", "open_id")),
        city_id=to_text(_pick(values, "cityId", "city_id")),
        city_name=to_text(_pick(values, "cityName", "city_name")),
        latitude=clamp(to_number(_pick(values, "latitude"), 0.0), -90.0, 90.0),
        longitude=clamp(to_number(_pick(values, "longitude"), 0.0), -180.0, 180.0),
        created_at=to_text(_pick(values, "createdAt", "created_at"), utcnow_iso()),
    )


def create_current_conditions(data: Any = None) -> CurrentConditions:
    values = _fields(data)
    return CurrentConditions(
        temperature=to_number(_pick(values, "temperature"), 0.0),
        humidity=clamp(to_number(_pick(values, "humidity"), 0.0), 0.0, 100.0),
        wind_speed=max(to_number(_pick(values, "windSpeed", "wind_speed"), 0.0), 0.0),
        wind_direction=to_text(_pick(values, "windDirection", "wind_direction")),
        snow_level=SnowLevel.parse(_pick(values, "snowLevel", "snow_level")),
        visibility=max(to_number(_pick(values, "visibility"), 0.0), 0.0),
    )


def create_city_detail(data: Any = None) -> CityDetail:
    values = _fields(data)
    forecast = _pick(values, "forecast")
    return CityDetail(
        city_id=to_text(_pick(values, "cityId", "city_id")),
        city_name=to_text(_pick(values, "cityName", "city_name")),
        current=create_current_conditions(_pick(values, "current")),
        forecast=create_forecast_list(forecast),
        updated_at=to_text(_pick(values, "updatedAt", "updated_at"), utcnow_iso()),
    )


def create_forecast_list(data: Any) -> Tuple[SnowForecast, ...]:
    if isinstance(data, (str, bytes, Mapping)) or not isinstance(data, Iterable):
        return ()
    return tuple(create_snow_forecast(item) for item in data)


__all__ = [
    "clamp",
    "create_city_detail",
    "create_current_conditions",
    "create_favorite_city",
    "create_forecast_list",
    "create_snow_forecast",
    "create_snow_region",
    "to_number",
    "to_text",
    "utcnow_iso",
]
