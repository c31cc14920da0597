from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from functools import total_ordering
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float

    def to_dict(self) -> Dict[str, float]:
        return {"latitude": self.latitude, "longitude": self.longitude}


@total_ordering
class SnowLevel(Enum):
    """Snowfall intensity as reported by the weather provider.

    Members are ordered by severity; ``NONE`` is the inactive sentinel.
    """

    NONE = "无"
    LIGHT = "小雪"
    MODERATE = "中雪"
    HEAVY = "大雪"
    BLIZZARD = "暴雪"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @property
    def is_active(self) -> bool:
        return self is not SnowLevel.NONE

    @property
    def flakes(self) -> str:
        """Label prefixed with one snowflake per severity step."""
        if not self.is_active:
            return self.value
        return f"{'❄' * self.rank} {self.value}"

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SnowLevel):
            return NotImplemented
        return self.rank < other.rank

    @classmethod
    def parse(cls, value: Any) -> "SnowLevel":
        """Return the matching member, or ``NONE`` for anything unknown."""
        if isinstance(value, SnowLevel):
            return value
        if isinstance(value, str):
            for member in cls:
                if value == member.value:
                    return member
        return cls.NONE

    @classmethod
    def from_weather_code(cls, code: Any) -> "SnowLevel":
        try:
            numeric = int(float(code))
        except (TypeError, ValueError):
            return cls.NONE
        for (low, high), level in _CODE_RANGES:
            if low <= numeric <= high:
                return level
        return cls.NONE

    @staticmethod
    def stronger(first: "SnowLevel", second: "SnowLevel") -> "SnowLevel":
        return first if first.rank >= second.rank else second


_RANKS = {
    SnowLevel.NONE: 0,
    SnowLevel.LIGHT: 1,
    SnowLevel.MODERATE: 2,
    SnowLevel.HEAVY: 3,
    SnowLevel.BLIZZARD: 4,
}

# QWeather icon codes for snow
_CODE_RANGES: Tuple[Tuple[Tuple[int, int], SnowLevel], ...] = (
    ((400, 402), SnowLevel.LIGHT),
    ((403, 404), SnowLevel.MODERATE),
    ((405, 406), SnowLevel.HEAVY),
    ((407, 410), SnowLevel.BLIZZARD),
)


@dataclass(frozen=True)
class City:
    city_id: str
    city_name: str
    province: str = ""
    latitude: float = 0.0
    longitude: float = 0.0

    @property
    def location(self) -> GeoPoint:
        return GeoPoint(self.latitude, self.longitude)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cityId": self.city_id,
            "cityName": self.city_name,
            "province": self.province,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }


@dataclass(frozen=True)
class SnowRegion:
    """Normalized current conditions for a single city.

    Units follow the provider: temperature in Celsius, wind speed in km/h,
    visibility in kilometres, humidity in percent.
    """

    city_id: str
    city_name: str
    province: str
    latitude: float
    longitude: float
    temperature: float
    humidity: float
    wind_speed: float
    wind_direction: str
    snow_level: SnowLevel
    visibility: float
    updated_at: str

    @property
    def location(self) -> GeoPoint:
        return GeoPoint(self.latitude, self.longitude)

    @property
    def is_active(self) -> bool:
        return self.snow_level.is_active

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cityId": self.city_id,
            "cityName": self.city_name,
            "province": self.province,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "temperature": self.temperature,
            "humidity": self.humidity,
            "windSpeed": self.wind_speed,
            "windDirection": self.wind_direction,
            "snowLevel": self.snow_level.value,
            "visibility": self.visibility,
            "updatedAt": self.updated_at,
        }


@dataclass(frozen=True)
class SnowForecast:
    city_id: str
    date: str
    snow_level: SnowLevel
    snow_period: str
    accumulation: float
    temp_high: float
    temp_low: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cityId": self.city_id,
            "date": self.date,
            "snowLevel": self.snow_level.value,
            "snowPeriod": self.snow_period,
            "accumulation": self.accumulation,
            "tempHigh": self.temp_high,
            "tempLow": self.temp_low,
        }


@dataclass(frozen=True)
class CurrentConditions:
    temperature: float
    humidity: float
    wind_speed: float
    wind_direction: str
    snow_level: SnowLevel
    visibility: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "temperature": self.temperature,
            "humidity": self.humidity,
            "windSpeed": self.wind_speed,
            "windDirection": self.wind_direction,
            "snowLevel": self.snow_level.value,
            "visibility": self.visibility,
        }


@dataclass(frozen=True)
class CityDetail:
    city_id: str
    city_name: str
    current: CurrentConditions
    forecast: Tuple[SnowForecast, ...] = field(default_factory=tuple)
    updated_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cityId": self.city_id,
            "cityName": self.city_name,
            "current": self.current.to_dict(),
            "forecast": [item.to_dict() for item in self.forecast],
            "updatedAt": self.updated_at,
        }


@dataclass(frozen=True)
class FavoriteCity:
    id: str
    open_id: str
    city_id: str
    city_name: str
    latitude: float
    longitude: float
    created_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "_id": self.id,
            "openId": self.open_id,
            "cityId": self.city_id,
            "cityName": self.city_name,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class NearbySnowResult:
    """A snowing region ranked by its distance from the query origin."""

    city_id: str
    city_name: str
    distance_km: float
    snow_level: SnowLevel
    temperature: Optional[float] = None

    def to_dict(self, precision: Optional[int] = None) -> Dict[str, Any]:
        distance = self.distance_km if precision is None else round(self.distance_km, precision)
        payload: Dict[str, Any] = {
            "cityId": self.city_id,
            "cityName": self.city_name,
            "distance": distance,
            "snowLevel": self.snow_level.value,
        }
        if self.temperature is not None:
            payload["temperature"] = self.temperature
        return payload


__all__ = [
    "City",
    "CityDetail",
    "CurrentConditions",
    "FavoriteCity",
    "GeoPoint",
    "NearbySnowResult",
    "SnowForecast",
    "SnowLevel",
    "SnowRegion",
]
