from __future__ import annotations

import asyncio
import logging
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from ..cache import CacheStore
from ..cities import MAJOR_CITIES, find_city
from ..entities import (
    City,
    CityDetail,
    GeoPoint,
    NearbySnowResult,
    SnowForecast,
    SnowLevel,
    SnowRegion,
)
from ..factories import (
    create_city_detail,
    create_current_conditions,
    create_forecast_list,
    create_snow_forecast,
    create_snow_region,
    utcnow_iso,
)
from ..geo import rank_nearby
from ..providers.base import ProviderError

REGIONS_CACHE_KEY = "snow_regions"
DETAIL_CACHE_PREFIX = "city_detail_"
FORECAST_CACHE_PREFIX = "forecast_"
FORECAST_15D_CACHE_PREFIX = "forecast15d_"

# China Standard Time, no daylight saving
DISPLAY_TZ = timezone(timedelta(hours=8), "CST")


class SnowServiceError(RuntimeError):
    """Raised when no city could be scanned."""


class SnowService:
    """Scan cities for snowfall through a provider, caching every result."""

    def __init__(
        self,
        *,
        provider: Any,
        cache: Optional[CacheStore] = None,
        cities: Sequence[City] = MAJOR_CITIES,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.provider = provider
        self.cache = cache or CacheStore()
        self.cities = tuple(cities)
        self._log = logger or logging.getLogger(self.__class__.__name__)

    # Public API ---------------------------------------------------------
    def get_regions(self) -> List[SnowRegion]:
        """Current conditions for every scanned city, snowing or not."""
        cached = self.cache.get(REGIONS_CACHE_KEY)
        if cached is not None:
            return _regions_from_payload(cached)
        payload = self._scan_payload()
        self.cache.set(REGIONS_CACHE_KEY, payload)
        return _regions_from_payload(payload)

    def get_snow_regions(self) -> List[SnowRegion]:
        return filter_snowing_cities(self.get_regions())

    async def refresh_regions(self) -> List[SnowRegion]:
        """Rescan regardless of the cached entry.

        A failed scan leaves the previous entry in place; see
        :meth:`stale_regions`.
        """
        payload = await self.cache.force_refresh(REGIONS_CACHE_KEY, self._scan_payload_async)
        return _regions_from_payload(payload)

    def stale_regions(self) -> Optional[List[SnowRegion]]:
        """Last stored scan even if expired, ``None`` when nothing was ever stored."""
        payload = self.cache.peek(REGIONS_CACHE_KEY)
        if payload is None:
            return None
        return _regions_from_payload(payload)

    def get_city_detail(self, city_id: str) -> CityDetail:
        cache_key = f"{DETAIL_CACHE_PREFIX}{city_id}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return create_city_detail(cached)
        now = self.provider.current(city_id)
        forecast = self._build_forecast(city_id, self.provider.forecast_3d(city_id))
        city = find_city(city_id, self.cities)
        detail = create_city_detail(
            {
                "cityId": city_id,
                "cityName": city.city_name if city else "",
                "current": create_current_conditions(_conditions_from_now(now)),
                "forecast": [item.to_dict() for item in forecast],
                "updatedAt": now.get("obsTime") or utcnow_iso(),
            }
        )
        self.cache.set(cache_key, detail.to_dict())
        return detail

    def get_forecast(self, city_id: str) -> List[SnowForecast]:
        return self._cached_forecast(f"{FORECAST_CACHE_PREFIX}{city_id}", city_id, self.provider.forecast_3d)

    def get_forecast_15d(self, city_id: str) -> List[SnowForecast]:
        return self._cached_forecast(f"{FORECAST_15D_CACHE_PREFIX}{city_id}", city_id, self.provider.forecast_15d)

    def upcoming_snow(self, city_id: str, today: Optional[date] = None) -> Optional[Dict[str, Any]]:
        """First snowy day of the 15-day forecast, ``None`` when none or on provider failure."""
        try:
            forecast = self.get_forecast_15d(city_id)
        except ProviderError as exc:
            self._log.warning("Failed to fetch 15-day forecast for %s: %s", city_id, exc)
            return None
        return next_snow_day(forecast, today or datetime.now(DISPLAY_TZ).date())

    def nearby(
        self, origin: GeoPoint, radius_km: float
    ) -> Tuple[List[NearbySnowResult], Optional[NearbySnowResult]]:
        """Snowing cities within ``radius_km`` and the nearest snowing city anywhere."""
        return rank_nearby(origin, self.get_regions(), radius_km)

    # Helpers ------------------------------------------------------------
    def _cached_forecast(
        self, cache_key: str, city_id: str, fetch: Callable[[str], Iterable[Dict[str, Any]]]
    ) -> List[SnowForecast]:
        cached = self.cache.get(cache_key)
        if cached is not None:
            return list(create_forecast_list(cached))
        forecast = self._build_forecast(city_id, fetch(city_id))
        self.cache.set(cache_key, [item.to_dict() for item in forecast])
        return forecast

    def _scan_payload(self) -> List[Dict[str, Any]]:
        payload: List[Dict[str, Any]] = []
        failures = 0
        for city in self.cities:
            try:
                now = self.provider.current(city.city_id)
            except ProviderError as exc:
                failures += 1
                self._log.warning("Failed to fetch weather for %s: %s", city.city_name, exc)
                continue
            region = create_snow_region(
                {
                    **city.to_dict(),
                    **_conditions_from_now(now),
                    "updatedAt": now.get("obsTime") or utcnow_iso(),
                }
            )
            payload.append(region.to_dict())
        if self.cities and failures == len(self.cities):
            raise SnowServiceError("weather lookup failed for every city")
        return payload

    async def _scan_payload_async(self) -> List[Dict[str, Any]]:
        return await asyncio.to_thread(self._scan_payload)

    def _build_forecast(self, city_id: str, days: Iterable[Dict[str, Any]]) -> List[SnowForecast]:
        result: List[SnowForecast] = []
        for day in days:
            day_level = SnowLevel.from_weather_code(day.get("iconDay"))
            night_level = SnowLevel.from_weather_code(day.get("iconNight"))
            result.append(
                create_snow_forecast(
                    {
                        "cityId": city_id,
                        "date": day.get("fxDate"),
                        "snowLevel": SnowLevel.stronger(day_level, night_level),
                        "snowPeriod": snow_period(day_level, night_level),
                        "accumulation": day.get("precip"),
                        "tempHigh": day.get("tempMax"),
                        "tempLow": day.get("tempMin"),
                    }
                )
            )
        return result


def _conditions_from_now(now: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "temperature": now.get("temp"),
        "humidity": now.get("humidity"),
        "windSpeed": now.get("windSpeed"),
        "windDirection": now.get("windDir"),
        "snowLevel": SnowLevel.from_weather_code(now.get("icon")),
        "visibility": now.get("vis"),
    }


def _regions_from_payload(payload: Any) -> List[SnowRegion]:
    if not isinstance(payload, list):
        return []
    return [create_snow_region(item) for item in payload]


# Pure helpers -------------------------------------------------------------
def filter_snowing_cities(regions: Iterable[SnowRegion]) -> List[SnowRegion]:
    return [region for region in regions if region.is_active]


def snow_period(day_level: SnowLevel, night_level: SnowLevel) -> str:
    if day_level.is_active and night_level.is_active:
        return "全天"
    if day_level.is_active:
        return "白天"
    if night_level.is_active:
        return "夜间"
    return "无降雪"


def next_snow_day(forecast: Iterable[SnowForecast], today: date) -> Optional[Dict[str, Any]]:
    for item in forecast:
        if not item.snow_level.is_active:
            continue
        try:
            days_from_now: Optional[int] = (date.fromisoformat(item.date) - today).days
        except ValueError:
            days_from_now = None
        return {"daysFromNow": days_from_now, "snowLevel": item.snow_level.value, "date": item.date}
    return None


def format_updated_time(value: str, tz: tzinfo = DISPLAY_TZ) -> str:
    """Render an ISO timestamp as local ``YYYY-MM-DD HH:MM``; unparsable input is returned as is."""
    try:
        moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    if moment.tzinfo is not None:
        moment = moment.astimezone(tz)
    return moment.strftime("%Y-%m-%d %H:%M")


def format_snow_list_item(region: SnowRegion) -> str:
    return (
        f"{region.city_name} | {_number(region.temperature)}°C | "
        f"{region.snow_level.value} | {format_updated_time(region.updated_at)}"
    )


def format_city_detail(detail: CityDetail) -> str:
    current = detail.current
    lines = [
        f"降雪状态: {current.snow_level.value}",
        f"温度: {_number(current.temperature)}°C",
        f"湿度: {_number(current.humidity)}%",
        f"风力: {_number(current.wind_speed)}km/h {current.wind_direction}",
    ]
    if detail.forecast:
        lines.append("--- 未来降雪预报 ---")
        for item in detail.forecast:
            lines.append(
                f"{item.date} | {item.snow_level.value} | {item.snow_period} | "
                f"累计{_number(item.accumulation)}mm"
            )
    return "\n".join(lines)


def format_forecast(forecast: Iterable[SnowForecast]) -> str:
    lines = [
        f"日期: {item.date} | 强度: {item.snow_level.value} | 时段: {item.snow_period} | "
        f"累计: {_number(item.accumulation)}mm"
        for item in forecast
    ]
    if not lines:
        return "暂无预报数据"
    return "\n".join(lines)


def _number(value: float) -> str:
    # integral floats render without the trailing ".0"
    if float(value).is_integer():
        return str(int(value))
    return str(value)


__all__ = [
    "SnowService",
    "SnowServiceError",
    "filter_snowing_cities",
    "format_city_detail",
    "format_forecast",
    "format_snow_list_item",
    "format_updated_time",
    "next_snow_day",
    "snow_period",
]
