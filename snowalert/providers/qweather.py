from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .base import ProviderError, QuotaExceeded, WeatherProvider

# QWeather answers HTTP 200 and reports failures through its own "code" field
_QUOTA_CODES = {"402", "429"}


class QWeatherProvider(WeatherProvider):
    """Client for the QWeather v7 REST API, looked up by city id."""

    base_url = "https://devapi.qweather.com/v7"

    def __init__(self, api_key: str, base_url: Optional[str] = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.api_key = api_key
        self.base_url = (base_url or self.base_url).rstrip("/")
        self._log = logging.getLogger(self.__class__.__name__)

    # Public API ---------------------------------------------------------
    def current(self, city_id: str) -> Dict[str, Any]:
        """Observed conditions (the ``now`` block)."""
        data = self._fetch("weather/now", city_id)
        now = data.get("now")
        if not isinstance(now, dict):
            raise ProviderError("missing current weather")
        return now

    def forecast_3d(self, city_id: str) -> List[Dict[str, Any]]:
        """Day-by-day forecast for the next three days (the ``daily`` block)."""
        return self._daily("weather/3d", city_id)

    def forecast_15d(self, city_id: str) -> List[Dict[str, Any]]:
        return self._daily("weather/15d", city_id)

    # helpers ------------------------------------------------------------
    def _daily(self, path: str, city_id: str) -> List[Dict[str, Any]]:
        daily = self._fetch(path, city_id).get("daily") or []
        return [day for day in daily if isinstance(day, dict)]

    def _fetch(self, path: str, city_id: str) -> Dict[str, Any]:
        params = {"location": city_id, "key": self.api_key}
        response = self._request("GET", f"{self.base_url}/{path}", params=params)
        data = self._json(response)
        code = str(data.get("code", ""))
        if code in _QUOTA_CODES:
            self._log.warning("QWeather quota exceeded for %s (code=%s)", city_id, code)
            raise QuotaExceeded(f"QWeather code={code}")
        if code != "200":
            self._log.error("QWeather returned code=%s for %s", code, city_id)
            raise ProviderError(f"QWeather API error: code={code}")
        return data


__all__ = ["QWeatherProvider"]
