"""List helpers for a user's favorite cities.

These operate on in-memory lists and never mutate their arguments; the
database-backed store lives in ``backend.core.favorites``.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..entities import City, FavoriteCity, SnowLevel, SnowRegion
from ..factories import create_favorite_city


def add_favorite_to_list(favorites: Iterable[FavoriteCity], city: City, open_id: str) -> List[FavoriteCity]:
    result = list(favorites)
    if any(favorite.city_id == city.city_id for favorite in result):
        return result
    result.append(
        create_favorite_city(
            {
                "_id": f"{open_id}_{city.city_id}",
                "openId": open_id,
                "cityId": city.city_id,
                "cityName": city.city_name,
                "latitude": city.latitude,
                "longitude": city.longitude,
            }
        )
    )
    return result


def remove_favorite_from_list(favorites: Iterable[FavoriteCity], city_id: str) -> List[FavoriteCity]:
    return [favorite for favorite in favorites if favorite.city_id != city_id]


def favorites_with_status(
    favorites: Iterable[FavoriteCity],
    regions: Iterable[SnowRegion],
    forecasts: Optional[Mapping[str, Optional[Dict[str, Any]]]] = None,
) -> List[Dict[str, Any]]:
    """Favorites as wire dicts with a ``snowStatus`` taken from ``regions``.

    When ``forecasts`` is given, each favorite also carries its
    ``snowForecast`` (the next snowy day, or ``None``).
    """
    levels = {}
    for region in regions:
        levels.setdefault(region.city_id, region.snow_level)
    result = []
    for favorite in favorites:
        payload = favorite.to_dict()
        payload["snowStatus"] = levels.get(favorite.city_id, SnowLevel.NONE).value
        if forecasts is not None:
            payload["snowForecast"] = forecasts.get(favorite.city_id)
        result.append(payload)
    return result


def check_snow_alert(previous: SnowLevel, current: SnowLevel) -> bool:
    """True when a city goes from no snow to snowing."""
    return not previous.is_active and current.is_active


__all__ = [
    "add_favorite_to_list",
    "check_snow_alert",
    "favorites_with_status",
    "remove_favorite_from_list",
]
