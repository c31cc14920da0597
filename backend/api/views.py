"""REST API views for snow information and favorites."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple

from asgiref.sync import async_to_sync
from django.conf import settings
from django.core.cache import caches
from pydantic import ValidationError
from rest_framework import status
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from backend.api.schemas import FavoritePayload, FavoriteRemovalPayload
from backend.core import favorites as favorites_db
from backend.core.storage import DjangoCacheStorage
from snowalert.cache import CacheStore
from snowalert.cities import search_cities
from snowalert.entities import GeoPoint, SnowRegion
from snowalert.factories import utcnow_iso
from snowalert.geo import check_radius, make_origin, rank_nearby
from snowalert.providers.base import ProviderError, RequestConfig
from snowalert.providers.qweather import QWeatherProvider
from snowalert.services.favorites import favorites_with_status
from snowalert.services.snow import SnowService, SnowServiceError, filter_snowing_cities

logger = logging.getLogger(__name__)

OPEN_ID_HEADER = "X-Open-Id"
UPSTREAM_ERRORS = (ProviderError, SnowServiceError)


@lru_cache(maxsize=1)
def get_snow_service() -> SnowService:
    storage = DjangoCacheStorage(caches[settings.SNOW_CACHE_ALIAS])
    provider = QWeatherProvider(
        api_key=settings.QWEATHER_API_KEY,
        base_url=settings.QWEATHER_BASE_URL,
        request_config=RequestConfig(timeout=settings.QWEATHER_TIMEOUT),
    )
    return SnowService(
        provider=provider,
        cache=CacheStore(storage, ttl=settings.SNOW_CACHE_TTL_MS),
    )


def load_regions(service: SnowService, refresh: bool = False) -> Tuple[List[SnowRegion], bool]:
    """Return ``(regions, offline)``.

    When the provider fails, the last stored scan is served with
    ``offline=True``; the error propagates only if nothing was ever stored.
    """
    try:
        if refresh:
            return async_to_sync(service.refresh_regions)(), False
        return service.get_regions(), False
    except UPSTREAM_ERRORS as exc:
        stale = service.stale_regions()
        if stale is None:
            raise
        logger.warning("Serving stale snow data: %s", exc)
        return stale, True


def nearby_payload(origin: GeoPoint, regions: List[SnowRegion], radius_km: float) -> Dict[str, Any]:
    results, nearest = rank_nearby(origin, regions, radius_km)
    return {
        "nearbySnow": [item.to_dict(precision=2) for item in results],
        "nearest": nearest.to_dict(precision=2) if nearest else None,
    }


def _upstream_error() -> Response:
    return Response({"detail": "weather provider unavailable"}, status=status.HTTP_502_BAD_GATEWAY)


def _parse_number(raw: Optional[str]) -> float:
    if raw is None:
        raise KeyError("missing value")
    return float(raw)


class SnowListView(APIView):
    """List cities where it is currently snowing."""

    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):  # noqa: D401
        refresh = request.query_params.get("refresh", "").lower() in ("1", "true", "yes")
        try:
            regions, offline = load_regions(get_snow_service(), refresh=refresh)
        except UPSTREAM_ERRORS:
            return _upstream_error()
        payload = {
            "snowRegions": [region.to_dict() for region in filter_snowing_cities(regions)],
            "updatedAt": utcnow_iso(),
            "offline": offline,
        }
        return Response(payload, status=status.HTTP_200_OK)


class CityDetailView(APIView):
    """Current conditions and the three-day snow forecast of one city."""

    permission_classes = [AllowAny]

    def get(self, request, city_id: str, *args, **kwargs):  # noqa: D401
        try:
            detail = get_snow_service().get_city_detail(city_id)
        except ProviderError:
            return _upstream_error()
        return Response(detail.to_dict(), status=status.HTTP_200_OK)


class ForecastView(APIView):
    permission_classes = [AllowAny]
    days = 3

    def get(self, request, city_id: str, *args, **kwargs):  # noqa: D401
        service = get_snow_service()
        fetch = service.get_forecast_15d if self.days == 15 else service.get_forecast
        try:
            forecast = fetch(city_id)
        except ProviderError:
            return _upstream_error()
        return Response({"forecast": [item.to_dict() for item in forecast]}, status=status.HTTP_200_OK)


class Forecast15dView(ForecastView):
    days = 15


class NearbySnowView(APIView):
    """Snowing cities around the requested coordinates."""

    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):  # noqa: D401
        """Return nearby snow ranked by distance plus the nearest snowing city."""
        try:
            origin = make_origin(
                _parse_number(request.query_params.get("lat")),
                _parse_number(request.query_params.get("lon")),
            )
        except KeyError:
            return Response({"detail": "lat and lon query parameters are required"}, status=status.HTTP_400_BAD_REQUEST)
        except ValueError:
            return Response({"detail": "lat and lon must be valid floating point numbers"}, status=status.HTTP_400_BAD_REQUEST)

        raw_radius = request.query_params.get("radius")
        try:
            radius = check_radius(
                settings.NEARBY_DEFAULT_RADIUS_KM if raw_radius is None else float(raw_radius)
            )
        except ValueError as exc:
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)

        try:
            regions, offline = load_regions(get_snow_service())
        except UPSTREAM_ERRORS:
            return _upstream_error()
        payload = nearby_payload(origin, regions, radius)
        payload["offline"] = offline
        return Response(payload, status=status.HTTP_200_OK)


class CitySearchView(APIView):
    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):  # noqa: D401
        keyword = request.query_params.get("keyword", "").strip()
        cities = search_cities(keyword, get_snow_service().cities)
        return Response({"cities": [city.to_dict() for city in cities]}, status=status.HTTP_200_OK)


class FavoritesView(APIView):
    """List, add and remove the caller's favorite cities."""

    permission_classes = [AllowAny]

    def get(self, request, *args, **kwargs):  # noqa: D401
        open_id = request.headers.get(OPEN_ID_HEADER)
        if not open_id:
            return _missing_identity()
        with favorites_db.session_scope() as session:
            favorites = favorites_db.list_favorites(session, open_id)
        service = get_snow_service()
        regions = service.stale_regions() or []
        forecasts = {favorite.city_id: service.upcoming_snow(favorite.city_id) for favorite in favorites}
        payload = favorites_with_status(favorites, regions, forecasts)
        return Response({"favorites": payload}, status=status.HTTP_200_OK)

    def post(self, request, *args, **kwargs):  # noqa: D401
        open_id = request.headers.get(OPEN_ID_HEADER)
        if not open_id:
            return _missing_identity()
        try:
            payload = FavoritePayload.model_validate(request.data)
        except ValidationError as exc:
            return _invalid_payload(exc)
        with favorites_db.session_scope() as session:
            added = favorites_db.add_favorite(
                session,
                open_id=open_id,
                city_id=payload.city_id,
                city_name=payload.city_name,
                latitude=payload.latitude,
                longitude=payload.longitude,
            )
        if added:
            return Response({"detail": "added"}, status=status.HTTP_201_CREATED)
        return Response({"detail": "already in favorites"}, status=status.HTTP_200_OK)

    def delete(self, request, *args, **kwargs):  # noqa: D401
        open_id = request.headers.get(OPEN_ID_HEADER)
        if not open_id:
            return _missing_identity()
        data = request.data or request.query_params.dict()
        try:
            payload = FavoriteRemovalPayload.model_validate(data)
        except ValidationError as exc:
            return _invalid_payload(exc)
        with favorites_db.session_scope() as session:
            removed = favorites_db.remove_favorite(session, open_id=open_id, city_id=payload.city_id)
        if removed:
            return Response({"detail": "removed"}, status=status.HTTP_200_OK)
        return Response({"detail": "not in favorites"}, status=status.HTTP_404_NOT_FOUND)


def _missing_identity() -> Response:
    return Response({"detail": f"{OPEN_ID_HEADER} header is required"}, status=status.HTTP_401_UNAUTHORIZED)


def _invalid_payload(exc: ValidationError) -> Response:
    errors = [f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()]
    return Response({"detail": errors}, status=status.HTTP_400_BAD_REQUEST)
