"""Great-circle distance and proximity ranking for snowing regions.

The helpers are pure: inputs are never mutated and results are rebuilt per
call, so they are safe to share between requests.
"""
from __future__ import annotations

from math import atan2, cos, isfinite, radians, sin, sqrt
from typing import Iterable, List, Optional, Tuple

from .entities import GeoPoint, NearbySnowResult, SnowRegion
from .factories import clamp

EARTH_RADIUS_KM = 6371.0


def make_origin(latitude: float, longitude: float) -> GeoPoint:
    """Query origin clamped into coordinate range; non-finite input raises ``ValueError``."""
    if not (isfinite(latitude) and isfinite(longitude)):
        raise ValueError("coordinates must be finite numbers")
    return GeoPoint(clamp(latitude, -90.0, 90.0), clamp(longitude, -180.0, 180.0))


def check_radius(radius_km: float) -> float:
    if not isfinite(radius_km):
        raise ValueError("radius must be a finite number")
    if radius_km < 0:
        raise ValueError("radius must not be negative")
    return radius_km


def distance_km(a: GeoPoint, b: GeoPoint) -> float:
    """Haversine distance in kilometres between two points."""
    lat1 = radians(a.latitude)
    lat2 = radians(b.latitude)
    dlat = lat2 - lat1
    dlon = radians(b.longitude - a.longitude)

    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    # rounding can push h slightly outside [0, 1] near antipodal points
    h = min(max(h, 0.0), 1.0)
    return EARTH_RADIUS_KM * 2 * atan2(sqrt(h), sqrt(1 - h))


def filter_nearby(
    origin: GeoPoint,
    regions: Iterable[SnowRegion],
    radius_km: float,
) -> List[NearbySnowResult]:
    """Snowing regions within ``radius_km`` of ``origin``, nearest first.

    Regions at an equal distance keep their input order.
    """
    results: List[NearbySnowResult] = []
    for region in regions:
        if not region.is_active:
            continue
        distance = distance_km(origin, region.location)
        if distance <= radius_km:
            results.append(_to_result(region, distance))
    return sorted(results, key=lambda result: result.distance_km)


def find_nearest_active(origin: GeoPoint, regions: Iterable[SnowRegion]) -> Optional[SnowRegion]:
    """Closest snowing region regardless of distance, or ``None``."""
    nearest: Optional[SnowRegion] = None
    min_distance = float("inf")
    for region in regions:
        if not region.is_active:
            continue
        distance = distance_km(origin, region.location)
        if distance < min_distance:
            min_distance = distance
            nearest = region
    return nearest


def nearest_result(origin: GeoPoint, regions: Iterable[SnowRegion]) -> Optional[NearbySnowResult]:
    region = find_nearest_active(origin, regions)
    if region is None:
        return None
    return _to_result(region, distance_km(origin, region.location), with_temperature=False)


def rank_nearby(
    origin: GeoPoint,
    regions: Iterable[SnowRegion],
    radius_km: float,
) -> Tuple[List[NearbySnowResult], Optional[NearbySnowResult]]:
    """Snowing regions within ``radius_km`` plus the nearest snowing region anywhere."""
    regions = list(regions)
    return filter_nearby(origin, regions, radius_km), nearest_result(origin, regions)


def _to_result(region: SnowRegion, distance: float, with_temperature: bool = True) -> NearbySnowResult:
    return NearbySnowResult(
        city_id=region.city_id,
        city_name=region.city_name,
        distance_km=distance,
        snow_level=region.snow_level,
        temperature=region.temperature if with_temperature else None,
    )


__all__ = [
    "EARTH_RADIUS_KM",
    "GeoPoint",
    "check_radius",
    "distance_km",
    "filter_nearby",
    "find_nearest_active",
    "make_origin",
    "nearest_result",
    "rank_nearby",
]
