"""Management command to scan for snow using the same stack as the API."""
from __future__ import annotations

import json
from typing import Any

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from backend.api.views import UPSTREAM_ERRORS, get_snow_service, load_regions, nearby_payload
from snowalert.geo import check_radius, make_origin
from snowalert.services.snow import filter_snowing_cities


class Command(BaseCommand):
    help = "Print snowing cities, optionally ranked around a location"

    def add_arguments(self, parser) -> None:  # noqa: D401
        parser.add_argument("--refresh", action="store_true", help="Ignore cached data and rescan")
        parser.add_argument("--lat", type=float, help="Latitude")
        parser.add_argument("--lon", type=float, help="Longitude")
        parser.add_argument("--radius", type=float, help="Search radius in kilometres")

    def handle(self, *args: Any, **options: Any) -> None:  # noqa: D401
        latitude = options.get("lat")
        longitude = options.get("lon")
        if (latitude is None) != (longitude is None):
            raise CommandError("--lat and --lon must be given together")
        origin = radius = None
        if latitude is not None:
            radius = options.get("radius")
            try:
                origin = make_origin(latitude, longitude)
                radius = check_radius(settings.NEARBY_DEFAULT_RADIUS_KM if radius is None else radius)
            except ValueError as exc:
                raise CommandError(str(exc)) from exc

        try:
            regions, offline = load_regions(get_snow_service(), refresh=options.get("refresh", False))
        except UPSTREAM_ERRORS as exc:
            raise CommandError("Weather provider unavailable") from exc

        if origin is None:
            payload = {"snowRegions": [region.to_dict() for region in filter_snowing_cities(regions)]}
        else:
            payload = nearby_payload(origin, regions, radius)
        payload["offline"] = offline
        self.stdout.write(json.dumps(payload, ensure_ascii=False))
