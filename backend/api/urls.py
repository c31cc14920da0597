"""API URL configuration."""
from __future__ import annotations

from django.urls import path

from backend.api.views import (
    CityDetailView,
    CitySearchView,
    FavoritesView,
    Forecast15dView,
    ForecastView,
    NearbySnowView,
    SnowListView,
)

urlpatterns = [
    path("snow", SnowListView.as_view(), name="snow-list"),
    path("snow/<str:city_id>", CityDetailView.as_view(), name="city-detail"),
    path("snow/<str:city_id>/forecast", ForecastView.as_view(), name="city-forecast"),
    path("snow/<str:city_id>/forecast15d", Forecast15dView.as_view(), name="city-forecast-15d"),
    path("nearby", NearbySnowView.as_view(), name="nearby-snow"),
    path("cities", CitySearchView.as_view(), name="city-search"),
    path("favorites", FavoritesView.as_view(), name="favorites"),
]
