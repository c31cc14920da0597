from __future__ import annotations

import json

import pytest
from django.conf import settings
from django.core.cache import caches
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import Client

from backend.api import views
from backend.core import favorites as favorites_db
from backend.core.storage import DjangoCacheStorage
from snowalert.cache import CacheStore, MemoryStorage
from snowalert.entities import City
from snowalert.providers.base import ProviderError
from snowalert.services.snow import SnowService

CITIES = (
    City("101010100", "北京", "北京", 39.90, 116.41),
    City("101030100", "天津", "天津", 39.08, 117.20),
    City("101050101", "哈尔滨", "黑龙江", 45.75, 126.65),
)


class TimeController:
    def __init__(self) -> None:
        self.now = 0

    def advance(self, millis: int) -> None:
        self.now += millis

    def __call__(self) -> int:
        return self.now


class _StubProvider:
    def __init__(self) -> None:
        self.icons = {"101030100": "401", "101050101": "406"}
        self.down = False

    def current(self, city_id: str) -> dict:
        if self.down:
            raise ProviderError("down")
        return {"obsTime": "2024-01-15T08:00:00Z", "temp": "-6", "humidity": "70", "icon": self.icons.get(city_id, "100")}

    def forecast_3d(self, city_id: str) -> list:
        if self.down:
            raise ProviderError("down")
        return [{"fxDate": "2024-01-15", "iconDay": "400", "iconNight": "100", "precip": "1.0"}]

    def forecast_15d(self, city_id: str) -> list:
        if self.down:
            raise ProviderError("down")
        return [
            {"fxDate": "2024-01-15", "iconDay": "100", "iconNight": "100"},
            {"fxDate": "2024-01-16", "iconDay": "100", "iconNight": "403"},
        ]


@pytest.fixture()
def clock():
    return TimeController()


@pytest.fixture()
def provider():
    return _StubProvider()


@pytest.fixture()
def service(monkeypatch, provider, clock):
    snow_service = SnowService(
        provider=provider,
        cache=CacheStore(MemoryStorage(), ttl=1000, time_func=clock),
        cities=CITIES,
    )
    monkeypatch.setattr(views, "get_snow_service", lambda: snow_service)
    return snow_service


@pytest.fixture()
def favorites_database(tmp_path):
    return favorites_db.configure_engine(f"sqlite:///{tmp_path / 'favorites.db'}")


def test_snow_list_returns_only_snowing_cities(service) -> None:
    response = Client().get("/api/snow")

    assert response.status_code == 200
    payload = response.json()
    assert [item["cityName"] for item in payload["snowRegions"]] == ["天津", "哈尔滨"]
    assert payload["snowRegions"][1]["snowLevel"] == "大雪"
    assert payload["offline"] is False
    assert payload["updatedAt"].endswith("Z")


def test_snow_list_serves_stale_data_when_provider_fails(service, provider, clock) -> None:
    Client().get("/api/snow")
    clock.advance(10_000)
    provider.down = True

    response = Client().get("/api/snow")

    assert response.status_code == 200
    assert response.json()["offline"] is True
    assert len(response.json()["snowRegions"]) == 2


def test_snow_list_refresh_rescans(service, provider) -> None:
    Client().get("/api/snow")
    provider.icons["101010100"] = "410"

    response = Client().get("/api/snow", {"refresh": "1"})

    assert [item["cityId"] for item in response.json()["snowRegions"]][0] == "101010100"


def test_snow_list_without_any_data_is_bad_gateway(service, provider) -> None:
    provider.down = True

    response = Client().get("/api/snow")

    assert response.status_code == 502


def test_city_detail_endpoint(service) -> None:
    response = Client().get("/api/snow/101050101")

    assert response.status_code == 200
    payload = response.json()
    assert payload["cityName"] == "哈尔滨"
    assert payload["current"]["snowLevel"] == "大雪"
    assert payload["forecast"][0]["snowPeriod"] == "白天"


def test_city_detail_provider_failure(service, provider) -> None:
    provider.down = True

    assert Client().get("/api/snow/101050101").status_code == 502
    assert Client().get("/api/snow/101050101/forecast").status_code == 502


def test_forecast_endpoint(service) -> None:
    response = Client().get("/api/snow/101010100/forecast")

    assert response.status_code == 200
    assert response.json()["forecast"][0]["snowLevel"] == "小雪"


def test_nearby_endpoint_ranks_and_rounds(service) -> None:
    response = Client().get("/api/nearby", {"lat": "39.90", "lon": "116.41", "radius": "300"})

    assert response.status_code == 200
    payload = response.json()
    assert [item["cityId"] for item in payload["nearbySnow"]] == ["101030100"]
    distance = payload["nearbySnow"][0]["distance"]
    assert distance == round(distance, 2)
    assert payload["nearbySnow"][0]["temperature"] == -6
    assert payload["nearest"]["cityId"] == "101030100"
    assert "temperature" not in payload["nearest"]


def test_forecast_15d_endpoint(service, provider) -> None:
    response = Client().get("/api/snow/101010100/forecast15d")

    assert response.status_code == 200
    forecast = response.json()["forecast"]
    assert [item["snowLevel"] for item in forecast] == ["无", "中雪"]
    assert forecast[1]["snowPeriod"] == "夜间"

    provider.down = True
    assert Client().get("/api/snow/101030100/forecast15d").status_code == 502


def test_nearby_endpoint_clamps_out_of_range_origin(service) -> None:
    response = Client().get("/api/nearby", {"lat": "95", "lon": "116.41", "radius": "10"})

    assert response.status_code == 200
    assert response.json()["nearbySnow"] == []
    assert response.json()["nearest"]["cityId"] == "101050101"


def test_nearby_endpoint_without_snow_nearby(service) -> None:
    response = Client().get("/api/nearby", {"lat": "39.90", "lon": "116.41", "radius": "10"})

    assert response.json()["nearbySnow"] == []
    assert response.json()["nearest"]["cityId"] == "101030100"


@pytest.mark.parametrize(
    "params",
    [
        {},
        {"lat": "39.9"},
        {"lat": "abc", "lon": "116.4"},
        {"lat": "nan", "lon": "116.4"},
        {"lat": "39.9", "lon": "inf"},
        {"lat": "39.9", "lon": "116.4", "radius": "far"},
        {"lat": "39.9", "lon": "116.4", "radius": "-1"},
    ],
)
def test_nearby_endpoint_validates_params(service, params) -> None:
    response = Client().get("/api/nearby", params)

    assert response.status_code == 400
    assert "detail" in response.json()


def test_city_search_endpoint(service) -> None:
    response = Client().get("/api/cities", {"keyword": "哈尔滨"})

    assert response.json()["cities"] == [CITIES[2].to_dict()]
    assert Client().get("/api/cities").json()["cities"] == []


def test_favorites_require_identity(service, favorites_database) -> None:
    client = Client()

    assert client.get("/api/favorites").status_code == 401
    assert client.post("/api/favorites", {"cityId": "1"}, content_type="application/json").status_code == 401
    assert client.delete("/api/favorites?cityId=1").status_code == 401


def test_favorites_lifecycle(service, favorites_database) -> None:
    client = Client(HTTP_X_OPEN_ID="user-1")
    client.get("/api/snow")
    body = {"cityId": "101050101", "cityName": "哈尔滨", "latitude": 45.75, "longitude": 126.65}

    created = client.post("/api/favorites", body, content_type="application/json")
    duplicate = client.post("/api/favorites", body, content_type="application/json")

    assert created.status_code == 201
    assert duplicate.status_code == 200

    listed = client.get("/api/favorites").json()["favorites"]
    assert [item["cityId"] for item in listed] == ["101050101"]
    assert listed[0]["snowStatus"] == "大雪"
    assert listed[0]["openId"] == "user-1"
    assert listed[0]["snowForecast"]["date"] == "2024-01-16"
    assert listed[0]["snowForecast"]["snowLevel"] == "中雪"

    removed = client.delete("/api/favorites", json.dumps({"cityId": "101050101"}), content_type="application/json")
    missing = client.delete("/api/favorites?cityId=101050101")

    assert removed.status_code == 200
    assert missing.status_code == 404
    assert client.get("/api/favorites").json()["favorites"] == []


def test_favorites_payload_is_validated(service, favorites_database) -> None:
    client = Client(HTTP_X_OPEN_ID="user-1")

    response = client.post("/api/favorites", {"cityId": "  ", "latitude": 120}, content_type="application/json")

    assert response.status_code == 400
    detail = response.json()["detail"]
    assert any(message.startswith("cityId") for message in detail)
    assert any(message.startswith("latitude") for message in detail)


def test_snow_fetch_command_prints_snow_list(service, monkeypatch, capsys) -> None:
    from backend.api.management.commands import snow_fetch

    monkeypatch.setattr(snow_fetch, "get_snow_service", lambda: service)

    call_command("snow_fetch")

    payload = json.loads(capsys.readouterr().out)
    assert [item["cityId"] for item in payload["snowRegions"]] == ["101030100", "101050101"]
    assert payload["offline"] is False


def test_snow_fetch_command_nearby(service, monkeypatch, capsys) -> None:
    from backend.api.management.commands import snow_fetch

    monkeypatch.setattr(snow_fetch, "get_snow_service", lambda: service)

    call_command("snow_fetch", "--lat", "39.9", "--lon", "116.41", "--radius", "300")

    payload = json.loads(capsys.readouterr().out)
    assert payload["nearbySnow"][0]["cityId"] == "101030100"
    assert payload["nearest"]["cityId"] == "101030100"


def test_snow_fetch_command_errors(service, provider, monkeypatch) -> None:
    from backend.api.management.commands import snow_fetch

    monkeypatch.setattr(snow_fetch, "get_snow_service", lambda: service)

    with pytest.raises(CommandError):
        call_command("snow_fetch", "--lat", "39.9")

    provider.down = True
    with pytest.raises(CommandError):
        call_command("snow_fetch")


def test_default_service_uses_django_cache() -> None:
    views.get_snow_service.cache_clear()
    try:
        snow_service = views.get_snow_service()
    finally:
        views.get_snow_service.cache_clear()

    assert isinstance(snow_service.cache.storage, DjangoCacheStorage)
    assert snow_service.cache.default_ttl == settings.SNOW_CACHE_TTL_MS


def test_django_cache_storage_round_trip() -> None:
    backend = caches["default"]
    backend.clear()
    store = CacheStore(DjangoCacheStorage(backend, prefix="test:"), ttl=1000)

    store.set("key", {"value": [1, 2]})

    assert store.get("key") == {"value": [1, 2]}
    assert backend.get("test:key")["data"] == {"value": [1, 2]}


def test_snow_fetch_command_clamps_origin(service, monkeypatch, capsys) -> None:
    from backend.api.management.commands import snow_fetch

    monkeypatch.setattr(snow_fetch, "get_snow_service", lambda: service)

    call_command("snow_fetch", lat=95.0, lon=116.41, radius=10.0)

    payload = json.loads(capsys.readouterr().out)
    assert payload["nearbySnow"] == []
    assert payload["nearest"]["cityId"] == "101050101"


@pytest.mark.parametrize(
    "options",
    [
        {"lat": float("nan"), "lon": 0.0},
        {"lat": 39.9, "lon": float("inf")},
        {"lat": 39.9, "lon": 116.41, "radius": -1.0},
        {"lat": 39.9, "lon": 116.41, "radius": float("nan")},
    ],
)
def test_snow_fetch_command_rejects_bad_location(service, monkeypatch, options) -> None:
    from backend.api.management.commands import snow_fetch

    monkeypatch.setattr(snow_fetch, "get_snow_service", lambda: service)

    with pytest.raises(CommandError):
        call_command("snow_fetch", **options)


def test_nearby_endpoint_and_command_agree(service, monkeypatch, capsys) -> None:
    from backend.api.management.commands import snow_fetch

    monkeypatch.setattr(snow_fetch, "get_snow_service", lambda: service)

    api = Client().get("/api/nearby", {"lat": "95", "lon": "116.41", "radius": "5000"}).json()
    call_command("snow_fetch", lat=95.0, lon=116.41, radius=5000.0)
    command = json.loads(capsys.readouterr().out)

    assert api["nearbySnow"] == command["nearbySnow"]
    assert api["nearest"] == command["nearest"]
    assert [item["cityId"] for item in command["nearbySnow"]] == ["101050101"]
