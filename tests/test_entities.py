from __future__ import annotations

import json

import pytest

from snowalert.cities import find_city, search_cities
from snowalert.entities import City, NearbySnowResult, SnowLevel
from snowalert.factories import create_snow_region
from snowalert.serializer import deserialize, pretty_print, serialize


def test_snow_levels_are_ordered_by_severity() -> None:
    assert SnowLevel.NONE < SnowLevel.LIGHT < SnowLevel.MODERATE < SnowLevel.HEAVY < SnowLevel.BLIZZARD
    assert max([SnowLevel.LIGHT, SnowLevel.BLIZZARD, SnowLevel.NONE]) is SnowLevel.BLIZZARD
    assert not SnowLevel.NONE.is_active
    assert SnowLevel.LIGHT.is_active


@pytest.mark.parametrize(
    "code, expected",
    [
        ("400", SnowLevel.LIGHT),
        ("402", SnowLevel.LIGHT),
        ("403", SnowLevel.MODERATE),
        ("406", SnowLevel.HEAVY),
        ("410", SnowLevel.BLIZZARD),
        (404, SnowLevel.MODERATE),
        ("100", SnowLevel.NONE),
        ("411", SnowLevel.NONE),
        ("sunny", SnowLevel.NONE),
        (None, SnowLevel.NONE),
    ],
)
def test_from_weather_code(code, expected) -> None:
    assert SnowLevel.from_weather_code(code) is expected


def test_flakes_label() -> None:
    assert SnowLevel.NONE.flakes == "无"
    assert SnowLevel.MODERATE.flakes == "❄❄ 中雪"


def test_stronger_keeps_first_on_tie() -> None:
    assert SnowLevel.stronger(SnowLevel.LIGHT, SnowLevel.HEAVY) is SnowLevel.HEAVY
    assert SnowLevel.stronger(SnowLevel.HEAVY, SnowLevel.LIGHT) is SnowLevel.HEAVY


def test_nearby_result_rounds_only_when_asked() -> None:
    result = NearbySnowResult("1", "北京", 12.3456, SnowLevel.LIGHT, -2.0)

    assert result.to_dict()["distance"] == 12.3456
    assert result.to_dict(precision=2) == {
        "cityId": "1",
        "cityName": "北京",
        "distance": 12.35,
        "snowLevel": "小雪",
        "temperature": -2.0,
    }


def test_serialize_keeps_unicode_and_round_trips() -> None:
    region = create_snow_region(
        {"cityId": "101050101", "cityName": "哈尔滨", "snowLevel": "暴雪", "updatedAt": "2024-01-15T08:00:00Z"}
    )

    text = serialize(region)

    assert "哈尔滨" in text
    assert "\n" not in text
    assert deserialize(text) == region
    assert json.loads(pretty_print(region)) == region.to_dict()
    assert "\n  " in pretty_print(region)


def test_deserialize_rejects_invalid_json() -> None:
    with pytest.raises(json.JSONDecodeError):
        deserialize("{not json")


def test_deserialize_normalizes_non_object_json() -> None:
    assert deserialize("[1, 2]").city_id == ""


def test_search_cities_is_case_insensitive_substring() -> None:
    assert [city.city_name for city in search_cities("哈尔")] == ["哈尔滨", "齐齐哈尔"]
    assert [city.city_id for city in search_cities("滨")] == ["101050101"]
    assert search_cities("") == []
    assert search_cities("nowhere") == []


def test_search_cities_ignores_case() -> None:
    cities = [City("1", "Harbin")]

    assert search_cities("harb", cities) == cities
    assert search_cities("HARB", cities) == cities


def test_find_city() -> None:
    beijing = find_city("101010100")

    assert beijing is not None
    assert beijing.city_name == "北京"
    assert find_city("missing") is None
