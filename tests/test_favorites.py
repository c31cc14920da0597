from __future__ import annotations

import pytest

from backend.core import favorites as favorites_db
from snowalert.entities import City, SnowLevel
from snowalert.factories import create_snow_region
from snowalert.services.favorites import (
    add_favorite_to_list,
    check_snow_alert,
    favorites_with_status,
    remove_favorite_from_list,
)

HARBIN = City("101050101", "哈尔滨", "黑龙江", 45.75, 126.65)
BEIJING = City("101010100", "北京", "北京", 39.90, 116.41)


@pytest.fixture()
def session_factory(tmp_path):
    return favorites_db.configure_engine(f"sqlite:///{tmp_path / 'favorites.db'}")


def test_add_favorite_to_list_builds_record() -> None:
    favorites = add_favorite_to_list([], HARBIN, "user-1")

    assert len(favorites) == 1
    favorite = favorites[0]
    assert favorite.id == "user-1_101050101"
    assert favorite.city_name == "哈尔滨"
    assert favorite.latitude == 45.75
    assert favorite.created_at.endswith("Z")


def test_add_favorite_to_list_is_idempotent_and_pure() -> None:
    original = add_favorite_to_list([], HARBIN, "user-1")

    again = add_favorite_to_list(original, HARBIN, "user-1")

    assert again == original
    assert again is not original


def test_remove_favorite_from_list() -> None:
    favorites = add_favorite_to_list(add_favorite_to_list([], HARBIN, "u"), BEIJING, "u")

    remaining = remove_favorite_from_list(favorites, HARBIN.city_id)

    assert [favorite.city_id for favorite in remaining] == [BEIJING.city_id]
    assert len(favorites) == 2
    assert remove_favorite_from_list(remaining, "missing") == remaining


def test_favorites_with_status_uses_known_levels() -> None:
    favorites = add_favorite_to_list(add_favorite_to_list([], HARBIN, "u"), BEIJING, "u")
    regions = [create_snow_region({"cityId": HARBIN.city_id, "snowLevel": "暴雪"})]

    payload = favorites_with_status(favorites, regions)

    assert [item["snowStatus"] for item in payload] == ["暴雪", "无"]
    assert payload[0]["_id"] == "u_101050101"
    assert "snowForecast" not in payload[0]


def test_favorites_with_status_attaches_upcoming_snow() -> None:
    favorites = add_favorite_to_list(add_favorite_to_list([], HARBIN, "u"), BEIJING, "u")
    upcoming = {"daysFromNow": 2, "snowLevel": "中雪", "date": "2024-01-17"}

    payload = favorites_with_status(favorites, [], {HARBIN.city_id: upcoming})

    assert payload[0]["snowForecast"] == upcoming
    assert payload[1]["snowForecast"] is None


def test_check_snow_alert() -> None:
    assert check_snow_alert(SnowLevel.NONE, SnowLevel.LIGHT)
    assert not check_snow_alert(SnowLevel.LIGHT, SnowLevel.HEAVY)
    assert not check_snow_alert(SnowLevel.NONE, SnowLevel.NONE)
    assert not check_snow_alert(SnowLevel.HEAVY, SnowLevel.NONE)


def test_database_add_list_remove(session_factory) -> None:
    with favorites_db.session_scope(session_factory) as session:
        assert favorites_db.add_favorite(
            session, open_id="u1", city_id=HARBIN.city_id, city_name=HARBIN.city_name, latitude=45.75, longitude=126.65
        )
        assert not favorites_db.add_favorite(session, open_id="u1", city_id=HARBIN.city_id, city_name=HARBIN.city_name)
        assert favorites_db.add_favorite(session, open_id="u2", city_id=HARBIN.city_id, city_name=HARBIN.city_name)

    with favorites_db.session_scope(session_factory) as session:
        stored = favorites_db.list_favorites(session, "u1")
        assert favorites_db.count_favorites(session) == 2

    assert len(stored) == 1
    assert stored[0].city_name == "哈尔滨"
    assert stored[0].latitude == 45.75
    assert stored[0].open_id == "u1"

    with favorites_db.session_scope(session_factory) as session:
        assert favorites_db.remove_favorite(session, open_id="u1", city_id=HARBIN.city_id)
        assert not favorites_db.remove_favorite(session, open_id="u1", city_id=HARBIN.city_id)
        assert favorites_db.list_favorites(session, "u1") == []


def test_session_scope_rolls_back_on_error(session_factory) -> None:
    with pytest.raises(RuntimeError):
        with favorites_db.session_scope(session_factory) as session:
            favorites_db.add_favorite(session, open_id="u1", city_id="1", city_name="x")
            raise RuntimeError("abort")

    with favorites_db.session_scope(session_factory) as session:
        assert favorites_db.count_favorites(session) == 0


def test_detect_driver() -> None:
    assert favorites_db.detect_driver("sqlite:///tmp/x.db") == "sqlite"
    with pytest.raises(ValueError):
        favorites_db.detect_driver("postgres://localhost/db")


@pytest.mark.parametrize("url", ["sqlite://", "sqlite:///:memory:", ":memory:"])
def test_in_memory_sqlite_is_rejected(url) -> None:
    with pytest.raises(ValueError, match="in-memory"):
        favorites_db.configure_engine(url)


def test_relative_sqlite_url_resolves_against_cwd(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    factory = favorites_db.configure_engine("sqlite:///./relative.db")

    with favorites_db.session_scope(factory) as session:
        favorites_db.add_favorite(session, open_id="u1", city_id="1", city_name="x")

    assert (tmp_path / "relative.db").exists()
