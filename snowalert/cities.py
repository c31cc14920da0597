"""Cities scanned for snowfall: provincial capitals and major prefecture cities.

``city_id`` is the QWeather location id.
"""
from __future__ import annotations

from typing import Iterable, List, Tuple

from .entities import City

MAJOR_CITIES: Tuple[City, ...] = (
    City("101010100", "北京", "北京", 39.90, 116.41),
    City("101020100", "上海", "上海", 31.23, 121.47),
    City("101030100", "天津", "天津", 39.13, 117.20),
    City("101040100", "重庆", "重庆", 29.57, 106.55),
    City("101050101", "哈尔滨", "黑龙江", 45.75, 126.65),
    City("101050201", "齐齐哈尔", "黑龙江", 47.35, 123.97),
    City("101050301", "牡丹江", "黑龙江", 44.58, 129.63),
    City("101060101", "长春", "吉林", 43.88, 125.32),
    City("101060201", "吉林", "吉林", 43.84, 126.55),
    City("101070101", "沈阳", "辽宁", 41.80, 123.43),
    City("101070201", "大连", "辽宁", 38.91, 121.62),
    City("101080101", "呼和浩特", "内蒙古", 40.84, 111.75),
    City("101090101", "石家庄", "河北", 38.04, 114.51),
    City("101100101", "太原", "山西", 37.87, 112.55),
    City("101110101", "西安", "陕西", 34.26, 108.94),
    City("101120101", "济南", "山东", 36.65, 116.98),
    City("101130101", "乌鲁木齐", "新疆", 43.80, 87.60),
    City("101140101", "拉萨", "西藏", 29.65, 91.11),
    City("101150101", "西宁", "青海", 36.62, 101.78),
    City("101160101", "兰州", "甘肃", 36.06, 103.83),
    City("101170101", "银川", "宁夏", 38.49, 106.23),
    City("101180101", "郑州", "河南", 34.76, 113.65),
    City("101190101", "南京", "江苏", 32.06, 118.80),
    City("101200101", "武汉", "湖北", 30.58, 114.30),
    City("101210101", "杭州", "浙江", 30.29, 120.15),
    City("101220101", "合肥", "安徽", 31.82, 117.23),
    City("101230101", "福州", "福建", 26.08, 119.30),
    City("101240101", "南昌", "江西", 28.68, 115.89),
    City("101250101", "长沙", "湖南", 28.23, 112.94),
    City("101260101", "贵阳", "贵州", 26.65, 106.63),
    City("101270101", "成都", "四川", 30.57, 104.07),
    City("101280101", "广州", "广东", 23.13, 113.26),
    City("101290101", "昆明", "云南", 25.04, 102.68),
    City("101300101", "南宁", "广西", 22.82, 108.37),
    City("101310101", "海口", "海南", 20.04, 110.35),
)


def search_cities(keyword: str, cities: Iterable[City] = MAJOR_CITIES) -> List[City]:
    """Cities whose name contains ``keyword``, ignoring case. Empty keyword matches nothing."""
    if keyword == "":
        return []
    needle = keyword.lower()
    return [city for city in cities if needle in city.city_name.lower()]


def find_city(city_id: str, cities: Iterable[City] = MAJOR_CITIES):
    for city in cities:
        if city.city_id == city_id:
            return city
    return None


__all__ = ["MAJOR_CITIES", "find_city", "search_cities"]
