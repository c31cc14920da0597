from __future__ import annotations

import json

from .entities import SnowRegion
from .factories import create_snow_region


def serialize(region: SnowRegion) -> str:
    return json.dumps(region.to_dict(), ensure_ascii=False)


def deserialize(text: str) -> SnowRegion:
    """Parse ``text`` and normalize it into a :class:`SnowRegion`.

    Raises :class:`json.JSONDecodeError` when ``text`` is not JSON.
    """
    return create_snow_region(json.loads(text))


def pretty_print(region: SnowRegion) -> str:
    return json.dumps(region.to_dict(), ensure_ascii=False, indent=2)


__all__ = ["deserialize", "pretty_print", "serialize"]
