"""Request body schemas for the favorites endpoints."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

__all__ = ["FavoritePayload", "FavoriteRemovalPayload"]


class FavoriteRemovalPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    city_id: str = Field(alias="cityId", min_length=1)

    @field_validator("city_id", mode="before")
    @classmethod
    def _strip(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value


class FavoritePayload(FavoriteRemovalPayload):
    city_name: str = Field(alias="cityName", min_length=1)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)

    @field_validator("city_name", mode="before")
    @classmethod
    def _strip_name(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value
