"""Pydantic schemas for harvest submission (the farmer stage)."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

HarvestUnit = Literal["kg", "g", "lbs", "tons"]


class GeoLocation(BaseModel):
    """Point location of the harvest.  Missing address parts fall back to
    "Unknown" when copied onto the lot's origin."""
    coordinates: list[float] = Field(..., min_length=2, max_length=2)
    address: str | None = None
    region: str | None = None
    country: str | None = None


class WeatherConditions(BaseModel):
    temperature: float | None = None
    humidity: float | None = None
    rainfall: float | None = None


class HarvestCreate(BaseModel):
    """Payload for POST /api/harvests."""
    species: str = Field(..., min_length=1, max_length=150)
    variety: str | None = Field(None, max_length=150)
    quantity: float = Field(..., gt=0)
    unit: HarvestUnit = "kg"
    location: GeoLocation
    harvest_date: datetime
    photo_ref: str | None = Field(None, max_length=255)
    notes: str | None = None
    weather_conditions: WeatherConditions | None = None

    @field_validator("species")
    @classmethod
    def strip_species(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("species must not be blank")
        return v


class HarvestOut(BaseModel):
    id: str
    lot_id: str
    farmer_id: str
    farmer_name: str | None
    species: str
    variety: str
    quantity: float
    unit: str
    location: dict
    harvest_date: datetime
    weather_conditions: dict | None = None
    photo_ref: str | None
    notes: str | None
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}
