"""
Domain models.

These types are the contract between the proximity engine and its collaborators:
- catalog entities (`Spot`), as exported from the spots collection
- inbound location reports (`LocationReport`)
- outbound discoveries (`DiscoveryEvent`) and their wire shape (`DiscoveryPayload`)

`UserSession` is the only mutable record; it is owned by the location tracker.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from sugvoyage.core.geo import GeoPoint
from sugvoyage.core.time import utc_now

_SPOT_FIELDS = {"id", "name", "latitude", "longitude", "category", "metadata"}


class Spot(BaseModel):
    """A point of interest from the catalog."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    name: str
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    category: str = "uncategorized"
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _fold_extra_fields(cls, data: Any) -> Any:
        # Database documents carry many display fields; keep them opaque.
        if not isinstance(data, dict):
            return data
        known = {k: v for k, v in data.items() if k in _SPOT_FIELDS or k == "_id"}
        extra = {k: v for k, v in data.items() if k not in known}
        if extra:
            known["metadata"] = {**extra, **(data.get("metadata") or {})}
        if isinstance(known.get("_id"), dict) and "$oid" in known["_id"]:
            known["_id"] = known["_id"]["$oid"]
        return known

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, v: Any) -> str:
        return str(v)

    @field_validator("category")
    @classmethod
    def _normalize_category(cls, v: str) -> str:
        return v.strip().lower() or "uncategorized"

    @property
    def location(self) -> GeoPoint:
        return GeoPoint(lat=self.latitude, lon=self.longitude)


class SpotMatch(BaseModel):
    """A spot found within a radius, annotated with its distance from the center."""

    model_config = ConfigDict(frozen=True)

    spot: Spot
    distance_m: float = Field(..., ge=0)


class NearbyResult(BaseModel):
    """Output of the attraction-recommendation policy (see `recommend_nearby`)."""

    matches: list[SpotMatch]
    has_no_spot_nearby: bool = False


class LocationReport(BaseModel):
    """A client position update as received over the push channel."""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    radius_m: float | None = Field(
        default=None, ge=0, validation_alias=AliasChoices("radius", "radiusMeters", "radius_m")
    )

    @property
    def position(self) -> GeoPoint:
        return GeoPoint(lat=self.latitude, lon=self.longitude)


class DiscoveryPayload(BaseModel):
    """Wire shape consumed by the notification UI."""

    model_config = ConfigDict(populate_by_name=True)

    event: str = "spot-in-radius"
    message: str
    count: int
    nearest_spot: str = Field(serialization_alias="nearestSpot", validation_alias=AliasChoices("nearestSpot", "nearest_spot"))
    spots: list[Spot]


class DiscoveryEvent(BaseModel):
    """One discovery result for one session; created per cycle and never mutated."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    matches: list[SpotMatch] = Field(..., min_length=1)
    triggered_at: datetime

    @property
    def count(self) -> int:
        return len(self.matches)

    @property
    def nearest(self) -> SpotMatch:
        return self.matches[0]

    @property
    def message(self) -> str:
        return f"{self.count} spot(s) found near you!"

    def to_payload(self, max_spots: int = 5) -> DiscoveryPayload:
        return DiscoveryPayload(
            message=self.message,
            count=self.count,
            nearest_spot=self.nearest.spot.name,
            spots=[m.spot for m in self.matches[:max_spots]],
        )


@dataclass
class UserSession:
    """Live-tracked state for one observer (one socket connection or one poll client)."""

    session_id: str
    last_position: GeoPoint
    radius_m: float
    last_notified_at: datetime | None = None
    created_at: datetime = field(default_factory=utc_now)
    active: bool = True
