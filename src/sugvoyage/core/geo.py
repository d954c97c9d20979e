from __future__ import annotations
from dataclasses import dataclass
from math import atan2, cos, isfinite, radians, sin, sqrt

from sugvoyage.proximity.errors import InvalidPosition

"""
Geospatial helpers.

Every proximity check in SugVoyage goes through `haversine_m` so the server push loop,
the poll client and the REST "nearby" endpoint agree on what "inside the radius" means.
"""

EARTH_RADIUS_M = 6_371_000


@dataclass(frozen=True)
class GeoPoint:
    """A latitude/longitude pair in decimal degrees."""

    lat: float
    lon: float

    def __post_init__(self) -> None:
        if not (isfinite(self.lat) and isfinite(self.lon)):
            raise InvalidPosition(f"non-finite coordinates: lat={self.lat!r} lon={self.lon!r}")
        if not -90 <= self.lat <= 90:
            raise InvalidPosition(f"latitude out of range [-90, 90]: {self.lat}")
        if not -180 <= self.lon <= 180:
            raise InvalidPosition(f"longitude out of range [-180, 180]: {self.lon}")


def haversine_m(a: GeoPoint, b: GeoPoint) -> float:
    """Compute great-circle distance in meters between two points."""
    d_lat = radians(b.lat - a.lat)
    d_lon = radians(b.lon - a.lon)

    h = sin(d_lat / 2) ** 2 + cos(radians(a.lat)) * cos(radians(b.lat)) * sin(d_lon / 2) ** 2
    # Rounding can push h a hair past 1.0 for antipodal points.
    h = min(1.0, h)
    return 2 * EARTH_RADIUS_M * atan2(sqrt(h), sqrt(1 - h))
