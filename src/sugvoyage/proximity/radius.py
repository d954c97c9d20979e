"""
Radius filtering.

`filter_in_radius` is the single shared implementation of "which spots are inside this
geofence", used by the push loop, the poll client and the REST endpoints.

`recommend_nearby` layers the attraction-list policy on top: when nothing is in range the
caller may opt in to showing the first N catalog spots instead of an empty list. The
filter itself never does this.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from sugvoyage.core.geo import GeoPoint, haversine_m
from sugvoyage.domain.models import NearbyResult, Spot, SpotMatch


def filter_in_radius(center: GeoPoint, radius_m: float, spots: Iterable[Spot]) -> list[SpotMatch]:
    """Return spots with distance <= `radius_m`, nearest first (ties keep catalog order)."""
    matches: list[SpotMatch] = []
    for spot in spots:
        d = haversine_m(center, spot.location)
        if d <= radius_m:
            matches.append(SpotMatch(spot=spot, distance_m=d))
    matches.sort(key=lambda m: m.distance_m)
    return matches


def recommend_nearby(
    center: GeoPoint,
    radius_m: float,
    spots: Sequence[Spot],
    *,
    fallback_limit: int | None = None,
) -> NearbyResult:
    """Spots within the radius, or (if `fallback_limit` is set) the first N of the full set.

    Fallback items keep catalog order and still carry their real distance, so the UI can
    tell the user how far away they are. `has_no_spot_nearby` flags the fallback case.
    """
    matches = filter_in_radius(center, radius_m, spots)
    if matches or not fallback_limit:
        return NearbyResult(matches=matches, has_no_spot_nearby=not matches)

    fallback = [
        SpotMatch(spot=s, distance_m=haversine_m(center, s.location)) for s in spots[:fallback_limit]
    ]
    return NearbyResult(matches=fallback, has_no_spot_nearby=True)
