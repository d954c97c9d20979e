"""
Lightweight spatial indexing (grid bucket) for lat/lon points.

Catalog snapshots build one of these so a discovery cycle only runs the exact haversine
check on spots in nearby cells instead of the whole catalog.

Cells are fixed-size in degrees. The query window is derived from lower bounds of the
haversine distance, so every point within the radius is always visited; the final
decision is always the exact `haversine_m` comparison.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Generic, TypeVar

from sugvoyage.core.geo import EARTH_RADIUS_M, GeoPoint, haversine_m

T = TypeVar("T")

_M_PER_DEG = 2 * math.pi * EARTH_RADIUS_M / 360.0


@dataclass(frozen=True)
class _Entry(Generic[T]):
    item: T
    point: GeoPoint


class SpatialGridIndex(Generic[T]):
    def __init__(
        self,
        items: list[T],
        *,
        get_point: Callable[[T], GeoPoint],
        cell_size_m: float = 1200.0,
    ):
        if float(cell_size_m) <= 0:
            raise ValueError("cell_size_m must be > 0")
        self._cell_deg = float(cell_size_m) / _M_PER_DEG
        self._cells: dict[tuple[int, int], list[_Entry[T]]] = {}
        self._entries: list[_Entry[T]] = []

        for it in items:
            e = _Entry(item=it, point=get_point(it))
            self._entries.append(e)
            self._cells.setdefault(self._cell_key(e.point.lat, e.point.lon), []).append(e)

    def __len__(self) -> int:
        return len(self._entries)

    def _cell_key(self, lat: float, lon: float) -> tuple[int, int]:
        return (int(math.floor(lat / self._cell_deg)), int(math.floor(lon / self._cell_deg)))

    def _lon_reach_deg(self, center: GeoPoint, radius_m: float, lat_reach_deg: float) -> float | None:
        # h >= cos(lat1)cos(lat2)sin^2(dlon/2) bounds dlon for anything within the radius.
        max_abs_lat = min(90.0, abs(center.lat) + lat_reach_deg)
        cos_lat = math.cos(math.radians(max_abs_lat))
        if cos_lat <= 1e-12:
            return None
        ratio = math.sin(min(math.pi / 2, radius_m / (2 * EARTH_RADIUS_M))) / cos_lat
        if ratio >= 1.0:
            return None
        return math.degrees(2 * math.asin(ratio))

    def _candidates(self, center: GeoPoint, radius_m: float) -> list[_Entry[T]]:
        lat_reach = math.degrees(radius_m / EARTH_RADIUS_M)
        lon_reach = self._lon_reach_deg(center, radius_m, lat_reach)
        if lon_reach is None or center.lon - lon_reach < -180 or center.lon + lon_reach > 180:
            return self._entries

        lat_lo, lon_lo = self._cell_key(center.lat - lat_reach, center.lon - lon_reach)
        lat_hi, lon_hi = self._cell_key(center.lat + lat_reach, center.lon + lon_reach)
        if (lat_hi - lat_lo + 1) * (lon_hi - lon_lo + 1) > len(self._cells):
            return self._entries

        out: list[_Entry[T]] = []
        for i in range(lat_lo, lat_hi + 1):
            for j in range(lon_lo, lon_hi + 1):
                cell = self._cells.get((i, j))
                if cell:
                    out.extend(cell)
        return out

    def query_within(self, center: GeoPoint, radius_m: float) -> list[tuple[T, float]]:
        """Return `(item, distance_m)` for every item within `radius_m` (unordered)."""
        r = float(radius_m)
        if r < 0 or not self._entries:
            return []

        out: list[tuple[T, float]] = []
        for e in self._candidates(center, r):
            d = haversine_m(center, e.point)
            if d <= r:
                out.append((e.item, d))
        return out
