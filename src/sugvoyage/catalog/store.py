"""
Catalog snapshots.

Discovery cycles read the catalog through a `CatalogStore`:

- The current catalog is an immutable `CatalogSnapshot` (tuple of spots + grid index).
  A refresh builds a new snapshot and swaps the reference; a cycle that already holds a
  snapshot never sees a half-updated catalog.
- Concurrent cycles that find the snapshot stale share one in-flight fetch.
- Every wait on a fetch is bounded by `fetch_timeout_seconds`. A failed or slow fetch
  raises `CatalogUnavailable`; the caller skips the cycle.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Iterable, Protocol

from sugvoyage.core.geo import GeoPoint
from sugvoyage.core.spatial_index import SpatialGridIndex
from sugvoyage.core.time import Clock, utc_now
from sugvoyage.domain.models import Spot, SpotMatch
from sugvoyage.proximity.errors import CatalogUnavailable

logger = logging.getLogger(__name__)


class CatalogProvider(Protocol):
    def get_all_spots(self) -> Any: ...


@dataclass(frozen=True)
class CatalogSnapshot:
    spots: tuple[Spot, ...]
    fetched_at: datetime
    cell_size_m: float = 1200.0
    _index: SpatialGridIndex[tuple[int, Spot]] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        index = SpatialGridIndex(
            list(enumerate(self.spots)),
            get_point=lambda pair: pair[1].location,
            cell_size_m=self.cell_size_m,
        )
        object.__setattr__(self, "_index", index)

    @classmethod
    def build(cls, spots: Iterable[Spot], *, fetched_at: datetime, cell_size_m: float = 1200.0) -> "CatalogSnapshot":
        return cls(spots=tuple(spots), fetched_at=fetched_at, cell_size_m=cell_size_m)

    def __len__(self) -> int:
        return len(self.spots)

    def within(self, center: GeoPoint, radius_m: float) -> list[SpotMatch]:
        """Same result as `filter_in_radius(center, radius_m, self.spots)`, via the grid index."""
        hits = self._index.query_within(center, radius_m)
        hits.sort(key=lambda h: (h[1], h[0][0]))
        return [SpotMatch(spot=pair[1], distance_m=d) for pair, d in hits]


class CatalogStore:
    def __init__(
        self,
        provider: CatalogProvider,
        *,
        refresh_seconds: float = 60,
        fetch_timeout_seconds: float = 3,
        cell_size_m: float = 1200.0,
        clock: Clock = utc_now,
    ):
        self._provider = provider
        self._refresh = timedelta(seconds=float(refresh_seconds))
        self._timeout = float(fetch_timeout_seconds)
        self._cell_size_m = float(cell_size_m)
        self._clock = clock
        self._snapshot: CatalogSnapshot | None = None
        self._inflight: asyncio.Future[CatalogSnapshot] | None = None

    @property
    def snapshot(self) -> CatalogSnapshot | None:
        """The last successfully fetched snapshot (may be stale)."""
        return self._snapshot

    def replace(self, spots: Iterable[Spot]) -> CatalogSnapshot:
        """Swap in a new snapshot built from `spots`."""
        snap = CatalogSnapshot.build(spots, fetched_at=self._clock(), cell_size_m=self._cell_size_m)
        self._snapshot = snap
        return snap

    def _is_fresh(self, snap: CatalogSnapshot) -> bool:
        if self._refresh <= timedelta(0):
            return False
        return self._clock() - snap.fetched_at < self._refresh

    async def _fetch(self) -> CatalogSnapshot:
        getter = self._provider.get_all_spots
        if inspect.iscoroutinefunction(getter):
            spots = await getter()
        else:
            spots = await asyncio.to_thread(getter)
        snap = self.replace(spots)
        logger.debug("Catalog refreshed: %d spots", len(snap))
        return snap

    @staticmethod
    def _log_orphaned_failure(fut: asyncio.Future) -> None:
        # Retrieve the exception so a fetch abandoned by a timed-out waiter is not reported as unhandled.
        if fut.cancelled():
            return
        exc = fut.exception()
        if exc is not None:
            logger.debug("Catalog fetch failed: %s", exc)

    async def current(self) -> CatalogSnapshot:
        """Return a fresh snapshot, refreshing if needed.

        Raises:
            CatalogUnavailable: the fetch failed or did not finish within the timeout.
        """
        snap = self._snapshot
        if snap is not None and self._is_fresh(snap):
            return snap

        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.ensure_future(self._fetch())
            self._inflight.add_done_callback(self._log_orphaned_failure)

        try:
            return await asyncio.wait_for(asyncio.shield(self._inflight), timeout=self._timeout)
        except asyncio.TimeoutError as e:
            raise CatalogUnavailable(f"catalog fetch timed out after {self._timeout:.1f}s") from e
        except CatalogUnavailable:
            raise
        except Exception as e:
            raise CatalogUnavailable(f"catalog fetch failed: {e}") from e
