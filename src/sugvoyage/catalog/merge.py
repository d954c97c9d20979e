"""
Catalog merging.

Spot exports come from several places (scrapers, manual CSV sheets, database dumps) and
the same attraction often appears twice under different ids. An incoming row is treated
as the same spot as an existing one when the normalized names match and the two points
are within `dedupe_radius_m` of each other.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Iterable, Literal

from pydantic import ValidationError

from sugvoyage.core.geo import haversine_m
from sugvoyage.domain.models import Spot

MergeMode = Literal["keep-existing", "overwrite"]


@dataclass
class MergeStats:
    added: int = 0
    updated: int = 0
    skipped: int = 0
    bad: int = 0


def normalize_name(name: str) -> str:
    t = str(name or "").strip().lower()
    t = re.sub(r"[\s\-_/.,'()\[\]]+", " ", t)
    return re.sub(r"\s+", " ", t).strip()


def _find_duplicate(incoming: Spot, existing: Iterable[Spot], radius_m: float) -> Spot | None:
    key = normalize_name(incoming.name)
    for cur in existing:
        if normalize_name(cur.name) != key:
            continue
        if haversine_m(incoming.location, cur.location) <= radius_m:
            return cur
    return None


def merge_spots(
    existing: list[Spot],
    rows: Iterable[dict[str, Any]],
    *,
    mode: MergeMode = "keep-existing",
    dedupe_radius_m: float = 40.0,
) -> tuple[list[Spot], MergeStats]:
    """Merge raw spot rows into `existing`; returns the new catalog (existing order first)."""
    by_id: dict[str, Spot] = {s.id: s for s in existing}
    stats = MergeStats()

    for row in rows:
        try:
            incoming = Spot.model_validate(row)
        except ValidationError:
            stats.bad += 1
            continue

        target = by_id.get(incoming.id)
        if target is None and dedupe_radius_m > 0:
            target = _find_duplicate(incoming, by_id.values(), dedupe_radius_m)

        if target is None:
            by_id[incoming.id] = incoming
            stats.added += 1
        elif mode == "overwrite":
            merged = incoming.model_copy(
                update={"id": target.id, "metadata": {**target.metadata, **incoming.metadata}}
            )
            by_id[target.id] = merged
            stats.updated += 1
        else:
            stats.skipped += 1

    return list(by_id.values()), stats
