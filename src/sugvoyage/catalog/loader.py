"""
Spot catalog providers.

A provider is anything with `get_all_spots() -> list[Spot]` (sync or async). Two ship here:

- `JsonFileCatalog`: a local JSON export of the spots collection (default:
  `data/catalogs/spots.json`), used by the API server.
- `HttpCatalog`: the `/api/spots` endpoint, used by the poll client.

Both accept either a bare list of spot documents or the API envelope `{"data": [...]}`.
Documents that fail validation (missing name, coordinates out of range, ...) are skipped
with a warning rather than failing the whole catalog.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import TypeAdapter, ValidationError

from sugvoyage.core import http
from sugvoyage.core.env import resolve_project_path
from sugvoyage.domain.models import Spot

logger = logging.getLogger(__name__)

_SPOT_ADAPTER = TypeAdapter(Spot)


def parse_spots_payload(payload: Any) -> list[Spot]:
    """Validate a decoded catalog payload into spots (skipping invalid documents)."""
    if isinstance(payload, dict):
        payload = payload.get("data", [])
    if not isinstance(payload, list):
        raise ValueError(f"Catalog payload must be a list of spots, got {type(payload).__name__}")

    spots: list[Spot] = []
    for i, doc in enumerate(payload):
        try:
            spots.append(_SPOT_ADAPTER.validate_python(doc))
        except ValidationError as e:
            logger.warning("Skipping invalid catalog entry #%d: %s", i, e.errors()[0].get("msg"))
    return spots


def load_spots(path: str | Path) -> list[Spot]:
    """Load and validate a spot catalog JSON file."""
    resolved = resolve_project_path(path)
    payload = json.loads(resolved.read_text(encoding="utf-8"))
    return parse_spots_payload(payload)


class JsonFileCatalog:
    def __init__(self, path: str | Path):
        self.path = resolve_project_path(path)

    def get_all_spots(self) -> list[Spot]:
        return load_spots(self.path)


class HttpCatalog:
    def __init__(self, url: str, *, timeout_seconds: float = 3):
        self.url = url
        self.timeout_seconds = timeout_seconds

    def get_all_spots(self) -> list[Spot]:
        logger.info("Fetching spot catalog from %s", self.url)
        payload = http.get_json(self.url, timeout_seconds=self.timeout_seconds)
        return parse_spots_payload(payload)
