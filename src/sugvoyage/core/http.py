"""
Outbound HTTP for the poll client.

`HttpCatalog` is the only caller: it pulls the spot list from the SugVoyage API once per
refresh window. Errors are not handled here; the catalog store turns any exception (or a
timeout) into a skipped discovery cycle.
"""

from __future__ import annotations

from typing import Any

import httpx

USER_AGENT = "sugvoyage-poll/0.1.0"


def get_json(url: str, *, timeout_seconds: float = 3, headers: dict[str, str] | None = None) -> Any:
    """Fetch `url` and decode the JSON body; raises `httpx.HTTPError` on non-2xx."""
    with httpx.Client(
        timeout=httpx.Timeout(timeout_seconds),
        headers={"User-Agent": USER_AGENT, "Accept": "application/json", **(headers or {})},
        follow_redirects=True,
    ) as client:
        resp = client.get(url)
        resp.raise_for_status()
        return resp.json()
