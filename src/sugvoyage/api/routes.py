"""
API routes.

Endpoints:
- GET `/api/health`: active sessions + catalog snapshot status.
- GET `/api/settings`: public proximity settings for the frontends.
- GET `/api/spots`: catalog listing (optional `category` / `featured` filters).
- GET `/api/spots/nearby`: spots within a radius, nearest first (opt-in fallback).
- GET `/api/spots/{spot_id}`: one spot.
- WS  `/ws/discovery`: push channel; clients stream positions, the server pushes discoveries.
"""

from __future__ import annotations

import json
import logging
from uuid import uuid4

from fastapi import APIRouter, HTTPException, Request, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from sugvoyage.api.services import ProximityServices
from sugvoyage.catalog.store import CatalogSnapshot
from sugvoyage.core.geo import GeoPoint
from sugvoyage.domain.models import DiscoveryPayload, LocationReport
from sugvoyage.proximity.errors import CatalogUnavailable, InvalidPosition
from sugvoyage.proximity.radius import recommend_nearby

logger = logging.getLogger(__name__)

router = APIRouter()


def _services(request: Request) -> ProximityServices:
    return request.app.state.services


async def _snapshot(services: ProximityServices) -> CatalogSnapshot:
    try:
        return await services.catalog.current()
    except CatalogUnavailable as e:
        raise HTTPException(
            status_code=503,
            detail={"code": "CATALOG_UNAVAILABLE", "message": str(e)},
        ) from e


@router.get("/api/health")
def get_health(request: Request) -> dict:
    """Report live session count and the age of the current catalog snapshot."""
    services = _services(request)
    snap = services.catalog.snapshot
    return {
        "ok": True,
        "active_sessions": len(services.tracker),
        "catalog": {
            "spots": len(snap) if snap else 0,
            "age_seconds": round((services.clock() - snap.fetched_at).total_seconds(), 1) if snap else None,
        },
    }


@router.get("/api/settings")
def get_public_settings(request: Request) -> dict:
    """Return the knobs clients need (radius default, cooldown, poll interval)."""
    settings = _services(request).settings
    return {
        "app": {"name": settings.app.name, "timezone": settings.app.timezone},
        "proximity": settings.proximity.model_dump(mode="json"),
        "recommendations": settings.recommendations.model_dump(mode="json"),
    }


@router.get("/api/spots")
async def get_spots(request: Request, category: str | None = None, featured: bool = False) -> dict:
    """List catalog spots, optionally filtered by category (case-insensitive) or featured flag."""
    snap = await _snapshot(_services(request))
    spots = list(snap.spots)
    if category and category.strip().lower() != "all":
        needle = category.strip().lower()
        spots = [s for s in spots if needle in s.category]
    if featured:
        spots = [s for s in spots if s.metadata.get("featured") is True]
    return {"success": True, "count": len(spots), "data": [s.model_dump(mode="json") for s in spots]}


@router.get("/api/spots/nearby")
async def get_nearby_spots(
    request: Request,
    latitude: float,
    longitude: float,
    radius: float | None = None,
    fallback: bool | None = None,
) -> dict:
    """Spots within `radius` meters of the given point, nearest first.

    With `fallback=true` (or `recommendations.fallback_enabled`), an empty result is
    replaced by the first N catalog spots and `has_no_spot_nearby` is set.
    """
    services = _services(request)
    settings = services.settings
    radius_m = settings.proximity.default_radius_m if radius is None else radius
    use_fallback = settings.recommendations.fallback_enabled if fallback is None else fallback
    try:
        center = GeoPoint(lat=latitude, lon=longitude)
        if radius_m < 0:
            raise InvalidPosition(f"radius must be >= 0, got {radius_m}")
    except InvalidPosition as e:
        raise HTTPException(
            status_code=400,
            detail={"code": "VALIDATION_ERROR", "message": str(e)},
        ) from e

    snap = await _snapshot(services)
    result = recommend_nearby(
        center,
        radius_m,
        snap.spots,
        fallback_limit=settings.recommendations.fallback_limit if use_fallback else None,
    )
    return {
        "success": True,
        "count": len(result.matches),
        "radius_m": radius_m,
        "has_no_spot_nearby": result.has_no_spot_nearby,
        "data": [
            {**m.spot.model_dump(mode="json"), "distance_m": round(m.distance_m, 1)} for m in result.matches
        ],
    }


@router.get("/api/spots/{spot_id}")
async def get_spot(request: Request, spot_id: str) -> dict:
    snap = await _snapshot(_services(request))
    for spot in snap.spots:
        if spot.id == spot_id:
            return {"success": True, "data": spot.model_dump(mode="json")}
    raise HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": "Spot not found"})


class WebSocketTransport:
    """Push transport bound to one accepted WebSocket."""

    def __init__(self, websocket: WebSocket):
        self._websocket = websocket

    async def send(self, payload: DiscoveryPayload) -> None:
        await self._websocket.send_json(payload.model_dump(mode="json", by_alias=True))


@router.websocket("/ws/discovery")
async def discovery_socket(websocket: WebSocket) -> None:
    """Location in, discoveries out. Each connection is a fresh session."""
    services: ProximityServices = websocket.app.state.services
    notifier = services.notifier
    session_id = uuid4().hex

    await websocket.accept()
    notifier.connect(session_id, WebSocketTransport(websocket))
    try:
        await websocket.send_json({"event": "connected", "sessionId": session_id})
        while notifier.is_connected(session_id):
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000))
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            try:
                if raw is None:
                    raise ValueError(f"unsupported websocket message: {message['type']}")
                report = LocationReport.model_validate(json.loads(raw))
            except (ValueError, ValidationError) as e:
                logger.warning("Ignoring malformed location message from %s: %s", session_id, e)
                continue
            await notifier.handle_report(session_id, report.latitude, report.longitude, report.radius_m)
    except WebSocketDisconnect:
        logger.debug("Session %s disconnected", session_id)
    finally:
        notifier.disconnect(session_id)
