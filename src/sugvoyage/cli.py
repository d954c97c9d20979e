"""
SugVoyage CLI entrypoint.

Local tooling around the proximity engine:
- `distance`: haversine distance between two points.
- `nearby`: one-shot radius filter against the local JSON catalog.
- `watch`: run the poll notifier against the spots API and print discoveries.
- `serve`: start the API server (uvicorn).
"""

from __future__ import annotations

import argparse
import asyncio
import json
from typing import Any
from uuid import uuid4

from sugvoyage.catalog.loader import HttpCatalog, load_spots
from sugvoyage.catalog.store import CatalogStore
from sugvoyage.config.settings import get_settings
from sugvoyage.core.geo import GeoPoint, haversine_m
from sugvoyage.core.logging import configure_logging
from sugvoyage.core.time import to_local
from sugvoyage.domain.models import DiscoveryEvent
from sugvoyage.proximity.cooldown import CooldownGate
from sugvoyage.proximity.emitter import DiscoveryEngine, PollNotifier
from sugvoyage.proximity.errors import InvalidPosition
from sugvoyage.proximity.radius import recommend_nearby
from sugvoyage.proximity.tracker import LocationTracker


def _cmd_distance(args: argparse.Namespace) -> int:
    a = GeoPoint(lat=args.lat1, lon=args.lon1)
    b = GeoPoint(lat=args.lat2, lon=args.lon2)
    print(f"{haversine_m(a, b):.1f}")
    return 0


def _cmd_nearby(args: argparse.Namespace) -> int:
    """Handle the `nearby` subcommand."""
    settings = get_settings()
    radius = settings.proximity.default_radius_m if args.radius is None else float(args.radius)
    center = GeoPoint(lat=args.lat, lon=args.lon)
    spots = load_spots(args.catalog or settings.catalog.path)

    use_fallback = args.fallback or settings.recommendations.fallback_enabled
    result = recommend_nearby(
        center,
        radius,
        spots,
        fallback_limit=settings.recommendations.fallback_limit if use_fallback else None,
    )

    if args.json:
        print(json.dumps(result.model_dump(mode="json"), ensure_ascii=False, indent=2))
        return 0

    if result.has_no_spot_nearby:
        print(f"No spots within {radius:.0f}m.")
        if result.matches:
            print("Showing popular spots instead:")
    for i, m in enumerate(result.matches, start=1):
        print(f"{i:>2}. {m.spot.name} [{m.spot.category}]  {m.distance_m:,.0f}m")
    return 0


def _print_discovery(event: DiscoveryEvent, tz_name: str) -> None:
    stamp = to_local(event.triggered_at, tz_name).strftime("%H:%M:%S")
    print(f"[{stamp}] {event.message} Nearest: {event.nearest.spot.name} ({event.nearest.distance_m:.0f}m)")


async def _watch(args: argparse.Namespace) -> int:
    settings = get_settings()
    store = CatalogStore(
        HttpCatalog(args.url or settings.catalog.api_url, timeout_seconds=settings.catalog.fetch_timeout_seconds),
        refresh_seconds=settings.catalog.refresh_seconds,
        fetch_timeout_seconds=settings.catalog.fetch_timeout_seconds,
        cell_size_m=settings.proximity.grid_cell_size_m,
    )
    engine = DiscoveryEngine(
        tracker=LocationTracker(),
        catalog=store,
        gate=CooldownGate.from_seconds(settings.proximity.cooldown_seconds),
    )
    poller = PollNotifier(
        engine,
        f"cli-{uuid4().hex[:8]}",
        lambda event: _print_discovery(event, settings.app.timezone),
        interval_seconds=settings.proximity.poll_interval_seconds,
    )
    radius = settings.proximity.default_radius_m if args.radius is None else float(args.radius)
    if not poller.update_position(args.lat, args.lon, radius):
        return 2

    print(f"Watching {args.lat:.5f},{args.lon:.5f} r={radius:.0f}m every {poller.interval_seconds:g}s (Ctrl+C to stop)")
    try:
        if args.ticks:
            for _ in range(int(args.ticks)):
                await asyncio.sleep(poller.interval_seconds)
                await poller.tick()
        else:
            await poller.start()
    finally:
        poller.stop()
    return 0


def _cmd_watch(args: argparse.Namespace) -> int:
    try:
        return asyncio.run(_watch(args))
    except KeyboardInterrupt:
        return 0


def _cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    uvicorn.run("sugvoyage.api.app:app", host=args.host, port=int(args.port), reload=bool(args.reload))
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the SugVoyage CLI."""
    parser = argparse.ArgumentParser(prog="sugvoyage")
    sub = parser.add_subparsers(dest="command", required=True)

    dist = sub.add_parser("distance", help="Great-circle distance in meters between two points.")
    dist.add_argument("lat1", type=float)
    dist.add_argument("lon1", type=float)
    dist.add_argument("lat2", type=float)
    dist.add_argument("lon2", type=float)
    dist.set_defaults(func=_cmd_distance)

    near = sub.add_parser("nearby", help="List catalog spots within a radius, nearest first.")
    near.add_argument("--lat", required=True, type=float)
    near.add_argument("--lon", required=True, type=float)
    near.add_argument("--radius", type=float, default=None, help="Meters (default: proximity.default_radius_m)")
    near.add_argument("--catalog", type=str, default=None, help="Catalog JSON path (default: catalog.path)")
    near.add_argument("--fallback", action="store_true", help="Show the first N spots when none are in range")
    near.add_argument("--json", action="store_true", help="Output machine-readable JSON")
    near.set_defaults(func=_cmd_nearby)

    watch = sub.add_parser("watch", help="Poll the spots API and print discoveries for a fixed position.")
    watch.add_argument("--lat", required=True, type=float)
    watch.add_argument("--lon", required=True, type=float)
    watch.add_argument("--radius", type=float, default=None)
    watch.add_argument("--url", type=str, default=None, help="Spots API URL (default: catalog.api_url)")
    watch.add_argument("--ticks", type=int, default=None, help="Stop after N polls (default: run until Ctrl+C)")
    watch.set_defaults(func=_cmd_watch)

    srv = sub.add_parser("serve", help="Run the API + WebSocket server.")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)
    srv.add_argument("--reload", action="store_true")
    srv.set_defaults(func=_cmd_serve)
    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint callable used by `python -m sugvoyage.cli`."""
    configure_logging()
    parser = build_parser()
    args = parser.parse_args(argv)
    func: Any = getattr(args, "func")
    try:
        return int(func(args))
    except InvalidPosition as e:
        parser.error(str(e))
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
