"""
Service wiring for the API process.

One `ProximityServices` bundle per app instance: a catalog store over the JSON catalog,
the session tracker, the shared discovery engine and the push notifier. Tests build
their own bundle with a stub provider and an injected clock.
"""

from __future__ import annotations

from dataclasses import dataclass

from sugvoyage.catalog.loader import JsonFileCatalog
from sugvoyage.catalog.store import CatalogProvider, CatalogStore
from sugvoyage.config.settings import Settings
from sugvoyage.core.time import Clock, utc_now
from sugvoyage.proximity.cooldown import CooldownGate
from sugvoyage.proximity.emitter import DiscoveryEngine, PushNotifier
from sugvoyage.proximity.tracker import LocationTracker


@dataclass
class ProximityServices:
    settings: Settings
    catalog: CatalogStore
    tracker: LocationTracker
    engine: DiscoveryEngine
    notifier: PushNotifier
    clock: Clock = utc_now


def build_services(
    settings: Settings,
    *,
    provider: CatalogProvider | None = None,
    clock: Clock = utc_now,
) -> ProximityServices:
    catalog = CatalogStore(
        provider or JsonFileCatalog(settings.catalog.path),
        refresh_seconds=settings.catalog.refresh_seconds,
        fetch_timeout_seconds=settings.catalog.fetch_timeout_seconds,
        cell_size_m=settings.proximity.grid_cell_size_m,
        clock=clock,
    )
    tracker = LocationTracker(clock=clock)
    engine = DiscoveryEngine(
        tracker=tracker,
        catalog=catalog,
        gate=CooldownGate.from_seconds(settings.proximity.cooldown_seconds),
        clock=clock,
    )
    notifier = PushNotifier(
        engine,
        default_radius_m=settings.proximity.default_radius_m,
        max_spots_in_payload=settings.proximity.max_spots_in_payload,
    )
    return ProximityServices(settings=settings, catalog=catalog, tracker=tracker, engine=engine, notifier=notifier, clock=clock)
