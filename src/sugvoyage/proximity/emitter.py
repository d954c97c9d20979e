"""
Discovery notifiers.

`DiscoveryEngine` runs one discovery cycle for one session:

    snapshot = catalog.current()           # CatalogUnavailable -> skip
    matches  = snapshot.within(position, radius)
    with session lock:
        if cooldown allows: deliver(event); mark_notified

Two front-ends share it and differ only in trigger and transport:

- `PushNotifier` (server): a cycle runs on every location report; events go out over the
  session's connection. A failed send counts as a disconnect.
- `PollNotifier` (client): a cycle runs on a fixed timer against the last known position;
  events go to a local `on_discovery` callback.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Protocol

from sugvoyage.catalog.store import CatalogStore
from sugvoyage.core.geo import GeoPoint
from sugvoyage.core.time import Clock, utc_now
from sugvoyage.domain.models import DiscoveryEvent, DiscoveryPayload
from sugvoyage.proximity.cooldown import CooldownGate
from sugvoyage.proximity.errors import CatalogUnavailable, InvalidPosition, TransportFailure
from sugvoyage.proximity.tracker import LocationTracker

logger = logging.getLogger(__name__)

Deliver = Callable[[DiscoveryEvent], Awaitable[None]]


class Transport(Protocol):
    async def send(self, payload: DiscoveryPayload) -> None: ...


class DiscoveryEngine:
    def __init__(
        self,
        *,
        tracker: LocationTracker,
        catalog: CatalogStore,
        gate: CooldownGate,
        clock: Clock = utc_now,
    ):
        self.tracker = tracker
        self.catalog = catalog
        self.gate = gate
        self._clock = clock

    async def run_cycle(self, session_id: str, deliver: Deliver) -> DiscoveryEvent | None:
        """Run one cycle; returns the delivered event, or None if nothing was sent."""
        session = self.tracker.get_session(session_id)
        if session is None:
            return None

        try:
            snapshot = await self.catalog.current()
        except CatalogUnavailable as e:
            logger.warning("Skipping discovery cycle for %s: %s", session_id, e)
            return None

        matches = snapshot.within(session.last_position, session.radius_m)
        if not matches:
            return None

        try:
            lock = self.tracker.lock_for(session_id)
        except LookupError:
            return None

        async with lock:
            # The session may have been removed (or replaced) while the catalog was loading.
            if self.tracker.get_session(session_id) is not session or not session.active:
                return None
            now = self._clock()
            if not self.gate.should_notify(session, now):
                return None
            event = DiscoveryEvent(session_id=session_id, matches=matches, triggered_at=now)
            await deliver(event)
            self.gate.mark_notified(session, now)

        logger.info(
            "Discovery for %s: %d spot(s), nearest %s (%.0fm)",
            session_id,
            event.count,
            event.nearest.spot.name,
            event.nearest.distance_m,
        )
        return event


class PushNotifier:
    """Server-side notifier: one transport per connected session."""

    def __init__(self, engine: DiscoveryEngine, *, default_radius_m: float = 1000, max_spots_in_payload: int = 5):
        self.engine = engine
        self.default_radius_m = float(default_radius_m)
        self.max_spots_in_payload = int(max_spots_in_payload)
        self._transports: dict[str, Transport] = {}

    @property
    def tracker(self) -> LocationTracker:
        return self.engine.tracker

    def connect(self, session_id: str, transport: Transport) -> None:
        self._transports[session_id] = transport

    def disconnect(self, session_id: str) -> None:
        """Stop all future cycles for the session and release it (idempotent)."""
        self._transports.pop(session_id, None)
        self.tracker.remove_session(session_id)

    def is_connected(self, session_id: str) -> bool:
        return session_id in self._transports

    async def handle_report(
        self, session_id: str, latitude: float, longitude: float, radius_m: float | None = None
    ) -> DiscoveryEvent | None:
        """Record a location report, then run a discovery cycle for the session."""
        if session_id not in self._transports:
            return None
        radius = self.default_radius_m if radius_m is None else radius_m
        try:
            position = GeoPoint(lat=float(latitude), lon=float(longitude))
            self.tracker.update_position(session_id, position, radius)
        except (InvalidPosition, TypeError, ValueError) as e:
            logger.warning("Rejected location report from %s: %s", session_id, e)
            return None

        async def deliver(event: DiscoveryEvent) -> None:
            transport = self._transports.get(session_id)
            if transport is None:
                raise TransportFailure(f"no transport for session {session_id}")
            try:
                await transport.send(event.to_payload(self.max_spots_in_payload))
            except TransportFailure:
                raise
            except Exception as e:
                raise TransportFailure(str(e)) from e

        try:
            return await self.engine.run_cycle(session_id, deliver)
        except TransportFailure as e:
            logger.info("Delivery to %s failed (%s); dropping session", session_id, e)
            self.disconnect(session_id)
            return None


DiscoveryCallback = Callable[[DiscoveryEvent], Any]


class PollNotifier:
    """Client-side notifier: re-checks the last known position every `interval_seconds`."""

    def __init__(
        self,
        engine: DiscoveryEngine,
        session_id: str,
        on_discovery: DiscoveryCallback,
        *,
        interval_seconds: float = 5,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self.engine = engine
        self.session_id = session_id
        self.on_discovery = on_discovery
        self.interval_seconds = float(interval_seconds)
        self._task: asyncio.Task[None] | None = None
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def update_position(self, latitude: float, longitude: float, radius_m: float) -> bool:
        """Feed a geolocation fix; returns False (and keeps the old position) if invalid."""
        if self._stopped:
            return False
        try:
            position = GeoPoint(lat=float(latitude), lon=float(longitude))
            self.engine.tracker.update_position(self.session_id, position, radius_m)
        except (InvalidPosition, TypeError, ValueError) as e:
            logger.warning("Ignoring invalid position for %s: %s", self.session_id, e)
            return False
        return True

    async def _deliver(self, event: DiscoveryEvent) -> None:
        try:
            result = self.on_discovery(event)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("on_discovery callback failed for %s", self.session_id)

    async def tick(self) -> DiscoveryEvent | None:
        """Run one cycle now (the timer loop calls this)."""
        if self._stopped:
            return None
        return await self.engine.run_cycle(self.session_id, self._deliver)

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.tick()
            except Exception:
                logger.exception("Discovery tick failed for %s", self.session_id)

    def start(self) -> asyncio.Task[None]:
        """Start the timer loop on the running event loop (idempotent)."""
        if self._stopped:
            raise RuntimeError(f"poll notifier for {self.session_id} is stopped")
        if not self.running:
            self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    def stop(self) -> None:
        """Cancel the timer and release the session; no discovery fires afterwards."""
        self._stopped = True
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self.engine.tracker.remove_session(self.session_id)
