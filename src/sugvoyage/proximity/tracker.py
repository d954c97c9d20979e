"""
Location tracker: the session store.

Each observer (a WebSocket connection, or one poll client) gets a `UserSession` keyed by
session id. Lifecycle: Unregistered -> Active (first `update_position`) -> Removed
(`remove_session`). A removed session object is never reused; a later update with the
same id creates a fresh session.

The tracker also hands out one `asyncio.Lock` per session; the discovery cycle holds it
across "should notify -> deliver -> mark notified".
"""

from __future__ import annotations

import asyncio
import logging
import math

from sugvoyage.core.geo import GeoPoint
from sugvoyage.core.time import Clock, utc_now
from sugvoyage.domain.models import UserSession
from sugvoyage.proximity.errors import InvalidPosition, SessionNotFound

logger = logging.getLogger(__name__)


class LocationTracker:
    def __init__(self, *, clock: Clock = utc_now):
        self._clock = clock
        self._sessions: dict[str, UserSession] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def update_position(self, session_id: str, position: GeoPoint, radius_m: float) -> UserSession:
        """Upsert the session's position and radius; creates the session on first report."""
        radius = float(radius_m)
        if not math.isfinite(radius) or radius < 0:
            raise InvalidPosition(f"radius must be a finite value >= 0, got {radius_m!r}")

        session = self._sessions.get(session_id)
        if session is None:
            session = UserSession(
                session_id=session_id,
                last_position=position,
                radius_m=radius,
                created_at=self._clock(),
            )
            self._sessions[session_id] = session
            self._locks[session_id] = asyncio.Lock()
            logger.debug("Session %s registered at %.5f,%.5f r=%.0fm", session_id, position.lat, position.lon, radius)
            return session

        session.last_position = position
        session.radius_m = radius
        return session

    def get_session(self, session_id: str) -> UserSession | None:
        return self._sessions.get(session_id)

    def lock_for(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            raise SessionNotFound(session_id)
        return lock

    def remove_session(self, session_id: str) -> bool:
        """Drop the session; returns False if it was already gone."""
        session = self._sessions.pop(session_id, None)
        self._locks.pop(session_id, None)
        if session is None:
            return False
        session.active = False
        logger.debug("Session %s removed", session_id)
        return True

