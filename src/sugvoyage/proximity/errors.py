"""
Proximity error taxonomy.

None of these escape the proximity package: notifiers catch them, log, and skip the
cycle. The only user-visible effect of any of them is a missing notification.
"""

from __future__ import annotations


class ProximityError(Exception):
    """Base class for proximity subsystem failures."""


class CatalogUnavailable(ProximityError):
    """The spot catalog could not be fetched (error or timeout)."""


class InvalidPosition(ProximityError, ValueError):
    """A reported position (or radius) is outside the valid range."""


class SessionNotFound(ProximityError, LookupError):
    """The referenced session was already removed or never registered."""

    def __init__(self, session_id: str):
        super().__init__(f"session not found: {session_id}")
        self.session_id = session_id


class TransportFailure(ProximityError):
    """Delivering a discovery to a session's connection failed."""
