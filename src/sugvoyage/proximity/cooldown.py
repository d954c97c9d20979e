"""
Discovery cooldown.

A session may receive at most one discovery per cooldown window. Both notifier variants
go through the same `CooldownGate`, so they cannot disagree about when a session is due.

`should_notify` / `mark_notified` are not atomic on their own; callers must hold the
session's lock from the tracker across the check and the mark.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from sugvoyage.domain.models import UserSession


def should_notify(session: UserSession, now: datetime, cooldown: timedelta) -> bool:
    """True iff the session was never notified or the cooldown has fully elapsed."""
    if not session.active:
        return False
    if session.last_notified_at is None:
        return True
    return now - session.last_notified_at >= cooldown


def mark_notified(session: UserSession, now: datetime) -> None:
    """Record a delivered notification; no-op for removed sessions."""
    if not session.active:
        return
    session.last_notified_at = now


@dataclass(frozen=True)
class CooldownGate:
    cooldown: timedelta = timedelta(seconds=5)

    @classmethod
    def from_seconds(cls, seconds: float) -> "CooldownGate":
        return cls(cooldown=timedelta(seconds=float(seconds)))

    def should_notify(self, session: UserSession, now: datetime) -> bool:
        return should_notify(session, now, self.cooldown)

    def mark_notified(self, session: UserSession, now: datetime) -> None:
        mark_notified(session, now)
