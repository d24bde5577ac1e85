"""
Notification De-duplicator.

Tracks the identities that have an outstanding "connected" notification, so
an identity is never announced twice before it has been announced gone.
Filtering and recording are separate steps: a poll cycle decides which events
to fire first and records them only once the cycle has gone through, so a
failed cycle leaves the set untouched.
"""

from __future__ import annotations

from typing import FrozenSet, Iterable, List


class NotificationTracker:
    """
    The Notified Set.

    Not thread-safe on its own: the poll context is its only writer, and
    readers get ``snapshot()`` copies.
    """

    def __init__(self):
        self._notified: set[str] = set()

    def __contains__(self, identity: object) -> bool:
        return identity in self._notified

    def __len__(self) -> int:
        return len(self._notified)

    def snapshot(self) -> FrozenSet[str]:
        return frozenset(self._notified)

    def filter_added(self, identities: Iterable[str]) -> List[str]:
        """Identities that should fire a connect event (not yet notified)."""
        to_connect: List[str] = []
        for identity in identities:
            if identity in self._notified or identity in to_connect:
                continue
            to_connect.append(identity)
        return to_connect

    def filter_removed(self, identities: Iterable[str]) -> List[str]:
        """Identities that should fire a disconnect event: all of them."""
        return list(identities)

    def record(self, connected: Iterable[str], removed: Iterable[str]) -> None:
        """Commit a cycle: connected identities enter, removed ones are evicted."""
        self._notified.update(connected)
        self._notified.difference_update(removed)

    def clear(self) -> None:
        self._notified.clear()


__all__ = ["NotificationTracker"]
