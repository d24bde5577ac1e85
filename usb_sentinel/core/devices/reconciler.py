"""
Device Reconciler - merge, diff and de-duplicate one poll cycle.

The reconciler owns the previous snapshot and the Notified Set. A cycle is
split in two steps so that nothing is recorded unless the whole cycle
succeeds:

    plan = reconciler.plan(scans)      # pure: merge + diff + de-dup
    dispatcher.dispatch(plan.events)   # hand events to listeners
    reconciler.commit(plan)            # publish snapshot, record notifications
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Sequence, Tuple

from usb_sentinel.core.logging_utils import get_module_logger
from .changes import DeviceChanges, diff_snapshots
from .events import DeviceConnectedEvent, DeviceDisconnectedEvent, DeviceEvent
from .merge import CanonicalMapping, EMPTY_MAPPING, merge_scans
from .notifications import NotificationTracker
from .types import DeviceRecord

logger = get_module_logger("DeviceReconciler")


@dataclass(frozen=True)
class CyclePlan:
    """Outcome of one poll cycle, not yet committed."""
    snapshot: CanonicalMapping
    changes: DeviceChanges
    connected: Tuple[str, ...]
    disconnected: Tuple[str, ...]
    events: Tuple[DeviceEvent, ...]
    priming: bool = False


class DeviceReconciler:
    """
    Turns provider scans into connect/disconnect events.

    Args:
        announce_existing: When False, the first cycle only records what is
            already attached; devices present at start-up are never
            announced as connected.
    """

    def __init__(self, announce_existing: bool = True):
        self._announce_existing = announce_existing
        self._previous: CanonicalMapping = EMPTY_MAPPING
        self._tracker = NotificationTracker()
        self._primed = False

    @property
    def snapshot(self) -> CanonicalMapping:
        """The last committed canonical mapping (read-only)."""
        return self._previous

    @property
    def notified(self) -> FrozenSet[str]:
        return self._tracker.snapshot()

    def plan(self, scans: Iterable[Sequence[DeviceRecord]]) -> CyclePlan:
        current = merge_scans(scans)
        previous = self._previous
        changes = diff_snapshots(previous, current)

        if not self._primed and not self._announce_existing:
            return CyclePlan(
                snapshot=current,
                changes=changes,
                connected=(),
                disconnected=(),
                events=(),
                priming=True,
            )

        connected = tuple(self._tracker.filter_added(changes.added))
        disconnected = tuple(self._tracker.filter_removed(changes.removed))

        events: list[DeviceEvent] = [
            DeviceConnectedEvent(current[identity]) for identity in connected
        ]
        events.extend(
            DeviceDisconnectedEvent(previous[identity]) for identity in disconnected
        )

        return CyclePlan(
            snapshot=current,
            changes=changes,
            connected=connected,
            disconnected=disconnected,
            events=tuple(events),
        )

    def commit(self, plan: CyclePlan) -> None:
        if plan.priming:
            logger.info("Primed with %d device(s) already attached", len(plan.snapshot))
        self._tracker.record(plan.connected, plan.changes.removed)
        self._previous = plan.snapshot
        self._primed = True

    def reconcile(self, scans: Iterable[Sequence[DeviceRecord]]) -> CyclePlan:
        """Plan and commit in one step."""
        plan = self.plan(scans)
        self.commit(plan)
        return plan

    def reset(self) -> None:
        """Forget every snapshot and notification (monitor shutdown)."""
        self._previous = EMPTY_MAPPING
        self._tracker.clear()
        self._primed = False


__all__ = ["CyclePlan", "DeviceReconciler"]
