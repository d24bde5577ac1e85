"""Change Detector - identity-level diff between two canonical mappings."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Tuple

from .types import DeviceRecord


@dataclass(frozen=True)
class DeviceChanges:
    """Identities that appeared and disappeared between two snapshots."""
    added: Tuple[str, ...] = ()
    removed: Tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.added and not self.removed


def diff_snapshots(
    previous: Mapping[str, DeviceRecord],
    current: Mapping[str, DeviceRecord],
) -> DeviceChanges:
    """Compare by identity only.

    A device whose fields changed but whose identity did not is not a
    change. ``added`` follows the iteration order of ``current`` and
    ``removed`` that of ``previous``.
    """
    added = tuple(identity for identity in current if identity not in previous)
    removed = tuple(identity for identity in previous if identity not in current)
    return DeviceChanges(added=added, removed=removed)


__all__ = ["DeviceChanges", "diff_snapshots"]
