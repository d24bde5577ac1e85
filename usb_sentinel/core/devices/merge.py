"""
Merge Engine - one canonical device mapping per scan instant.

Provider results are folded in priority order with last-write-wins on
identity. Replacement is whole-record: the later provider's record fully
supersedes the earlier one, fields are never combined. Two sources that
report the same physical device under different identities are therefore
not unified, and the device appears twice.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Iterable, Mapping, Sequence

from usb_sentinel.core.logging_utils import get_module_logger
from .types import DeviceRecord

logger = get_module_logger("MergeEngine")

CanonicalMapping = Mapping[str, DeviceRecord]

EMPTY_MAPPING: CanonicalMapping = MappingProxyType({})


def merge_scans(scans: Iterable[Sequence[DeviceRecord]]) -> CanonicalMapping:
    """Fold provider outputs (lowest priority first) into a read-only mapping.

    The result preserves first-insertion order of identities, so iteration is
    stable for identical inputs.
    """
    merged: dict[str, DeviceRecord] = {}

    for devices in scans:
        for device in devices:
            previous = merged.get(device.identity)
            if previous is not None and previous != device:
                logger.debug(
                    "Record for %s superseded: %s -> %s",
                    device.identity,
                    previous.product_name,
                    device.product_name,
                )
            merged[device.identity] = device

    return MappingProxyType(merged)


__all__ = ["CanonicalMapping", "EMPTY_MAPPING", "merge_scans"]
