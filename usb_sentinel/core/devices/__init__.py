"""
Device reconciliation for USB Sentinel.

Providers enumerate what is attached, the reconciler merges and diffs their
results once per poll cycle, and the monitor delivers connect/disconnect
events to listeners on a serialized callback context.
"""

from .types import (
    UNKNOWN,
    UNKNOWN_DEVICE,
    UNKNOWN_MANUFACTURER,
    DeviceRecord,
    classify_usb_class,
    format_capacity,
    format_vid_pid,
    synthesize_identity,
)

from .events import (
    CallbackListener,
    DeviceConnectedEvent,
    DeviceDisconnectedEvent,
    DeviceEvent,
    DeviceEventListener,
)

from .providers import (
    DEFAULT_PROVIDER_ORDER,
    DeviceSourceProvider,
    LibUSBProvider,
    SerialPortProvider,
    WMIProvider,
    build_providers,
)

from .merge import CanonicalMapping, merge_scans
from .changes import DeviceChanges, diff_snapshots
from .notifications import NotificationTracker
from .reconciler import CyclePlan, DeviceReconciler
from .dispatcher import (
    CallbackExecutor,
    EventDispatcher,
    ListenerRegistry,
    LoopCallbackExecutor,
    ThreadCallbackExecutor,
)
from .monitor import MonitorState, USBMonitor

__all__ = [
    # Device records
    "UNKNOWN",
    "UNKNOWN_DEVICE",
    "UNKNOWN_MANUFACTURER",
    "DeviceRecord",
    "classify_usb_class",
    "format_capacity",
    "format_vid_pid",
    "synthesize_identity",
    # Events
    "CallbackListener",
    "DeviceConnectedEvent",
    "DeviceDisconnectedEvent",
    "DeviceEvent",
    "DeviceEventListener",
    # Providers
    "DEFAULT_PROVIDER_ORDER",
    "DeviceSourceProvider",
    "LibUSBProvider",
    "SerialPortProvider",
    "WMIProvider",
    "build_providers",
    # Reconciliation
    "CanonicalMapping",
    "merge_scans",
    "DeviceChanges",
    "diff_snapshots",
    "NotificationTracker",
    "CyclePlan",
    "DeviceReconciler",
    # Dispatch
    "CallbackExecutor",
    "EventDispatcher",
    "ListenerRegistry",
    "LoopCallbackExecutor",
    "ThreadCallbackExecutor",
    # Monitor
    "MonitorState",
    "USBMonitor",
]
