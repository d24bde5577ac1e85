"""
USB Monitor - the poll scheduler and public control surface.

One background thread runs a private asyncio event loop hosting the poll
task. Each cycle scans every provider in priority order, merges the results,
diffs them against the last published snapshot, filters the changes through
the Notified Set and hands the resulting events to the callback context.

State machine:

    STOPPED --initialize()--> RUNNING --cleanup()--> STOPPING --> STOPPED

Usage:
    monitor = USBMonitor(build_providers(["wmi", "libusb"]))
    monitor.subscribe(CallbackListener(on_connected=print))
    monitor.initialize()
    # ... later, from any thread ...
    monitor.cleanup()
"""

from __future__ import annotations

import asyncio
import threading
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from usb_sentinel.core.asyncio_utils import create_logged_task
from usb_sentinel.core.errors import MonitorStateError
from usb_sentinel.core.logging_utils import get_module_logger
from usb_sentinel.core.settings import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_SHUTDOWN_TIMEOUT,
    MonitorSettings,
)
from .dispatcher import CallbackExecutor, EventDispatcher, ListenerRegistry
from .events import DeviceConnectedEvent, DeviceEventListener
from .merge import CanonicalMapping, EMPTY_MAPPING
from .providers import DeviceSourceProvider, build_providers
from .reconciler import DeviceReconciler
from .types import DeviceRecord

logger = get_module_logger("USBMonitor")

_LOOP_START_TIMEOUT = 5.0


class MonitorState(Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    STOPPING = "stopping"


class USBMonitor:
    """
    Observes USB devices and raises connect/disconnect events once per transition.

    Args:
        providers: Enumeration backends, lowest priority first.
        poll_interval: Seconds to sleep between cycles.
        shutdown_timeout: Upper bound ``cleanup()`` waits for the poll thread.
        announce_existing: Fire connect events for devices attached at start.
        callback_executor: Serialized context for listener callbacks
            (a ThreadCallbackExecutor when omitted).
    """

    def __init__(
        self,
        providers: Sequence[DeviceSourceProvider],
        *,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT,
        announce_existing: bool = True,
        callback_executor: Optional[CallbackExecutor] = None,
    ):
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")

        self._providers: Tuple[DeviceSourceProvider, ...] = tuple(providers)
        self._poll_interval = poll_interval
        self._shutdown_timeout = shutdown_timeout

        self._reconciler = DeviceReconciler(announce_existing=announce_existing)
        self._registry = ListenerRegistry()
        self._dispatcher = EventDispatcher(self._registry, callback_executor)

        self._state = MonitorState.STOPPED
        self._state_lock = threading.Lock()

        # Guards the published snapshot and the hand-off of a cycle's events
        self._publish_lock = threading.Lock()
        self._published: CanonicalMapping = EMPTY_MAPPING
        self._run_id = 0

        self._thread: Optional[threading.Thread] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._wake: Optional[asyncio.Event] = None

    @classmethod
    def from_settings(
        cls,
        settings: MonitorSettings,
        *,
        providers: Optional[Sequence[DeviceSourceProvider]] = None,
        callback_executor: Optional[CallbackExecutor] = None,
    ) -> "USBMonitor":
        if providers is None:
            providers = build_providers(settings.providers, wmi_timeout=settings.wmi_timeout)
        return cls(
            providers,
            poll_interval=settings.poll_interval,
            shutdown_timeout=settings.shutdown_timeout,
            announce_existing=settings.announce_existing,
            callback_executor=callback_executor,
        )

    # =========================================================================
    # Properties
    # =========================================================================

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is MonitorState.RUNNING

    @property
    def providers(self) -> Tuple[DeviceSourceProvider, ...]:
        return self._providers

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    # =========================================================================
    # Listener registry
    # =========================================================================

    def subscribe(self, listener: DeviceEventListener) -> None:
        self._registry.subscribe(listener)

    def unsubscribe(self, listener: DeviceEventListener) -> None:
        self._registry.unsubscribe(listener)

    # =========================================================================
    # Queries
    # =========================================================================

    def get_connected_devices(self) -> Tuple[DeviceRecord, ...]:
        """Immutable copy of the devices seen by the last completed cycle."""
        with self._publish_lock:
            return tuple(self._published.values())

    def get_device(self, identity: str) -> Optional[DeviceRecord]:
        with self._publish_lock:
            return self._published.get(identity)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def initialize(self) -> None:
        """Start polling. A second call while running is a no-op."""
        with self._state_lock:
            if self._state is MonitorState.RUNNING:
                logger.debug("initialize() called while already running")
                return
            if self._state is MonitorState.STOPPING:
                raise MonitorStateError("USB monitor is still stopping")

            for provider in self._providers:
                try:
                    provider.open()
                except Exception as e:
                    logger.error("Failed to open provider %s: %s", provider.name, e)

            with self._publish_lock:
                self._run_id += 1
                run_id = self._run_id

            self._dispatcher.start()

            ready = threading.Event()
            self._thread = threading.Thread(
                target=self._run_event_loop,
                args=(run_id, ready),
                name="usb-sentinel-poll",
                daemon=True,
            )
            self._thread.start()

            if not ready.wait(timeout=_LOOP_START_TIMEOUT):
                # A loop that comes up late sees a stale run id and exits
                with self._publish_lock:
                    self._run_id += 1
                self._cancel_poll_task(self._loop, self._poll_task)
                self._dispatcher.close()
                self._close_providers()
                raise RuntimeError(
                    f"USB polling loop failed to start within {_LOOP_START_TIMEOUT:.0f} seconds"
                )

            self._state = MonitorState.RUNNING

        logger.info(
            "USB monitor initialized (%d provider(s): %s, interval %.1fs)",
            len(self._providers),
            ", ".join(p.name for p in self._providers) or "none",
            self._poll_interval,
        )

    def request_scan(self) -> bool:
        """Wake the poll loop for an immediate cycle. Returns False when not running."""
        loop, wake = self._loop, self._wake
        if not self.is_running or loop is None or wake is None:
            return False
        try:
            loop.call_soon_threadsafe(wake.set)
        except RuntimeError:
            return False
        return True

    def cleanup(self) -> None:
        """Stop polling, release provider resources and clear all state.

        Safe to call from any thread, including a listener callback. Once it
        returns no further events are dispatched.
        """
        with self._state_lock:
            if self._state is not MonitorState.RUNNING:
                return
            self._state = MonitorState.STOPPING
            thread, loop, task = self._thread, self._loop, self._poll_task

        with self._publish_lock:
            # Any cycle still in flight belongs to a stale run from here on
            self._run_id += 1

        self._dispatcher.close(timeout=self._shutdown_timeout)

        self._cancel_poll_task(loop, task)

        if thread is not None and thread is not threading.current_thread():
            thread.join(self._shutdown_timeout)
            if thread.is_alive():
                logger.warning(
                    "Polling thread did not stop within %.1fs; releasing resources anyway",
                    self._shutdown_timeout,
                )

        self._close_providers()

        with self._publish_lock:
            self._reconciler.reset()
            self._published = EMPTY_MAPPING

        with self._state_lock:
            self._thread = None
            self._loop = None
            self._poll_task = None
            self._wake = None
            self._state = MonitorState.STOPPED

        logger.info("USB monitor cleaned up")

    @staticmethod
    def _cancel_poll_task(
        loop: Optional[asyncio.AbstractEventLoop],
        task: Optional[asyncio.Task],
    ) -> None:
        if loop is None or task is None:
            return
        try:
            loop.call_soon_threadsafe(task.cancel)
        except RuntimeError:
            pass  # Loop already closed

    def _close_providers(self) -> None:
        for provider in self._providers:
            try:
                provider.close()
            except Exception as e:
                logger.error("Failed to close provider %s: %s", provider.name, e)

    # =========================================================================
    # Poll loop (runs on the background thread)
    # =========================================================================

    def _run_event_loop(self, run_id: int, ready: threading.Event) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)

        wake = asyncio.Event()
        task = create_logged_task(
            self._poll_loop(run_id, wake),
            logger=logger,
            context="usb-poll-loop",
            loop=loop,
        )

        with self._publish_lock:
            stale = run_id != self._run_id
            if not stale:
                self._loop = loop
                self._wake = wake
                self._poll_task = task
        if stale:
            logger.warning("Polling loop started after initialize() gave up; exiting")
            task.cancel()
        ready.set()

        try:
            loop.run_until_complete(task)
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error("Polling loop terminated unexpectedly: %s", e)
        finally:
            try:
                loop.run_until_complete(loop.shutdown_default_executor())
            finally:
                asyncio.set_event_loop(None)
                loop.close()
            logger.debug("Polling thread stopped")

    async def _poll_loop(self, run_id: int, wake: asyncio.Event) -> None:
        logger.info("Starting device polling")

        while run_id == self._run_id:
            try:
                await self._poll_once(run_id)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Error in USB polling: %s", e, exc_info=True)

            try:
                await asyncio.wait_for(wake.wait(), timeout=self._poll_interval)
            except asyncio.TimeoutError:
                pass
            else:
                logger.debug("Immediate scan requested")
            wake.clear()

    async def _poll_once(self, run_id: int) -> None:
        scans: List[List[DeviceRecord]] = []
        for provider in self._providers:
            scans.append(await asyncio.to_thread(provider.scan_safely))

        plan = self._reconciler.plan(scans)

        with self._publish_lock:
            if run_id != self._run_id:
                return
            self._dispatcher.dispatch(plan.events)
            self._reconciler.commit(plan)
            self._published = plan.snapshot

        for event in plan.events:
            if isinstance(event, DeviceConnectedEvent):
                logger.info("Device connected: %s", event.device.log_string())
            else:
                logger.info("Device disconnected: %s", event.device.log_string())


__all__ = ["MonitorState", "USBMonitor"]
