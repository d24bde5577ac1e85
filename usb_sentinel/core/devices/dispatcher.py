"""
Listener Registry and Event Dispatcher.

The poll loop never calls listeners itself. It hands each cycle's events to
a CallbackExecutor, a serialized context that runs one callback at a time
on behalf of the host application:

- ThreadCallbackExecutor: a single consumer thread draining a queue
  (the default; suits GUI and plain threaded hosts).
- LoopCallbackExecutor: schedules callbacks on a host asyncio event loop
  with ``call_soon_threadsafe`` (suits asyncio applications).
"""

from __future__ import annotations

import asyncio
import queue
import threading
from typing import Any, Callable, List, Optional, Protocol, Sequence, Tuple

from usb_sentinel.core.logging_utils import get_module_logger
from .events import DeviceEvent, DeviceEventListener, deliver

logger = get_module_logger("EventDispatcher")

_STOP = object()


class CallbackExecutor(Protocol):
    """A serialized context that runs submitted callables in order."""

    def start(self) -> None:
        ...

    def submit(self, func: Callable[..., Any], *args: Any) -> bool:
        """Queue ``func(*args)``; returns False when the executor is closed."""
        ...

    def close(self, timeout: Optional[float] = None) -> None:
        ...

    def in_callback_context(self) -> bool:
        ...


class ThreadCallbackExecutor:
    """
    Runs callbacks on one dedicated daemon thread.

    Usage:
        executor = ThreadCallbackExecutor()
        executor.start()
        executor.submit(print, "hello")
        executor.flush(timeout=1.0)
        executor.close()
    """

    def __init__(self, name: str = "usb-sentinel-callbacks"):
        self._name = name
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._closed = True

    @property
    def is_running(self) -> bool:
        return not self._closed and self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lock:
            if self.is_running:
                return
            self._queue = queue.Queue()
            self._closed = False
            self._thread = threading.Thread(
                target=self._run,
                args=(self._queue,),
                name=self._name,
                daemon=True,
            )
            self._thread.start()

    def submit(self, func: Callable[..., Any], *args: Any) -> bool:
        with self._lock:
            if self._closed:
                return False
            self._queue.put((func, args))
            return True

    def in_callback_context(self) -> bool:
        return threading.current_thread() is self._thread

    def flush(self, timeout: Optional[float] = None) -> bool:
        """Wait until everything submitted so far has run."""
        if self.in_callback_context():
            return False
        done = threading.Event()
        if not self.submit(done.set):
            return False
        return done.wait(timeout)

    def close(self, timeout: Optional[float] = None) -> None:
        """Drop pending callbacks and stop the consumer thread."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            pending = self._queue
            thread = self._thread

        dropped = 0
        while True:
            try:
                pending.get_nowait()
            except queue.Empty:
                break
            dropped += 1
        if dropped:
            logger.debug("Dropped %d pending callback(s) on close", dropped)
        pending.put(_STOP)

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("Callback thread still busy after %.1fs", timeout or 0.0)

    def _run(self, work: "queue.Queue[Any]") -> None:
        while True:
            item = work.get()
            if item is _STOP:
                break
            func, args = item
            try:
                func(*args)
            except Exception as e:
                logger.error("Error in callback %s: %s", getattr(func, "__name__", func), e, exc_info=True)


class LoopCallbackExecutor:
    """Runs callbacks on an existing asyncio event loop, one at a time."""

    def __init__(self, loop: asyncio.AbstractEventLoop):
        self._loop = loop
        self._closed = True
        # Callbacks queued before a close() must not run after a restart
        self._generation = 0

    def start(self) -> None:
        if self._closed:
            self._generation += 1
            self._closed = False

    def submit(self, func: Callable[..., Any], *args: Any) -> bool:
        if self._closed or self._loop.is_closed():
            return False
        try:
            self._loop.call_soon_threadsafe(self._invoke, self._generation, func, args)
        except RuntimeError:
            # Loop closed between the check and the call
            return False
        return True

    def in_callback_context(self) -> bool:
        try:
            return asyncio.get_running_loop() is self._loop
        except RuntimeError:
            return False

    def close(self, timeout: Optional[float] = None) -> None:
        self._closed = True

    def _invoke(self, generation: int, func: Callable[..., Any], args: Tuple[Any, ...]) -> None:
        if self._closed or generation != self._generation:
            return
        try:
            func(*args)
        except Exception as e:
            logger.error("Error in callback %s: %s", getattr(func, "__name__", func), e, exc_info=True)


class ListenerRegistry:
    """Thread-safe, registration-ordered set of listeners."""

    def __init__(self):
        self._listeners: List[DeviceEventListener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: DeviceEventListener) -> None:
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)
                logger.debug("Listener added (total: %d)", len(self._listeners))

    def unsubscribe(self, listener: DeviceEventListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)
                logger.debug("Listener removed (total: %d)", len(self._listeners))

    def snapshot(self) -> Tuple[DeviceEventListener, ...]:
        with self._lock:
            return tuple(self._listeners)

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)


class EventDispatcher:
    """
    Hands device events to the callback context.

    Listeners are captured when ``dispatch()`` is called; one subscribed
    afterwards does not see events already in flight. After ``close()``
    nothing more is delivered, including events that were queued but had
    not started.
    """

    def __init__(
        self,
        registry: Optional[ListenerRegistry] = None,
        executor: Optional[CallbackExecutor] = None,
    ):
        self.registry = registry if registry is not None else ListenerRegistry()
        self.executor: CallbackExecutor = executor if executor is not None else ThreadCallbackExecutor()
        self._closed = True

    def start(self) -> None:
        self._closed = False
        self.executor.start()

    def close(self, timeout: Optional[float] = None) -> None:
        self._closed = True
        self.executor.close(timeout)

    @property
    def is_closed(self) -> bool:
        return self._closed

    def dispatch(self, events: Sequence[DeviceEvent]) -> int:
        """Queue ``events`` in order; returns how many were handed off."""
        if self._closed or not events:
            return 0
        listeners = self.registry.snapshot()
        if not listeners:
            return 0
        handed_off = 0
        for event in events:
            if self.executor.submit(self._deliver, event, listeners):
                handed_off += 1
        return handed_off

    def _deliver(self, event: DeviceEvent, listeners: Sequence[DeviceEventListener]) -> None:
        for listener in listeners:
            if self._closed:
                return
            try:
                deliver(listener, event)
            except Exception as e:
                logger.error(
                    "Listener %r failed on %s for %s: %s",
                    listener,
                    type(event).__name__,
                    event.identity,
                    e,
                    exc_info=True,
                )


__all__ = [
    "CallbackExecutor",
    "ThreadCallbackExecutor",
    "LoopCallbackExecutor",
    "ListenerRegistry",
    "EventDispatcher",
]
