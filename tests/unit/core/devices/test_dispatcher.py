"""Unit tests for the listener registry, callback executors and dispatcher."""

import asyncio
import threading

import pytest

from tests.infrastructure.mocks.device_mocks import RecordingListener, make_device
from usb_sentinel.core.devices.dispatcher import (
    EventDispatcher,
    ListenerRegistry,
    LoopCallbackExecutor,
    ThreadCallbackExecutor,
)
from usb_sentinel.core.devices.events import (
    CallbackListener,
    DeviceConnectedEvent,
    DeviceDisconnectedEvent,
    DeviceEventListener,
    deliver,
)


@pytest.fixture
def executor():
    executor = ThreadCallbackExecutor(name="test-callbacks")
    executor.start()
    yield executor
    executor.close(timeout=1.0)


@pytest.fixture
def dispatcher(executor):
    dispatcher = EventDispatcher(executor=executor)
    dispatcher.start()
    yield dispatcher
    dispatcher.close(timeout=1.0)


class TestEvents:

    def test_deliver_routes_by_event_type(self):
        listener = RecordingListener()
        device = make_device("A")

        deliver(listener, DeviceConnectedEvent(device))
        deliver(listener, DeviceDisconnectedEvent(device))

        assert listener.events == [("connected", "A"), ("disconnected", "A")]

    def test_deliver_rejects_unknown_event(self):
        with pytest.raises(TypeError):
            deliver(RecordingListener(), object())

    def test_callback_listener_adapts_callables(self):
        seen = []
        listener = CallbackListener(on_connected=lambda d: seen.append(d.identity))

        assert isinstance(listener, DeviceEventListener)
        listener.on_connected(make_device("A"))
        listener.on_disconnected(make_device("B"))

        assert seen == ["A"]


class TestListenerRegistry:

    def test_subscribe_is_deduplicated(self):
        registry = ListenerRegistry()
        listener = RecordingListener()

        registry.subscribe(listener)
        registry.subscribe(listener)

        assert len(registry) == 1

    def test_unsubscribe_unknown_is_noop(self):
        registry = ListenerRegistry()
        registry.unsubscribe(RecordingListener())
        assert len(registry) == 0

    def test_snapshot_is_immune_to_later_changes(self):
        registry = ListenerRegistry()
        first, second = RecordingListener(), RecordingListener()
        registry.subscribe(first)

        snapshot = registry.snapshot()
        registry.subscribe(second)
        registry.unsubscribe(first)

        assert snapshot == (first,)
        assert registry.snapshot() == (second,)

    def test_concurrent_mutation(self):
        registry = ListenerRegistry()
        listeners = [RecordingListener() for _ in range(50)]

        def churn(batch):
            for listener in batch:
                registry.subscribe(listener)
                registry.snapshot()
                registry.unsubscribe(listener)

        threads = [threading.Thread(target=churn, args=(listeners[i::5],)) for i in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(registry) == 0


class TestThreadCallbackExecutor:

    def test_runs_in_submission_order_on_own_thread(self, executor):
        calls = []

        for i in range(20):
            executor.submit(lambda n=i: calls.append((n, threading.current_thread().name)))

        assert executor.flush(timeout=2.0)
        assert [n for n, _ in calls] == list(range(20))
        assert {name for _, name in calls} == {"test-callbacks"}

    def test_failing_callback_does_not_stop_thread(self, executor):
        calls = []

        def boom():
            raise RuntimeError("listener bug")

        executor.submit(boom)
        executor.submit(calls.append, "after")

        assert executor.flush(timeout=2.0)
        assert calls == ["after"]
        assert executor.is_running

    def test_submit_after_close_is_rejected(self):
        executor = ThreadCallbackExecutor()
        executor.start()
        executor.close(timeout=1.0)

        assert executor.submit(print) is False
        assert not executor.is_running

    def test_close_drops_pending_callbacks(self):
        executor = ThreadCallbackExecutor()
        executor.start()
        gate = threading.Event()
        started = threading.Event()
        calls = []

        def blocker():
            started.set()
            gate.wait(2.0)

        executor.submit(blocker)
        assert started.wait(2.0)
        executor.submit(calls.append, "dropped")

        thread = executor._thread
        # blocker still running, so the join times out after the queue is drained
        executor.close(timeout=0.01)
        gate.set()
        thread.join(2.0)

        assert calls == []
        assert not thread.is_alive()

    def test_restart_after_close(self):
        executor = ThreadCallbackExecutor()
        executor.start()
        executor.close(timeout=1.0)
        executor.start()
        try:
            calls = []
            executor.submit(calls.append, 1)
            assert executor.flush(timeout=2.0)
            assert calls == [1]
        finally:
            executor.close(timeout=1.0)

    def test_close_from_callback_does_not_deadlock(self, executor):
        done = threading.Event()

        def close_self():
            executor.close(timeout=1.0)
            done.set()

        executor.submit(close_self)

        assert done.wait(2.0)


class TestEventDispatcher:

    def test_events_reach_every_listener_in_order(self, dispatcher, executor):
        first, second = RecordingListener(), RecordingListener()
        dispatcher.registry.subscribe(first)
        dispatcher.registry.subscribe(second)

        events = [
            DeviceConnectedEvent(make_device("NEW")),
            DeviceDisconnectedEvent(make_device("OLD")),
        ]
        assert dispatcher.dispatch(events) == 2
        assert executor.flush(timeout=2.0)

        expected = [("connected", "NEW"), ("disconnected", "OLD")]
        assert first.events == expected
        assert second.events == expected
        assert set(first.threads) == {"test-callbacks"}

    def test_listener_exception_is_isolated(self, dispatcher, executor):
        def broken(device):
            raise ValueError("bad listener")

        good = RecordingListener()
        dispatcher.registry.subscribe(CallbackListener(on_connected=broken))
        dispatcher.registry.subscribe(good)

        dispatcher.dispatch([DeviceConnectedEvent(make_device("A"))])
        assert executor.flush(timeout=2.0)

        assert good.events == [("connected", "A")]

    def test_empty_registry_is_used_as_given(self, executor):
        registry = ListenerRegistry()
        dispatcher = EventDispatcher(registry, executor)
        dispatcher.start()
        listener = RecordingListener()

        try:
            registry.subscribe(listener)
            dispatcher.dispatch([DeviceConnectedEvent(make_device("A"))])

            assert dispatcher.registry is registry
            assert executor.flush(timeout=2.0)
            assert listener.events == [("connected", "A")]
        finally:
            dispatcher.close(timeout=1.0)

    def test_no_listeners_dispatches_nothing(self, dispatcher):
        assert dispatcher.dispatch([DeviceConnectedEvent(make_device("A"))]) == 0

    def test_closed_dispatcher_delivers_nothing(self, executor):
        dispatcher = EventDispatcher(executor=executor)
        listener = RecordingListener()
        dispatcher.registry.subscribe(listener)

        # never started
        assert dispatcher.is_closed
        assert dispatcher.dispatch([DeviceConnectedEvent(make_device("A"))]) == 0

    def test_queued_events_skipped_after_close(self, executor):
        dispatcher = EventDispatcher(executor=executor)
        dispatcher.start()
        listener = RecordingListener()
        dispatcher.registry.subscribe(listener)
        gate = threading.Event()
        started = threading.Event()

        def blocker():
            started.set()
            gate.wait(2.0)

        executor.submit(blocker)
        assert started.wait(2.0)
        dispatcher.dispatch([DeviceConnectedEvent(make_device("A"))])

        thread = executor._thread
        dispatcher.close(timeout=0.01)
        gate.set()
        thread.join(2.0)

        assert listener.events == []

    def test_late_subscriber_misses_in_flight_events(self, dispatcher, executor):
        early, late = RecordingListener(), RecordingListener()
        dispatcher.registry.subscribe(early)
        gate = threading.Event()

        executor.submit(gate.wait, 2.0)
        dispatcher.dispatch([DeviceConnectedEvent(make_device("A"))])
        dispatcher.registry.subscribe(late)
        gate.set()

        assert executor.flush(timeout=2.0)
        assert early.events == [("connected", "A")]
        assert late.events == []


class TestLoopCallbackExecutor:

    @pytest.mark.asyncio
    async def test_submit_from_other_thread_runs_on_loop(self):
        loop = asyncio.get_running_loop()
        executor = LoopCallbackExecutor(loop)
        executor.start()
        done = asyncio.Event()
        seen = []

        def callback(value):
            seen.append((value, executor.in_callback_context()))
            done.set()

        thread = threading.Thread(target=executor.submit, args=(callback, "x"))
        thread.start()
        thread.join()

        await asyncio.wait_for(done.wait(), timeout=2.0)
        assert seen == [("x", True)]

    @pytest.mark.asyncio
    async def test_closed_executor_rejects_and_drops(self):
        executor = LoopCallbackExecutor(asyncio.get_running_loop())
        calls = []

        assert executor.submit(calls.append, 1) is False  # not started

        executor.start()
        assert executor.submit(calls.append, 2) is True
        executor.close()
        await asyncio.sleep(0.05)

        assert calls == []

    @pytest.mark.asyncio
    async def test_restart_ignores_stale_callbacks(self):
        executor = LoopCallbackExecutor(asyncio.get_running_loop())
        calls = []

        executor.start()
        executor.submit(calls.append, "stale")
        executor.close()
        executor.start()
        executor.submit(calls.append, "fresh")
        await asyncio.sleep(0.05)

        assert calls == ["fresh"]

    @pytest.mark.asyncio
    async def test_callback_error_is_logged_not_raised(self):
        executor = LoopCallbackExecutor(asyncio.get_running_loop())
        executor.start()
        calls = []

        def boom():
            raise RuntimeError("listener bug")

        executor.submit(boom)
        executor.submit(calls.append, "after")
        await asyncio.sleep(0.05)

        assert calls == ["after"]

    def test_in_callback_context_outside_loop(self):
        loop = asyncio.new_event_loop()
        try:
            assert LoopCallbackExecutor(loop).in_callback_context() is False
        finally:
            loop.close()
