"""Unit tests for DeviceReconciler: one poll cycle from scans to events."""

import random

import pytest

from tests.infrastructure.mocks.device_mocks import make_device
from usb_sentinel.core.devices.events import DeviceConnectedEvent, DeviceDisconnectedEvent
from usb_sentinel.core.devices.reconciler import DeviceReconciler


def _summary(plan):
    return [
        ("connected" if isinstance(event, DeviceConnectedEvent) else "disconnected", event.identity)
        for event in plan.events
    ]


@pytest.fixture
def reconciler():
    return DeviceReconciler()


class TestScenarios:
    """Two-provider cycles as the monitor runs them."""

    def test_drive_inserted_then_removed(self, reconciler):
        drive = make_device("W_1", "Drive")

        first = reconciler.reconcile([[drive], []])

        assert dict(reconciler.snapshot) == {"W_1": drive}
        assert _summary(first) == [("connected", "W_1")]
        assert first.events[0].device is drive

        second = reconciler.reconcile([[], []])

        assert _summary(second) == [("disconnected", "W_1")]
        assert second.events[0].device is drive
        assert dict(reconciler.snapshot) == {}
        assert reconciler.notified == frozenset()

    def test_unchanged_device_fires_nothing(self, reconciler):
        mouse = make_device("X", "Mouse")

        reconciler.reconcile([[mouse], []])
        second = reconciler.reconcile([[mouse], []])

        assert second.events == ()
        assert "X" in reconciler.notified


class TestProperties:

    def test_repeat_scan_is_idempotent(self, reconciler):
        scans = [[make_device("A"), make_device("B")], [make_device("C")]]

        first = reconciler.reconcile(scans)
        snapshot = dict(reconciler.snapshot)
        second = reconciler.reconcile(scans)

        assert len(first.events) == 3
        assert second.events == ()
        assert second.changes.is_empty
        assert dict(reconciler.snapshot) == snapshot

    def test_priority_override(self, reconciler):
        plan = reconciler.reconcile([
            [make_device("X", "Generic", manufacturer="F1")],
            [make_device("X", "Detailed", manufacturer="F2")],
        ])

        assert reconciler.snapshot["X"].manufacturer == "F2"
        assert plan.events[0].device.manufacturer == "F2"

    def test_failed_provider_equivalent_to_empty(self):
        keyboard = make_device("K", "Keyboard")
        with_failure = DeviceReconciler().reconcile([[], [keyboard]])
        without = DeviceReconciler().reconcile([[keyboard]])

        assert dict(with_failure.snapshot) == dict(without.snapshot)
        assert _summary(with_failure) == _summary(without)

    def test_field_update_is_absorbed(self, reconciler):
        reconciler.reconcile([[make_device("X", "Mouse")]])
        plan = reconciler.reconcile([[make_device("X", "Gaming Mouse")]])

        assert plan.events == ()
        assert reconciler.snapshot["X"].product_name == "Gaming Mouse"

    def test_connected_before_disconnected(self, reconciler):
        reconciler.reconcile([[make_device("OLD")]])
        plan = reconciler.reconcile([[make_device("NEW")]])

        assert _summary(plan) == [("connected", "NEW"), ("disconnected", "OLD")]

    def test_connect_count_never_exceeds_disconnects_plus_one(self, reconciler):
        rng = random.Random(1234)
        identities = ["A", "B", "C", "D"]
        connects = {identity: 0 for identity in identities}
        disconnects = {identity: 0 for identity in identities}

        for _ in range(200):
            scans = [
                [make_device(i) for i in identities if rng.random() < 0.5],
                [make_device(i) for i in identities if rng.random() < 0.3],
            ]
            for action, identity in _summary(reconciler.reconcile(scans)):
                if action == "connected":
                    connects[identity] += 1
                else:
                    disconnects[identity] += 1
            for identity in identities:
                assert connects[identity] <= disconnects[identity] + 1

    def test_ordering_is_stable(self):
        scans = [[make_device("C"), make_device("A"), make_device("B")]]
        first = _summary(DeviceReconciler().reconcile(scans))
        second = _summary(DeviceReconciler().reconcile(scans))

        assert first == second == [("connected", "C"), ("connected", "A"), ("connected", "B")]


class TestPlanCommit:
    """Nothing is recorded until commit()."""

    def test_plan_without_commit_leaves_state(self, reconciler):
        plan = reconciler.plan([[make_device("A")]])

        assert len(plan.events) == 1
        assert dict(reconciler.snapshot) == {}
        assert reconciler.notified == frozenset()

    def test_uncommitted_plan_repeats(self, reconciler):
        reconciler.plan([[make_device("A")]])
        again = reconciler.plan([[make_device("A")]])

        assert _summary(again) == [("connected", "A")]

    def test_reset_forgets_everything(self, reconciler):
        reconciler.reconcile([[make_device("A")]])
        reconciler.reset()

        assert dict(reconciler.snapshot) == {}
        assert reconciler.notified == frozenset()
        assert _summary(reconciler.reconcile([[make_device("A")]])) == [("connected", "A")]


class TestAnnounceExisting:

    def test_startup_devices_not_announced(self):
        reconciler = DeviceReconciler(announce_existing=False)

        first = reconciler.reconcile([[make_device("A")]])

        assert first.priming
        assert first.events == ()
        assert "A" in reconciler.snapshot

    def test_later_arrivals_are_announced(self):
        reconciler = DeviceReconciler(announce_existing=False)
        reconciler.reconcile([[make_device("A")]])

        plan = reconciler.reconcile([[make_device("A"), make_device("B")]])

        assert _summary(plan) == [("connected", "B")]

    def test_startup_device_removal_is_reported(self):
        reconciler = DeviceReconciler(announce_existing=False)
        reconciler.reconcile([[make_device("A")]])

        plan = reconciler.reconcile([[]])

        assert _summary(plan) == [("disconnected", "A")]

    def test_reset_primes_again(self):
        reconciler = DeviceReconciler(announce_existing=False)
        reconciler.reconcile([[make_device("A")]])
        reconciler.reset()

        assert reconciler.reconcile([[make_device("A")]]).priming
