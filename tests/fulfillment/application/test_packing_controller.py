"""Application tests for the packing session controller and packing commands.

Covers the automatic status moves driven by packing, optimistic version
checks with retry, concurrent packers on one order and idle release.
"""

import threading
from datetime import UTC, date, datetime, timedelta

import pytest
from fulfillment.errors import ConcurrentModification, NotAuthorized
from fulfillment.order.order import OrderStatus
from fulfillment.packing.controller import PackingSessionController
from fulfillment.packing.packing import AddPackingNote, MarkItemPacked, PausePacking, ResetPacking
from fulfillment.routing.optimizer import optimize_packing_route
from protean import current_domain
from protean.exceptions import ValidationError

DELIVERY_DAY = date(2026, 11, 2)


def _skus(build, order_id):
    return [item.sku for item in build.order(order_id).sorted_items()]


@pytest.fixture()
def controller():
    return PackingSessionController()


class TestAutomaticTransitions:
    def test_first_pack_starts_packing(self, build, controller):
        order_id = build.confirmed_order(quantities=(1, 2))
        first, _ = _skus(build, order_id)

        controller.mark_packed(order_id, first, "packer-1")

        order = build.order(order_id)
        assert order.status == OrderStatus.PACKING.value
        assert order.packed_skus() == {first}
        assert order.packing.last_packed_by == "packer-1"

    def test_reloaded_order_reports_packing_version(self, build, controller):
        order_id = build.confirmed_order(quantities=(1, 2))
        first, second = _skus(build, order_id)

        assert controller.mark_packed(order_id, first, "packer-1") == 1
        assert controller.mark_packed(order_id, second, "packer-2") == 2

        order = build.order(order_id)
        assert order.current_packing_version() == order.packing.version == 2
        assert controller.session(order_id)["version"] == 2

    def test_last_pack_makes_order_ready(self, build, controller):
        order_id = build.confirmed_order(quantities=(1, 2))
        for sku in _skus(build, order_id):
            controller.mark_packed(order_id, sku, "packer-1")
        assert build.order(order_id).status == OrderStatus.READY_FOR_DELIVERY.value

    def test_unpack_after_ready_returns_to_packing(self, build, controller):
        order_id = build.ready_order(quantities=(1, 2))
        sku = _skus(build, order_id)[0]

        controller.mark_unpacked(order_id, sku, "packer-2")

        order = build.order(order_id)
        assert order.status == OrderStatus.PACKING.value
        assert sku not in order.packed_skus()

    def test_single_line_order_goes_straight_to_ready(self, build, controller):
        order_id = build.confirmed_order(quantities=(5,))
        controller.mark_packed(order_id, _skus(build, order_id)[0], "packer-1")
        statuses = [h.status for h in build.order(order_id).history()]
        assert statuses[-2:] == ["packing", "ready_for_delivery"]

    def test_repeat_pack_is_idempotent(self, build, controller):
        order_id = build.confirmed_order(quantities=(1, 2))
        sku = _skus(build, order_id)[0]
        controller.mark_packed(order_id, sku, "packer-1")
        controller.mark_packed(order_id, sku, "packer-1")
        order = build.order(order_id)
        assert order.packed_skus() == {sku}
        assert order.status == OrderStatus.PACKING.value

    def test_driver_cannot_pack(self, build, controller):
        order_id = build.confirmed_order()
        with pytest.raises(NotAuthorized):
            controller.mark_packed(order_id, _skus(build, order_id)[0], "drv-1", role="driver")

    def test_unknown_sku(self, build, controller):
        order_id = build.confirmed_order()
        with pytest.raises(ValidationError):
            controller.mark_packed(order_id, "NOT-ON-ORDER", "packer-1")

    def test_awaiting_order_cannot_be_packed(self, build, controller):
        order_id, _ = build.backorder()
        with pytest.raises(ValidationError):
            controller.mark_packed(order_id, _skus(build, order_id)[0], "packer-1")


class TestVersionChecks:
    def test_stale_version_is_rejected(self, build):
        order_id = build.confirmed_order(quantities=(1, 2))
        first, second = _skus(build, order_id)
        current_domain.process(
            MarkItemPacked(order_id=order_id, sku=first, packed_by="packer-1", expected_version=0),
            asynchronous=False,
        )
        with pytest.raises(ConcurrentModification) as exc:
            current_domain.process(
                MarkItemPacked(order_id=order_id, sku=second, packed_by="packer-2", expected_version=0),
                asynchronous=False,
            )
        assert exc.value.expected == 0
        assert exc.value.actual == 1
        assert build.order(order_id).packed_skus() == {first}

    def test_controller_retries_after_conflict(self, build, controller, monkeypatch):
        order_id = build.confirmed_order(quantities=(1, 2))
        first, second = _skus(build, order_id)
        controller.mark_packed(order_id, first, "packer-1")

        real = controller._current_version
        reads = []

        def stale_then_real(oid):
            reads.append(oid)
            return 0 if len(reads) == 1 else real(oid)

        monkeypatch.setattr(controller, "_current_version", stale_then_real)

        controller.mark_packed(order_id, second, "packer-2")

        assert len(reads) == 2
        order = build.order(order_id)
        assert order.packed_skus() == {first, second}
        assert order.status == OrderStatus.READY_FOR_DELIVERY.value

    def test_controller_gives_up_after_max_attempts(self, build, controller, monkeypatch):
        order_id = build.confirmed_order(quantities=(1, 2))
        first, second = _skus(build, order_id)
        controller.mark_packed(order_id, first, "packer-1")
        monkeypatch.setattr(controller, "_current_version", lambda oid: 0)

        with pytest.raises(ConcurrentModification):
            controller.mark_packed(order_id, second, "packer-2")
        assert build.order(order_id).packed_skus() == {first}


class TestConcurrentPackers:
    def test_toggles_on_different_skus_both_land(self, build):
        from fulfillment.domain import fulfillment

        order_id = build.confirmed_order(quantities=(1, 1, 1, 1))
        skus = _skus(build, order_id)
        to_pack = skus[:3]
        barrier = threading.Barrier(len(to_pack))
        errors = []

        def packer(sku, name):
            with fulfillment.domain_context():
                barrier.wait()
                try:
                    PackingSessionController().mark_packed(order_id, sku, name)
                except Exception as exc:  # surfaced through the assertion below
                    errors.append(exc)

        threads = [threading.Thread(target=packer, args=(sku, f"packer-{i}")) for i, sku in enumerate(to_pack)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        assert errors == []
        order = build.order(order_id)
        assert order.packed_skus() == set(to_pack)
        assert order.current_packing_version() == 3
        assert order.status == OrderStatus.PACKING.value

    def test_concurrent_last_items_make_order_ready_once(self, build):
        from fulfillment.domain import fulfillment

        order_id = build.confirmed_order(quantities=(1, 1))
        skus = _skus(build, order_id)
        barrier = threading.Barrier(len(skus))

        def packer(sku):
            with fulfillment.domain_context():
                barrier.wait()
                PackingSessionController().mark_packed(order_id, sku, "packer")

        threads = [threading.Thread(target=packer, args=(sku,)) for sku in skus]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)

        order = build.order(order_id)
        assert order.status == OrderStatus.READY_FOR_DELIVERY.value
        statuses = [h.status for h in order.history()]
        assert statuses.count("ready_for_delivery") == 1


class TestIdleRelease:
    def test_idle_session_reverts_to_confirmed(self, build, controller):
        order_id = build.confirmed_order(quantities=(1, 2))
        first, _ = _skus(build, order_id)
        controller.mark_packed(order_id, first, "packer-1")

        released = controller.release_if_idle(order_id, as_of=datetime.now(UTC) + timedelta(minutes=31))

        assert released is True
        order = build.order(order_id)
        assert order.status == OrderStatus.CONFIRMED.value
        # Packed work survives the revert
        assert order.packed_skus() == {first}

    def test_active_session_is_kept(self, build, controller):
        order_id = build.confirmed_order(quantities=(1, 2))
        controller.mark_packed(order_id, _skus(build, order_id)[0], "packer-1")
        assert controller.release_if_idle(order_id, as_of=datetime.now(UTC) + timedelta(minutes=5)) is False
        assert build.order(order_id).status == OrderStatus.PACKING.value

    def test_resumed_packing_after_release(self, build, controller):
        order_id = build.confirmed_order(quantities=(1, 2))
        first, second = _skus(build, order_id)
        controller.mark_packed(order_id, first, "packer-1")
        controller.release_if_idle(order_id, as_of=datetime.now(UTC) + timedelta(minutes=45))

        controller.mark_packed(order_id, second, "packer-2")

        assert build.order(order_id).status == OrderStatus.READY_FOR_DELIVERY.value

    def test_sweep_releases_only_idle_orders(self, build, controller):
        stale = build.confirmed_order(quantities=(1, 2))
        controller.mark_packed(stale, _skus(build, stale)[0], "packer-1")
        untouched = build.confirmed_order(quantities=(1, 2))

        released = controller.sweep_idle(as_of=datetime.now(UTC) + timedelta(hours=1))

        assert released == 1
        assert build.order(stale).status == OrderStatus.CONFIRMED.value
        assert build.order(untouched).status == OrderStatus.CONFIRMED.value

    def test_revert_is_not_announced_to_customer(self, build, controller, notifier):
        order_id = build.confirmed_order(quantities=(1, 2))
        controller.mark_packed(order_id, _skus(build, order_id)[0], "packer-1")
        controller.release_if_idle(order_id, as_of=datetime.now(UTC) + timedelta(minutes=31))
        assert len(notifier.of_type("order_confirmed")) == 1


class TestSessionCommands:
    def test_session_view(self, build, controller):
        order_id = build.confirmed_order(quantities=(1, 2))
        first, second = _skus(build, order_id)
        controller.mark_packed(order_id, first, "packer-1")

        session = controller.session(order_id)

        assert session["status"] == OrderStatus.PACKING.value
        assert session["version"] == 1
        assert [(i["sku"], i["packed"]) for i in session["items"]] == [(first, True), (second, False)]

    def test_pause_and_note(self, build):
        order_id = build.confirmed_order()
        current_domain.process(PausePacking(order_id=order_id, paused_by="packer-1"), asynchronous=False)
        current_domain.process(
            AddPackingNote(order_id=order_id, note="Lettuce bruised, swapped", author="packer-1"),
            asynchronous=False,
        )
        packing = build.order(order_id).packing
        assert packing.paused_at is not None
        assert packing.notes == "[packer-1] Lettuce bruised, swapped"
        assert packing.version == 2

    def test_reset_clears_ready_order(self, build):
        order_id = build.ready_order(quantities=(1, 2))
        current_domain.process(
            ResetPacking(order_id=order_id, reason="Wrong crate used", reset_by="mgr-1", role="manager"),
            asynchronous=False,
        )
        order = build.order(order_id)
        assert order.status == OrderStatus.CONFIRMED.value
        assert order.packed_skus() == set()

    def test_reset_requires_privilege(self, build):
        order_id = build.ready_order()
        with pytest.raises(NotAuthorized):
            current_domain.process(
                ResetPacking(order_id=order_id, reason="Wrong crate used", reset_by="p-1", role="packer"),
                asynchronous=False,
            )


class TestQueue:
    def test_queue_follows_packing_sequence(self, build, controller):
        near = build.confirmed_order(zone="north", index=0)
        far = build.confirmed_order(zone="north", index=2)
        optimize_packing_route(DELIVERY_DAY, "mgr-1")

        queue = controller.queue(DELIVERY_DAY)

        # Last stop is loaded first
        assert [str(o.id) for o in queue] == [far, near]

    def test_unsequenced_orders_come_last(self, build, controller):
        first = build.confirmed_order(zone="north", index=0)
        optimize_packing_route(DELIVERY_DAY, "mgr-1")
        late = build.confirmed_order(zone="west", index=0)

        assert [str(o.id) for o in controller.queue(DELIVERY_DAY)] == [first, late]
