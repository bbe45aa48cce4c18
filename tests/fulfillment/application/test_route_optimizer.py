"""Application tests for packing and delivery route runs."""

from datetime import UTC, date, datetime

import pytest
from fulfillment.errors import MissingCoordinates, RouteSolverError
from fulfillment.order.order import OrderStatus
from fulfillment.packing.controller import PackingSessionController
from fulfillment.routing.optimizer import (
    delivery_route_is_stale,
    ensure_delivery_route,
    latest_route,
    optimize_delivery_route,
    optimize_packing_route,
)
from fulfillment.routing.route import RouteType

DAY = date(2026, 11, 2)


def _sequences(build, order_ids):
    orders = [build.order(oid) for oid in order_ids]
    return {
        str(o.id): (o.delivery.delivery_sequence, o.packing.packing_sequence if o.packing else None)
        for o in orders
    }


@pytest.fixture()
def day_orders(build):
    """Two north stops, one east and one west, all confirmed for DAY."""
    return {
        "west": build.confirmed_order(zone="west", index=0),
        "north_near": build.confirmed_order(zone="north", index=0),
        "east": build.confirmed_order(zone="east", index=0),
        "north_far": build.confirmed_order(zone="north", index=2),
    }


class TestPackingRoute:
    def test_sequences_are_contiguous_and_mirrored(self, build, day_orders):
        optimize_packing_route(DAY, "mgr-1")

        sequences = _sequences(build, day_orders.values())
        deliveries = sorted(d for d, _ in sequences.values())
        assert deliveries == [1, 2, 3, 4]
        for delivery, packing in sequences.values():
            assert packing == 5 - delivery

    def test_zones_run_north_east_south_west(self, build, day_orders):
        optimize_packing_route(DAY, "mgr-1")
        sequences = _sequences(build, day_orders.values())
        order = sorted(day_orders, key=lambda name: sequences[day_orders[name]][0])
        assert order == ["north_near", "north_far", "east", "west"]

    def test_snapshot_is_stored(self, build, day_orders):
        route_id = optimize_packing_route(DAY, "mgr-1")

        route = latest_route(DAY, RouteType.PACKING)
        assert str(route.id) == route_id
        assert route.optimized_by == "mgr-1"
        assert [w.sequence for w in route.sorted_waypoints()] == [1, 2, 3, 4]
        assert [z.zone for z in route.sorted_zones()] == ["north", "east", "west"]
        assert route.order_ids() == set(day_orders.values())
        assert route.total_distance > 0
        assert build.order(day_orders["east"]).delivery.route_id == route_id

    def test_arrival_clock_restarts_each_zone(self, build, day_orders):
        optimize_packing_route(DAY, "mgr-1")
        route = latest_route(DAY, RouteType.PACKING)
        first_of_zone = {}
        for waypoint in route.sorted_waypoints():
            first_of_zone.setdefault(waypoint.zone, waypoint)
        start = datetime(2026, 11, 2, 9, 0, tzinfo=UTC)
        for waypoint in first_of_zone.values():
            arrival = waypoint.estimated_arrival
            if arrival.tzinfo is None:
                arrival = arrival.replace(tzinfo=UTC)
            assert (arrival - start).total_seconds() == pytest.approx(waypoint.duration_from_previous, abs=1)

    def test_status_and_packing_progress_are_untouched(self, build, day_orders):
        order_id = build.confirmed_order(zone="south", index=1, quantities=(1, 2))
        first_sku = build.order(order_id).sorted_items()[0].sku
        PackingSessionController().mark_packed(order_id, first_sku, "packer-1")
        before = build.order(order_id)

        optimize_packing_route(DAY, "mgr-1")

        after = build.order(order_id)
        assert after.status == OrderStatus.PACKING.value
        assert after.packed_skus() == before.packed_skus()
        assert after.current_packing_version() == before.current_packing_version()
        assert after.packing.packing_sequence is not None
        for untouched in day_orders.values():
            assert build.order(untouched).status == OrderStatus.CONFIRMED.value

    def test_other_dates_and_statuses_are_ignored(self, build, day_orders):
        tomorrow = build.confirmed_order(delivery_date=date(2026, 11, 3))
        parked, _ = build.backorder()

        optimize_packing_route(DAY, "mgr-1")

        assert build.order(tomorrow).delivery is None or build.order(tomorrow).delivery.delivery_sequence is None
        assert build.order(parked).delivery is None or build.order(parked).delivery.delivery_sequence is None

    def test_empty_day_stores_empty_route(self, build):
        optimize_packing_route(DAY, "mgr-1")
        route = latest_route(DAY, RouteType.PACKING)
        assert route.sorted_waypoints() == []

    def test_latest_route_is_scoped_to_its_date(self, build, day_orders):
        next_day = date(2026, 11, 3)
        tomorrow = build.confirmed_order(delivery_date=next_day)
        today_id = optimize_packing_route(DAY, "mgr-1")
        tomorrow_id = optimize_packing_route(next_day, "mgr-2")

        assert str(latest_route(DAY, RouteType.PACKING).id) == today_id
        assert str(latest_route(next_day.isoformat(), RouteType.PACKING).id) == tomorrow_id
        assert latest_route(next_day, RouteType.PACKING).order_ids() == {tomorrow}
        assert latest_route(date(2026, 11, 4), RouteType.PACKING) is None
        assert latest_route(DAY, RouteType.DELIVERY) is None
        assert latest_route(DAY, RouteType.PACKING, driver_id="drv-9") is None


class TestAllOrNothing:
    def test_missing_coordinates_write_nothing(self, build, day_orders):
        optimize_packing_route(DAY, "mgr-1")
        before = _sequences(build, day_orders.values())
        first_route = latest_route(DAY, RouteType.PACKING)

        blind = build.confirmed_order(zone="south", coordinates=False)
        with pytest.raises(MissingCoordinates) as exc:
            optimize_packing_route(DAY, "mgr-1")

        assert exc.value.order_numbers == [build.order(blind).order_number]
        assert _sequences(build, day_orders.values()) == before
        assert latest_route(DAY, RouteType.PACKING).id == first_route.id

    def test_solver_failure_writes_nothing(self, build, day_orders, solver):
        optimize_packing_route(DAY, "mgr-1")
        before = _sequences(build, day_orders.values())

        build.confirmed_order(zone="south", index=0)
        solver.configure(should_succeed=False, failure_reason="Optimization service unavailable")
        with pytest.raises(RouteSolverError):
            optimize_packing_route(DAY, "mgr-1")

        assert _sequences(build, day_orders.values()) == before


class TestDeliveryRoute:
    def test_covers_ready_orders_only(self, build):
        ready = build.ready_order(zone="north", index=0)
        confirmed = build.confirmed_order(zone="east", index=0)

        optimize_delivery_route(DAY, "mgr-1")

        assert build.order(ready).delivery.delivery_sequence == 1
        assert build.order(ready).delivery.estimated_arrival is not None
        assert build.order(confirmed).delivery is None or build.order(confirmed).delivery.delivery_sequence is None
        assert latest_route(DAY, RouteType.DELIVERY).order_ids() == {ready}

    def test_delivery_run_keeps_packing_numbers(self, build):
        order_id = build.ready_order(zone="north", index=0)
        build.confirmed_order(zone="north", index=1)
        optimize_packing_route(DAY, "mgr-1")
        packing_sequence = build.order(order_id).packing.packing_sequence

        optimize_delivery_route(DAY, "mgr-1")

        assert build.order(order_id).packing.packing_sequence == packing_sequence
        assert build.order(order_id).delivery.delivery_sequence == 1


class TestStaleness:
    def test_no_route_and_nothing_ready_is_fresh(self, build):
        build.confirmed_order()
        assert delivery_route_is_stale(DAY) is False

    def test_no_route_with_ready_order_is_stale(self, build):
        build.ready_order()
        assert delivery_route_is_stale(DAY) is True

    def test_fresh_after_optimizing(self, build):
        build.ready_order()
        optimize_delivery_route(DAY, "mgr-1")
        assert delivery_route_is_stale(DAY) is False

    def test_newly_ready_order_makes_route_stale(self, build):
        build.ready_order(zone="north", index=0)
        optimize_delivery_route(DAY, "mgr-1")
        build.ready_order(zone="east", index=0)
        assert delivery_route_is_stale(DAY) is True

    def test_ensure_recomputes_only_when_stale(self, build, solver):
        build.ready_order(zone="north", index=0)
        first = ensure_delivery_route(DAY, "mgr-1")
        calls = len(solver.calls)

        again = ensure_delivery_route(DAY, "mgr-1")
        assert again.id == first.id
        assert len(solver.calls) == calls

        build.ready_order(zone="west", index=0)
        refreshed = ensure_delivery_route(DAY, "mgr-1")
        assert refreshed.id != first.id
        assert len(refreshed.order_ids()) == 2
