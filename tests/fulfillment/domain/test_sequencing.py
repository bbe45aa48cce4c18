"""Tests for the sequencing functions — zone order, LIFO packing and arrivals."""

from datetime import UTC, date, datetime, time

import pytest
from fulfillment.errors import MissingCoordinates
from fulfillment.order.order import Order
from fulfillment.routing import sequencing
from fulfillment.routing.sequencing import ZoneSolution
from fulfillment.solver.fake_adapter import FakeRouteSolver
from fulfillment.solver.port import Coordinate, Segment, SolvedRoute

DAY = date(2026, 11, 2)


def _solution(zone, ids, durations=None):
    durations = durations or [600.0] * len(ids)
    return ZoneSolution(
        zone=zone,
        route=SolvedRoute(
            ordered_ids=list(ids),
            segments=[Segment(distance=1000.0, duration=d) for d in durations],
        ),
    )


def _four_zones():
    return [
        _solution("north", ["n1", "n2", "n3"]),
        _solution("east", ["e1", "e2"]),
        _solution("south", ["s1"]),
        _solution("west", ["w1", "w2"]),
    ]


def _order(number, zone="north", latitude=-37.75, longitude=144.96):
    address = {"street": "1 High St", "suburb": "Northcote", "postcode": "3070", "zone": zone}
    if latitude is not None:
        address["latitude"] = latitude
        address["longitude"] = longitude
    return Order.create(
        order_number=number,
        customer_id="cust-001",
        lines=[{"product_id": "prod-1", "sku": "APL", "quantity": 1, "unit_price": 100, "tax_rate": 0}],
        delivery_address=address,
        requested_delivery_date=DAY,
        placed_by="buyer-1",
    )


class TestZoneOrder:
    def test_canonical_order(self):
        assert sequencing.zone_order({"west", "north", "south", "east"}) == ["north", "east", "south", "west"]

    def test_missing_zones_are_skipped(self):
        assert sequencing.zone_order(["west", "north"]) == ["north", "west"]

    def test_unknown_zones_follow_in_name_order(self):
        assert sequencing.zone_order(["west", "island", "central"]) == ["west", "central", "island"]


class TestDeliverySequence:
    def test_concatenates_zones_in_order(self):
        delivery = sequencing.delivery_sequence(_four_zones())
        assert delivery == {"n1": 1, "n2": 2, "n3": 3, "e1": 4, "e2": 5, "s1": 6, "w1": 7, "w2": 8}

    def test_empty_day(self):
        assert sequencing.delivery_sequence([]) == {}


class TestPackingSequence:
    def test_zones_and_stops_reversed(self):
        packing = sequencing.packing_sequence(_four_zones())
        assert packing == {"w2": 1, "w1": 2, "s1": 3, "e2": 4, "e1": 5, "n3": 6, "n2": 7, "n1": 8}

    def test_packing_mirrors_delivery(self):
        solutions = _four_zones()
        delivery = sequencing.delivery_sequence(solutions)
        packing = sequencing.packing_sequence(solutions)
        count = len(delivery)
        for stop_id, number in delivery.items():
            assert packing[stop_id] == count + 1 - number

    def test_within_zone_reverse(self):
        packing = sequencing.packing_sequence(_four_zones())
        north = sorted(["n1", "n2", "n3"], key=lambda s: packing[s])
        assert north == ["n3", "n2", "n1"]


class TestArrivals:
    def test_first_stop_is_start_plus_first_leg(self):
        arrivals = sequencing.estimated_arrivals(
            [_solution("north", ["n1", "n2"], [600.0, 300.0])], DAY, time(9, 0), dwell_seconds=300
        )
        assert arrivals["n1"] == datetime(2026, 11, 2, 9, 10, tzinfo=UTC)
        # leg + dwell at n1 + leg
        assert arrivals["n2"] == datetime(2026, 11, 2, 9, 20, tzinfo=UTC)

    def test_each_zone_starts_from_route_start(self):
        arrivals = sequencing.estimated_arrivals(
            [_solution("north", ["n1"], [600.0]), _solution("east", ["e1"], [1200.0])],
            DAY,
            time(9, 0),
            dwell_seconds=300,
        )
        assert arrivals["e1"] == datetime(2026, 11, 2, 9, 20, tzinfo=UTC)

    def test_route_start_is_utc(self):
        assert sequencing.route_start(DAY, time(9, 0)) == datetime(2026, 11, 2, 9, 0, tzinfo=UTC)


class TestRenumber:
    def test_contiguous_numbers_and_mirror(self):
        delivery, packing = sequencing.renumber(["a", "b", "c"])
        assert delivery == {"a": 1, "b": 2, "c": 3}
        assert packing == {"a": 3, "b": 2, "c": 1}

    def test_empty(self):
        assert sequencing.renumber([]) == ({}, {})


class TestCoordinatesAndGrouping:
    def test_missing_coordinates_lists_order_numbers(self):
        orders = [_order("ORD-000003", latitude=None), _order("ORD-000001"), _order("ORD-000002", latitude=None)]
        with pytest.raises(MissingCoordinates) as exc:
            sequencing.check_coordinates(orders)
        assert exc.value.order_numbers == ["ORD-000002", "ORD-000003"]

    def test_all_coordinates_present(self):
        sequencing.check_coordinates([_order("ORD-000001"), _order("ORD-000002")])

    def test_stops_grouped_by_zone(self):
        orders = [_order("ORD-000002", zone="east"), _order("ORD-000001", zone="north"), _order("ORD-000003", "east")]
        grouped = sequencing.stops_by_zone(orders)
        assert set(grouped) == {"north", "east"}
        assert [s.id for s in grouped["east"]] == [str(orders[0].id), str(orders[2].id)]

    def test_solve_by_zone_calls_solver_once_per_zone(self):
        solver = FakeRouteSolver()
        orders = [
            _order("ORD-000001", zone="west", latitude=-37.80, longitude=144.90),
            _order("ORD-000002", zone="north", latitude=-37.74, longitude=144.96),
        ]
        solutions = sequencing.solve_by_zone(
            solver, Coordinate(-37.8136, 144.9631), sequencing.stops_by_zone(orders)
        )
        assert [s.zone for s in solutions] == ["north", "west"]
        assert len(solver.calls) == 2
