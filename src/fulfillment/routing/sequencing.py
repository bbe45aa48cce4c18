"""Sequencing — pure functions from solved zone routes to stop numbers.

A day's stops are partitioned by zone and each zone is solved separately.
Delivery numbers run through the zones in canonical order (north, east,
south, west). Packing numbers are the LIFO mirror: zones in reverse order,
and within each zone the last stop delivered is packed first, so the van is
loaded with the first delivery nearest the door. For N stops,
``packing == N + 1 - delivery``.
"""

from dataclasses import dataclass
from datetime import UTC, date, datetime, time, timedelta

from fulfillment.errors import MissingCoordinates
from fulfillment.order.order import Zone
from fulfillment.solver.port import Coordinate, RouteSolverPort, SolvedRoute, Stop

CANONICAL_ZONES = [zone.value for zone in Zone]


@dataclass
class ZoneSolution:
    zone: str
    route: SolvedRoute


def zone_order(zones) -> list[str]:
    """Canonical zones first, any others after in name order."""
    present = set(zones)
    known = [z for z in CANONICAL_ZONES if z in present]
    return known + sorted(present - set(CANONICAL_ZONES))


def check_coordinates(orders) -> None:
    """Fail the whole run if any order cannot be placed on a map."""
    missing = sorted(
        o.order_number for o in orders if o.delivery_address is None or not o.delivery_address.has_coordinates()
    )
    if missing:
        raise MissingCoordinates(missing)


def stops_by_zone(orders) -> dict[str, list[Stop]]:
    grouped: dict[str, list[Stop]] = {}
    for order in sorted(orders, key=lambda o: o.order_number):
        address = order.delivery_address
        grouped.setdefault(address.zone, []).append(
            Stop(id=str(order.id), latitude=address.latitude, longitude=address.longitude)
        )
    return grouped


def solve_by_zone(solver: RouteSolverPort, origin: Coordinate, grouped: dict[str, list[Stop]]) -> list[ZoneSolution]:
    """One solver call per non-empty zone, in canonical zone order.

    Any solver failure propagates before the caller has written anything.
    """
    return [
        ZoneSolution(zone=zone, route=solver.solve(origin, grouped[zone]))
        for zone in zone_order(grouped)
        if grouped[zone]
    ]


def delivery_sequence(solutions: list[ZoneSolution]) -> dict[str, int]:
    sequence = {}
    for solution in solutions:
        for stop_id in solution.route.ordered_ids:
            sequence[stop_id] = len(sequence) + 1
    return sequence


def packing_sequence(solutions: list[ZoneSolution]) -> dict[str, int]:
    sequence = {}
    for solution in reversed(solutions):
        for stop_id in reversed(solution.route.ordered_ids):
            sequence[stop_id] = len(sequence) + 1
    return sequence


def route_start(delivery_date: date, start: time) -> datetime:
    return datetime.combine(delivery_date, start, tzinfo=UTC)


def estimated_arrivals(
    solutions: list[ZoneSolution], delivery_date: date, start: time, dwell_seconds: int
) -> dict[str, datetime]:
    """Arrival per stop: each zone's run leaves the warehouse at ``start``.

    Drive the leg, record the arrival, then spend ``dwell_seconds`` at the
    stop before the next leg.
    """
    arrivals = {}
    for solution in solutions:
        clock = route_start(delivery_date, start)
        for stop_id, segment in zip(solution.route.ordered_ids, solution.route.segments, strict=True):
            clock += timedelta(seconds=segment.duration)
            arrivals[stop_id] = clock
            clock += timedelta(seconds=dwell_seconds)
    return arrivals


def renumber(ids_in_order: list[str]) -> tuple[dict[str, int], dict[str, int]]:
    """Contiguous delivery numbers 1..M and their LIFO packing mirror."""
    count = len(ids_in_order)
    delivery = {stop_id: index for index, stop_id in enumerate(ids_in_order, start=1)}
    packing = {stop_id: count + 1 - index for stop_id, index in delivery.items()}
    return delivery, packing
