"""Route optimizer — turns a day's orders into a sequenced route.

Two runs exist. The packing route covers every order the warehouse still has
to load for the date (confirmed, packing, ready) and writes both packing and
delivery numbers. The delivery route covers ready orders only and refreshes
delivery numbers and arrival estimates once packing is done.

A run is all-or-nothing: coordinates are checked and every zone is solved
before the first order is touched. Only the sequence sub-fields of the
affected orders change; packed items and status are left alone. The service
functions hold every affected order's lock for the whole run.
"""

from protean import handle
from protean.fields import Date, String
from protean.utils.globals import current_domain

from fulfillment.config import EngineSettings, get_settings
from fulfillment.domain import fulfillment, logger
from fulfillment.locks import locks, order_key
from fulfillment.order.order import Order, OrderStatus
from fulfillment.order.repository import as_date
from fulfillment.routing import sequencing
from fulfillment.routing.route import RouteOptimization, RouteType
from fulfillment.solver import get_route_solver
from fulfillment.solver.port import Coordinate

PACKING_ROUTE_STATUSES = (OrderStatus.CONFIRMED, OrderStatus.PACKING, OrderStatus.READY_FOR_DELIVERY)
DELIVERY_ROUTE_STATUSES = (OrderStatus.READY_FOR_DELIVERY,)


@fulfillment.command(part_of="RouteOptimization")
class OptimizePackingRoute:
    delivery_date = Date(required=True)
    optimized_by = String(required=True, max_length=100)


@fulfillment.command(part_of="RouteOptimization")
class OptimizeDeliveryRoute:
    delivery_date = Date(required=True)
    optimized_by = String(required=True, max_length=100)


class RouteOptimizer:
    def __init__(self, solver=None, settings: EngineSettings | None = None):
        self.solver = solver or get_route_solver()
        self.settings = settings or get_settings()

    @property
    def origin(self) -> Coordinate:
        return Coordinate(self.settings.warehouse_latitude, self.settings.warehouse_longitude)

    def optimize(self, delivery_date, route_type: RouteType, optimized_by: str) -> RouteOptimization:
        delivery_date = as_date(delivery_date)
        statuses = PACKING_ROUTE_STATUSES if route_type == RouteType.PACKING else DELIVERY_ROUTE_STATUSES
        order_repo = current_domain.repository_for(Order)
        orders = order_repo.find_for_delivery_date(delivery_date, *statuses)

        sequencing.check_coordinates(orders)
        solutions = sequencing.solve_by_zone(self.solver, self.origin, sequencing.stops_by_zone(orders))

        delivery = sequencing.delivery_sequence(solutions)
        packing = sequencing.packing_sequence(solutions)
        arrivals = sequencing.estimated_arrivals(
            solutions, delivery_date, self.settings.route_start, self.settings.stop_dwell_seconds
        )

        by_id = {str(o.id): o for o in orders}
        waypoints = []
        for solution in solutions:
            for stop_id, segment in zip(solution.route.ordered_ids, solution.route.segments, strict=True):
                order = by_id[stop_id]
                waypoints.append(
                    {
                        "order_id": stop_id,
                        "order_number": order.order_number,
                        "zone": solution.zone,
                        "sequence": delivery[stop_id],
                        "latitude": order.delivery_address.latitude,
                        "longitude": order.delivery_address.longitude,
                        "estimated_arrival": arrivals[stop_id],
                        "distance_from_previous": segment.distance,
                        "duration_from_previous": segment.duration,
                    }
                )
        zones = [
            {
                "zone": s.zone,
                "order_count": len(s.route.ordered_ids),
                "distance": s.route.distance,
                "duration": s.route.duration,
                "geometry": s.route.geometry,
            }
            for s in solutions
        ]

        route = RouteOptimization.record(
            delivery_date=delivery_date,
            route_type=route_type,
            waypoints=waypoints,
            zones=zones,
            optimized_by=optimized_by,
        )

        for stop_id, order in by_id.items():
            order.apply_route_sequence(
                route_id=str(route.id),
                delivery_sequence=delivery[stop_id],
                estimated_arrival=arrivals[stop_id],
                packing_sequence=packing[stop_id] if route_type == RouteType.PACKING else None,
            )
            order_repo.add(order)
        current_domain.repository_for(RouteOptimization).add(route)

        logger.info(
            "Route optimized",
            route_id=str(route.id),
            route_type=route_type.value,
            delivery_date=str(delivery_date),
            stops=len(waypoints),
            zones=[s.zone for s in solutions],
            total_distance=route.total_distance,
            total_duration=route.total_duration,
        )
        return route


@fulfillment.command_handler(part_of=RouteOptimization)
class RouteOptimizationHandler:
    @handle(OptimizePackingRoute)
    def optimize_packing_route(self, command):
        route = RouteOptimizer().optimize(command.delivery_date, RouteType.PACKING, command.optimized_by)
        return str(route.id)

    @handle(OptimizeDeliveryRoute)
    def optimize_delivery_route(self, command):
        route = RouteOptimizer().optimize(command.delivery_date, RouteType.DELIVERY, command.optimized_by)
        return str(route.id)


def _affected_ids(delivery_date, statuses) -> list[str]:
    orders = current_domain.repository_for(Order).find_for_delivery_date(delivery_date, *statuses)
    return sorted(str(o.id) for o in orders)


def process_for_orders(command, delivery_date, statuses):
    """Process ``command`` holding the lock of every order it will touch.

    The affected set is read, locked, then read again; if an order joined or
    left in between, the locks are dropped and the set re-read.
    """
    while True:
        ids = _affected_ids(delivery_date, statuses)
        with locks.hold(*(order_key(i) for i in ids)):
            if _affected_ids(delivery_date, statuses) == ids:
                return current_domain.process(command, asynchronous=False)
        logger.debug("Affected orders changed while locking, retrying", delivery_date=str(delivery_date))


def optimize_packing_route(delivery_date, optimized_by: str) -> str:
    command = OptimizePackingRoute(delivery_date=delivery_date, optimized_by=optimized_by)
    return process_for_orders(command, delivery_date, PACKING_ROUTE_STATUSES)


def optimize_delivery_route(delivery_date, optimized_by: str) -> str:
    command = OptimizeDeliveryRoute(delivery_date=delivery_date, optimized_by=optimized_by)
    return process_for_orders(command, delivery_date, DELIVERY_ROUTE_STATUSES)


def latest_route(delivery_date, route_type: RouteType, driver_id=None) -> RouteOptimization | None:
    return current_domain.repository_for(RouteOptimization).latest(delivery_date, route_type, driver_id)


def delivery_route_is_stale(delivery_date) -> bool:
    """True when the ready orders no longer match the latest delivery route.

    With no stored route, the route is stale as soon as anything is ready.
    """
    ready = set(_affected_ids(delivery_date, DELIVERY_ROUTE_STATUSES))
    latest = latest_route(delivery_date, RouteType.DELIVERY)
    if latest is None:
        return bool(ready)
    return latest.order_ids() != ready


def ensure_delivery_route(delivery_date, optimized_by: str = "system") -> RouteOptimization | None:
    """Recompute the delivery route only when it is stale; return the latest."""
    if delivery_route_is_stale(delivery_date):
        optimize_delivery_route(delivery_date, optimized_by)
    return latest_route(delivery_date, RouteType.DELIVERY)
