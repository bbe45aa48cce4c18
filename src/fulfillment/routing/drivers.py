"""Driver assignment and per-driver re-sequencing.

Assigning a driver to a ready order renumbers that driver's stops for the
day: delivery 1..M following the global delivery sequence, packing M..1.
When an order moves from one driver to another, both drivers' runs are
renumbered and a per-driver route snapshot is stored for each.
"""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from fulfillment.domain import fulfillment, logger
from fulfillment.locks import locks, order_key
from fulfillment.order.order import Order, OrderStatus
from fulfillment.order.repository import as_date
from fulfillment.roles import assert_privileged
from fulfillment.routing.route import RouteOptimization, RouteType
from fulfillment.routing.sequencing import renumber

DRIVER_RUN_STATUSES = (OrderStatus.READY_FOR_DELIVERY, OrderStatus.OUT_FOR_DELIVERY)


@fulfillment.command(part_of="Order")
class AssignDriver:
    order_id = Identifier(required=True)
    driver_id = Identifier(required=True)
    driver_name = String(max_length=150)
    assigned_by = String(required=True, max_length=100)
    role = String(required=True, max_length=20)


def _stop_key(order: Order):
    sequence = order.delivery.delivery_sequence if order.delivery else None
    return (sequence is None, sequence or 0, order.order_number)


def resequence_driver(orders: list[Order], driver_id: str, optimized_by: str) -> RouteOptimization | None:
    """Number ``driver_id``'s stops among ``orders`` and snapshot the run."""
    run = sorted(
        (o for o in orders if o.delivery and str(o.delivery.driver_id or "") == str(driver_id)),
        key=_stop_key,
    )
    if not run:
        return None

    delivery, packing = renumber([str(o.id) for o in run])
    for order in run:
        order.apply_driver_sequence(delivery[str(order.id)], packing[str(order.id)])

    waypoints = [
        {
            "order_id": str(o.id),
            "order_number": o.order_number,
            "zone": o.delivery_address.zone if o.delivery_address else None,
            "sequence": delivery[str(o.id)],
            "latitude": o.delivery_address.latitude if o.delivery_address else None,
            "longitude": o.delivery_address.longitude if o.delivery_address else None,
            "estimated_arrival": o.delivery.estimated_arrival,
        }
        for o in run
    ]
    return RouteOptimization.record(
        delivery_date=run[0].requested_delivery_date,
        route_type=RouteType.DELIVERY,
        waypoints=waypoints,
        zones=[],
        optimized_by=optimized_by,
        driver_id=str(driver_id),
    )


@fulfillment.command_handler(part_of=Order)
class DriverAssignmentHandler:
    @handle(AssignDriver)
    def assign_driver(self, command):
        assert_privileged(command.role, "assign drivers")
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        previous_driver = order.delivery.driver_id if order.delivery else None

        order.assign_driver(str(command.driver_id), command.driver_name)

        day = repo.find_for_delivery_date(order.requested_delivery_date, *DRIVER_RUN_STATUSES)
        day = [order if str(o.id) == str(order.id) else o for o in day]

        routes = current_domain.repository_for(RouteOptimization)
        drivers = [str(command.driver_id)]
        if previous_driver and str(previous_driver) != str(command.driver_id):
            drivers.append(str(previous_driver))
        for driver_id in drivers:
            snapshot = resequence_driver(day, driver_id, command.assigned_by)
            if snapshot is not None:
                routes.add(snapshot)

        for other in day:
            if other.delivery and str(other.delivery.driver_id or "") in drivers:
                repo.add(other)

        logger.info(
            "Driver assigned",
            order_id=str(order.id),
            driver_id=str(command.driver_id),
            previous_driver=str(previous_driver) if previous_driver else None,
            delivery_date=str(as_date(order.requested_delivery_date)),
        )


def assign_driver(command: AssignDriver) -> None:
    """Assign under the locks of every order on the driver runs of that date."""
    order = current_domain.repository_for(Order).get(command.order_id)
    day = current_domain.repository_for(Order).find_for_delivery_date(
        order.requested_delivery_date, *DRIVER_RUN_STATUSES
    )
    keys = [order_key(order.id), *(order_key(o.id) for o in day)]
    with locks.hold(*keys):
        return current_domain.process(command, asynchronous=False)
