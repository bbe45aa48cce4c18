"""Dispatch, return and delivery — commands and handler.

Drivers move ready orders out, bring undeliverable ones back, and confirm
delivery with a proof reference. Delivery finalizes the order's stock and,
once committed, triggers the accounting job.
"""

from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from fulfillment.domain import fulfillment, logger
from fulfillment.locks import order_key, process_locked
from fulfillment.order.lifecycle import OrderLifecycle, order_lock_keys
from fulfillment.order.order import Order, OrderStatus


@fulfillment.command(part_of="Order")
class DispatchOrder:
    order_id = Identifier(required=True)
    dispatched_by = String(required=True, max_length=100)
    role = String(required=True, max_length=20)


@fulfillment.command(part_of="Order")
class ReturnToWarehouse:
    """An out-for-delivery order came back undelivered."""

    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    returned_by = String(required=True, max_length=100)
    role = String(required=True, max_length=20)


@fulfillment.command(part_of="Order")
class CompleteDelivery:
    order_id = Identifier(required=True)
    delivered_by = String(required=True, max_length=100)
    role = String(required=True, max_length=20)
    proof_of_delivery = String(max_length=500)


@fulfillment.command_handler(part_of=Order)
class DeliveryHandler:
    @handle(DispatchOrder)
    def dispatch(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        OrderLifecycle().transition(
            order,
            OrderStatus.OUT_FOR_DELIVERY,
            actor=command.dispatched_by,
            role=command.role,
            note="Out for delivery",
        )
        order.record_dispatch()
        repo.add(order)

    @handle(ReturnToWarehouse)
    def return_to_warehouse(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.record_return(command.reason)
        OrderLifecycle().transition(
            order,
            OrderStatus.READY_FOR_DELIVERY,
            actor=command.returned_by,
            role=command.role,
            note=f"Returned to warehouse: {command.reason}",
        )
        repo.add(order)

    @handle(CompleteDelivery)
    def complete_delivery(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        OrderLifecycle().transition(
            order,
            OrderStatus.DELIVERED,
            actor=command.delivered_by,
            role=command.role,
            note="Delivered",
        )
        order.record_delivery(command.proof_of_delivery)
        repo.add(order)
        logger.info(
            "Order delivered",
            order_id=str(order.id),
            order_number=order.order_number,
            proof_of_delivery=command.proof_of_delivery,
        )


def dispatch_order(command: DispatchOrder):
    return process_locked(command, [order_key(command.order_id)])


def return_to_warehouse(command: ReturnToWarehouse):
    return process_locked(command, [order_key(command.order_id)])


def complete_delivery(command: CompleteDelivery):
    return process_locked(command, order_lock_keys(command.order_id))
