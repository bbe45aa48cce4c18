"""Order status changes requested by actors — commands and handler."""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from fulfillment.domain import fulfillment
from fulfillment.locks import process_locked
from fulfillment.order.lifecycle import OrderLifecycle, order_lock_keys
from fulfillment.order.order import Order, OrderStatus


@fulfillment.command(part_of="Order")
class UpdateOrderStatus:
    """Move an order to ``status`` on behalf of an actor."""

    order_id = Identifier(required=True)
    status = String(required=True, max_length=30)
    changed_by = String(required=True, max_length=100)
    role = String(required=True, max_length=20)
    note = String(max_length=500)


@fulfillment.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    cancelled_by = String(required=True, max_length=100)
    role = String(required=True, max_length=20)


def _parse_status(value: str) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise ValidationError({"status": [f"Unknown order status '{value}'"]}) from None


@fulfillment.command_handler(part_of=Order)
class OrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        OrderLifecycle().transition(
            order,
            _parse_status(command.status),
            actor=command.changed_by,
            role=command.role,
            note=command.note,
        )
        repo.add(order)
        return order.status

    @handle(CancelOrder)
    def cancel_order(self, command):
        if not command.reason or not command.reason.strip():
            raise ValidationError({"reason": ["A cancellation reason is required"]})
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        OrderLifecycle().transition(
            order,
            OrderStatus.CANCELLED,
            actor=command.cancelled_by,
            role=command.role,
            note=command.reason,
        )
        repo.add(order)


def update_order_status(command: UpdateOrderStatus):
    return process_locked(command, order_lock_keys(command.order_id))


def cancel_order(command: CancelOrder):
    return process_locked(command, order_lock_keys(command.order_id))
