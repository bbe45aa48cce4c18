"""Backorder resolution — commands and handler.

An order parked in ``awaiting_approval`` is resolved exactly once by an admin
or manager: approved in full, approved with reduced quantities, or rejected.
Approval reserves stock and confirms the order in the same unit of work, so
an approval that no longer fits the stock on hand fails without side effects.
"""

import json

from protean import handle
from protean.fields import Date, Identifier, String, Text
from protean.utils.globals import current_domain

from fulfillment.domain import fulfillment, logger
from fulfillment.locks import process_locked
from fulfillment.order.lifecycle import OrderLifecycle, order_lock_keys
from fulfillment.order.order import Order, OrderStatus
from fulfillment.roles import assert_privileged


@fulfillment.command(part_of="Order")
class ApproveBackorder:
    """Approve a backorder; ``approved_quantities`` (JSON product_id → qty) makes it partial."""

    order_id = Identifier(required=True)
    approved_by = String(required=True, max_length=100)
    role = String(required=True, max_length=20)
    approved_quantities = Text()
    notes = Text()
    expected_fulfillment = Date()


@fulfillment.command(part_of="Order")
class RejectBackorder:
    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    rejected_by = String(required=True, max_length=100)
    role = String(required=True, max_length=20)


@fulfillment.command_handler(part_of=Order)
class BackorderHandler:
    @handle(ApproveBackorder)
    def approve_backorder(self, command):
        assert_privileged(command.role, "resolve backorders")
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        quantities = command.approved_quantities
        if isinstance(quantities, str):
            quantities = json.loads(quantities) if quantities.strip() else None
        if quantities:
            quantities = {str(product_id): int(qty) for product_id, qty in quantities.items()}

        order.approve_backorder(
            approved_by=command.approved_by,
            approved_quantities=quantities,
            notes=command.notes,
            expected_fulfillment=command.expected_fulfillment,
        )
        OrderLifecycle().transition(
            order,
            OrderStatus.CONFIRMED,
            actor=command.approved_by,
            role=command.role,
            note=f"Backorder {order.backorder_status.replace('_', ' ')}",
        )
        repo.add(order)
        logger.info(
            "Backorder approved",
            order_id=str(order.id),
            order_number=order.order_number,
            backorder_status=order.backorder_status,
            total=order.totals.total,
        )

    @handle(RejectBackorder)
    def reject_backorder(self, command):
        assert_privileged(command.role, "resolve backorders")
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.reject_backorder(reason=command.reason, rejected_by=command.rejected_by)
        OrderLifecycle().transition(
            order,
            OrderStatus.CANCELLED,
            actor=command.rejected_by,
            role=command.role,
            note=command.reason,
        )
        repo.add(order)
        logger.info("Backorder rejected", order_id=str(order.id), order_number=order.order_number)


def approve_backorder(command: ApproveBackorder):
    return process_locked(command, order_lock_keys(command.order_id))


def reject_backorder(command: RejectBackorder):
    return process_locked(command, order_lock_keys(command.order_id))
