"""Line quantity corrections — command and handler.

Corrections happen mid-pack when the warehouse cannot supply a full line or
the customer phones through a change. Money is recomputed and the stock
reservation follows the new quantity; packed flags are untouched.
"""

from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from fulfillment.domain import fulfillment, logger
from fulfillment.inventory.ledger import InventoryLedger
from fulfillment.locks import process_locked
from fulfillment.order.lifecycle import order_lock_keys
from fulfillment.order.order import Order


@fulfillment.command(part_of="Order")
class CorrectItemQuantity:
    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    quantity = Integer(required=True)
    corrected_by = String(required=True, max_length=100)


@fulfillment.command_handler(part_of=Order)
class ModificationHandler:
    @handle(CorrectItemQuantity)
    def correct_item_quantity(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        previous_total = order.totals.total
        item = order.correct_item_quantity(command.item_id, command.quantity, command.corrected_by)
        if item.reserved_quantity:
            InventoryLedger().adjust_line(order, item, item.quantity)
        repo.add(order)
        logger.info(
            "Item quantity corrected",
            order_id=str(order.id),
            sku=item.sku,
            quantity=item.quantity,
            previous_total=previous_total,
            total=order.totals.total,
        )


def correct_item_quantity(command: CorrectItemQuantity):
    return process_locked(command, order_lock_keys(command.order_id))
