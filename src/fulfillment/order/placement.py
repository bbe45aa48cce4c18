"""Order placement — command and handler.

Placement runs the whole admission pipeline in one unit of work: customer
eligibility, line pricing from the product catalogue, the credit check, then
the stock check. Sufficient stock confirms the order (reserving stock);
any shortfall parks it in ``awaiting_approval`` with nothing reserved.
"""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, Date, Identifier, String, Text
from protean.utils.globals import current_domain

from fulfillment.customer.credit import CreditLedger
from fulfillment.customer.customer import Customer
from fulfillment.domain import fulfillment, logger
from fulfillment.inventory.ledger import InventoryLedger
from fulfillment.inventory.product import Product
from fulfillment.locks import NUMBERING_KEY, customer_key, process_locked, product_key
from fulfillment.money import calculate_totals
from fulfillment.order.lifecycle import OrderLifecycle
from fulfillment.order.numbering import next_order_number
from fulfillment.order.order import Order, OrderStatus
from fulfillment.roles import ActorRole


@fulfillment.command(part_of="Order")
class PlaceOrder:
    """Submit an order for a customer.

    ``items`` is a JSON list of ``{"product_id", "quantity"}``;
    ``delivery_address`` a JSON object with street, suburb, state, postcode,
    zone and optional latitude/longitude.
    """

    customer_id = Identifier(required=True)
    items = Text(required=True)
    delivery_address = Text(required=True)
    requested_delivery_date = Date(required=True)
    placed_by = String(required=True, max_length=100)
    role = String(max_length=20, default=ActorRole.CUSTOMER.value)
    bypass_credit_limit = Boolean(default=False)
    bypass_reason = String(max_length=500)


def _load(value):
    return json.loads(value) if isinstance(value, str) else value


@fulfillment.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        requested = _load(command.items)
        address = _load(command.delivery_address)
        if not requested:
            raise ValidationError({"items": ["An order needs at least one line"]})
        for line in requested:
            if int(line.get("quantity", 0)) <= 0:
                raise ValidationError({"quantity": [f"Quantity for product {line.get('product_id')} must be positive"]})

        customer = current_domain.repository_for(Customer).get(command.customer_id)
        customer.assert_can_place_orders()

        products = current_domain.repository_for(Product)
        lines = []
        for line in requested:
            product = products.get(line["product_id"])
            lines.append(
                {
                    "product_id": str(product.id),
                    "sku": product.sku,
                    "product_name": product.name,
                    "quantity": int(line["quantity"]),
                    "unit_price": product.unit_price,
                    "tax_rate": product.tax_rate,
                }
            )

        total = calculate_totals((li["quantity"], li["unit_price"], li["tax_rate"]) for li in lines)["total"]
        credit_bypass = CreditLedger().check_and_reserve(
            customer,
            total,
            actor=command.placed_by,
            role=command.role,
            bypass_reason=command.bypass_reason,
            bypass=bool(command.bypass_credit_limit),
        )

        order = Order.create(
            order_number=next_order_number(),
            customer_id=str(customer.id),
            lines=lines,
            delivery_address=address,
            requested_delivery_date=command.requested_delivery_date,
            placed_by=command.placed_by,
            role=command.role,
            credit_bypass=credit_bypass,
        )

        ledger = InventoryLedger()
        lifecycle = OrderLifecycle(ledger)
        shortfalls = ledger.assess((li["product_id"], li["quantity"]) for li in lines)
        if shortfalls:
            order.flag_backorder(shortfalls)
            lifecycle.transition(
                order,
                OrderStatus.AWAITING_APPROVAL,
                actor="system",
                role=ActorRole.SYSTEM.value,
                note="Insufficient stock; awaiting backorder approval",
            )
        else:
            lifecycle.transition(
                order,
                OrderStatus.CONFIRMED,
                actor="system",
                role=ActorRole.SYSTEM.value,
                note="Credit and stock checks passed",
            )

        current_domain.repository_for(Order).add(order)
        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_number=order.order_number,
            customer_id=str(customer.id),
            total=order.totals.total,
            status=order.status,
        )
        return str(order.id)


def place_order(command: PlaceOrder) -> str:
    """Place an order while holding the numbering lock and its product locks."""
    product_ids = {line["product_id"] for line in _load(command.items) or []}
    keys = [NUMBERING_KEY, customer_key(command.customer_id), *(product_key(pid) for pid in product_ids)]
    return process_locked(command, keys)
