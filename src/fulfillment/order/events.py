"""Order domain events — past-tense facts about order state changes."""

from protean.fields import Boolean, DateTime, Identifier, Integer, String, Text

from fulfillment.domain import fulfillment


@fulfillment.event(part_of="Order")
class OrderPlaced:
    """A customer order was accepted at checkout."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    items = Text(required=True)  # JSON list of line dicts
    subtotal = Integer(required=True)
    tax = Integer(required=True)
    total = Integer(required=True)
    requested_delivery_date = String(required=True)
    credit_bypassed = Boolean(default=False)
    placed_by = String(required=True)
    placed_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class OrderStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    from_status = String(required=True)
    to_status = String(required=True)
    total = Integer(required=True)
    changed_by = String(required=True)
    role = String(required=True)
    note = String()
    changed_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class BackorderFlagged:
    """Requested quantities exceed stock; the order waits for approval."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    shortfalls = Text(required=True)  # JSON list of shortfall records
    flagged_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class BackorderApproved:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    partial = Boolean(required=True)
    approved_quantities = Text()  # JSON {product_id: quantity}
    total = Integer(required=True)
    approved_by = String(required=True)
    approved_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class BackorderRejected:
    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    customer_id = Identifier(required=True)
    reason = String(required=True)
    rejected_by = String(required=True)
    rejected_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class ItemQuantityCorrected:
    __version__ = 1

    order_id = Identifier(required=True)
    item_id = Identifier(required=True)
    sku = String(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    total = Integer(required=True)
    corrected_by = String(required=True)
    corrected_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class ItemPackToggled:
    """A packer marked one line's sku packed or unpacked."""

    __version__ = 1

    order_id = Identifier(required=True)
    sku = String(required=True)
    packed = Boolean(required=True)
    packed_count = Integer(required=True)
    item_count = Integer(required=True)
    version = Integer(required=True)
    packed_by = String(required=True)
    toggled_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class PackingReset:
    __version__ = 1

    order_id = Identifier(required=True)
    reason = String(required=True)
    reset_by = String(required=True)
    reset_at = DateTime(required=True)


@fulfillment.event(part_of="Order")
class DriverAssigned:
    __version__ = 1

    order_id = Identifier(required=True)
    driver_id = Identifier(required=True)
    driver_name = String()
    delivery_date = String(required=True)
    assigned_at = DateTime(required=True)
