"""Inventory events — every stock movement carries before/after audit fields."""

from protean.fields import Date, DateTime, Identifier, Integer, String

from fulfillment.domain import fulfillment


@fulfillment.event(part_of="Product")
class ProductRegistered:
    __version__ = 1

    product_id = Identifier(required=True)
    sku = String(required=True)
    name = String(required=True)
    unit_price = Integer(required=True)
    tax_rate = Integer(required=True)
    registered_at = DateTime(required=True)


@fulfillment.event(part_of="Product")
class StockReceived:
    """A delivery from a supplier landed as a new cost batch."""

    __version__ = 1

    product_id = Identifier(required=True)
    batch_id = Identifier(required=True)
    quantity = Integer(required=True)
    cost_per_unit = Integer(required=True)
    expiry_date = Date()
    reference = String()
    previous_stock = Integer(required=True)
    new_stock = Integer(required=True)
    received_at = DateTime(required=True)


@fulfillment.event(part_of="Product")
class StockAdjusted:
    __version__ = 1

    product_id = Identifier(required=True)
    quantity_change = Integer(required=True)
    reason = String(required=True)
    adjusted_by = String(required=True)
    previous_stock = Integer(required=True)
    new_stock = Integer(required=True)
    adjusted_at = DateTime(required=True)


@fulfillment.event(part_of="Product")
class StockReserved:
    """Stock left the available pool for a confirmed order."""

    __version__ = 1

    product_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    previous_stock = Integer(required=True)
    new_stock = Integer(required=True)
    reserved_at = DateTime(required=True)


@fulfillment.event(part_of="Product")
class StockRestored:
    """Reserved stock came back, e.g. on order cancellation."""

    __version__ = 1

    product_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    reason = String(required=True)
    previous_stock = Integer(required=True)
    new_stock = Integer(required=True)
    restored_at = DateTime(required=True)


@fulfillment.event(part_of="Product")
class BatchConsumed:
    __version__ = 1

    product_id = Identifier(required=True)
    batch_id = Identifier(required=True)
    quantity = Integer(required=True)
    quantity_remaining = Integer(required=True)
    previous_stock = Integer(required=True)
    new_stock = Integer(required=True)
    consumed_at = DateTime(required=True)


@fulfillment.event(part_of="Product")
class LowStockDetected:
    """Stock dropped to or below the product's low-stock threshold."""

    __version__ = 1

    product_id = Identifier(required=True)
    sku = String(required=True)
    name = String(required=True)
    current_stock = Integer(required=True)
    threshold = Integer(required=True)
    detected_at = DateTime(required=True)
