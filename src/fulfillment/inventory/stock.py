"""Product and stock management — commands and handler."""

from protean import handle
from protean.fields import Date, Identifier, Integer, String
from protean.utils.globals import current_domain

from fulfillment.domain import fulfillment, logger
from fulfillment.inventory.product import Product
from fulfillment.money import GST_RATE


@fulfillment.command(part_of="Product")
class RegisterProduct:
    sku = String(required=True, max_length=50)
    name = String(required=True, max_length=200)
    unit = String(max_length=20, default="unit")
    unit_price = Integer(required=True, min_value=0)
    tax_rate = Integer(default=GST_RATE, min_value=0)
    low_stock_threshold = Integer(default=0, min_value=0)


@fulfillment.command(part_of="Product")
class ReceiveStock:
    """Book a supplier delivery into stock as a new cost batch."""

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    cost_per_unit = Integer(default=0, min_value=0)
    reference = String(max_length=200)
    expiry_date = Date()


@fulfillment.command(part_of="Product")
class AdjustStock:
    product_id = Identifier(required=True)
    quantity_change = Integer(required=True)
    reason = String(required=True, max_length=500)
    adjusted_by = String(required=True, max_length=100)


@fulfillment.command(part_of="Product")
class ConsumeBatch:
    product_id = Identifier(required=True)
    batch_id = Identifier(required=True)
    quantity = Integer(required=True)


@fulfillment.command_handler(part_of=Product)
class StockHandler:
    @handle(RegisterProduct)
    def register_product(self, command):
        product = Product.register(
            sku=command.sku,
            name=command.name,
            unit_price=command.unit_price,
            tax_rate=command.tax_rate,
            unit=command.unit,
            low_stock_threshold=command.low_stock_threshold,
        )
        current_domain.repository_for(Product).add(product)
        return str(product.id)

    @handle(ReceiveStock)
    def receive_stock(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        batch = product.receive_stock(
            quantity=command.quantity,
            cost_per_unit=command.cost_per_unit,
            reference=command.reference,
            expiry_date=command.expiry_date,
        )
        repo.add(product)
        return str(batch.id)

    @handle(AdjustStock)
    def adjust_stock(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.adjust_stock(
            quantity_change=command.quantity_change,
            reason=command.reason,
            adjusted_by=command.adjusted_by,
        )
        repo.add(product)
        logger.info(
            "Stock adjusted",
            product_id=str(product.id),
            quantity_change=command.quantity_change,
            new_stock=product.current_stock,
        )

    @handle(ConsumeBatch)
    def consume_batch(self, command):
        repo = current_domain.repository_for(Product)
        product = repo.get(command.product_id)
        product.consume_batch(command.batch_id, command.quantity)
        repo.add(product)
