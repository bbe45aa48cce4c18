"""Product aggregate — sellable item with stock on hand and FIFO cost batches.

``current_stock`` is the authoritative count and never goes negative. Batches
are the cost layers behind it: stock decrements consume the oldest open batch
first, and restored stock comes back as a fresh batch at the latest known
cost.
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import Boolean, Date, DateTime, HasMany, Integer, String

from fulfillment.domain import fulfillment
from fulfillment.errors import AlreadyConsumed, InsufficientStock
from fulfillment.inventory.events import (
    BatchConsumed,
    LowStockDetected,
    ProductRegistered,
    StockAdjusted,
    StockReceived,
    StockReserved,
    StockRestored,
)
from fulfillment.money import GST_RATE


class BatchSource(Enum):
    RECEIPT = "receipt"
    RETURN = "return"
    ADJUSTMENT = "adjustment"


@fulfillment.entity(part_of="Product")
class InventoryBatch:
    """A received lot of stock with its own unit cost."""

    sequence = Integer(required=True, min_value=1)
    initial_quantity = Integer(required=True, min_value=0)
    quantity_remaining = Integer(required=True, min_value=0)
    cost_per_unit = Integer(default=0, min_value=0)
    source = String(choices=BatchSource, default=BatchSource.RECEIPT.value)
    reference = String(max_length=200)
    expiry_date = Date()
    received_at = DateTime(required=True)
    is_consumed = Boolean(default=False)


@fulfillment.aggregate
class Product:
    sku = String(required=True, max_length=50)
    name = String(required=True, max_length=200)
    unit = String(max_length=20, default="unit")
    unit_price = Integer(required=True, min_value=0)
    tax_rate = Integer(default=GST_RATE, min_value=0)
    current_stock = Integer(default=0, min_value=0)
    low_stock_threshold = Integer(default=0, min_value=0)
    batches = HasMany(InventoryBatch)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def register(cls, sku, name, unit_price, tax_rate=GST_RATE, unit="unit", low_stock_threshold=0):
        now = datetime.now(UTC)
        product = cls(
            sku=sku,
            name=name,
            unit=unit,
            unit_price=unit_price,
            tax_rate=tax_rate,
            low_stock_threshold=low_stock_threshold,
            created_at=now,
            updated_at=now,
        )
        product.raise_(
            ProductRegistered(
                product_id=str(product.id),
                sku=sku,
                name=name,
                unit_price=unit_price,
                tax_rate=tax_rate,
                registered_at=now,
            )
        )
        return product

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _open_batches(self):
        return sorted(
            (b for b in (self.batches or []) if not b.is_consumed and b.quantity_remaining > 0),
            key=lambda b: b.sequence,
        )

    def _next_batch_sequence(self) -> int:
        return max((b.sequence for b in (self.batches or [])), default=0) + 1

    def latest_cost(self) -> int:
        if not self.batches:
            return 0
        return max(self.batches, key=lambda b: b.sequence).cost_per_unit

    def _add_batch(self, quantity, cost_per_unit, source, reference=None, expiry_date=None):
        batch = InventoryBatch(
            sequence=self._next_batch_sequence(),
            initial_quantity=quantity,
            quantity_remaining=quantity,
            cost_per_unit=cost_per_unit,
            source=source.value,
            reference=reference,
            expiry_date=expiry_date,
            received_at=datetime.now(UTC),
        )
        self.add_batches(batch)
        return batch

    def _consume_fifo(self, quantity: int) -> None:
        """Draw ``quantity`` from open batches, oldest first.

        Batches are an optional cost layer: stock recorded without a batch is
        drawn from ``current_stock`` alone.
        """
        remaining = quantity
        for batch in self._open_batches():
            if remaining == 0:
                break
            taken = min(batch.quantity_remaining, remaining)
            batch.quantity_remaining -= taken
            if batch.quantity_remaining == 0:
                batch.is_consumed = True
            remaining -= taken

    def _check_low_stock(self, previous_stock: int) -> None:
        """Raise LowStockDetected when stock crosses down to the threshold."""
        if self.low_stock_threshold and previous_stock > self.low_stock_threshold >= self.current_stock:
            self.raise_(
                LowStockDetected(
                    product_id=str(self.id),
                    sku=self.sku,
                    name=self.name,
                    current_stock=self.current_stock,
                    threshold=self.low_stock_threshold,
                    detected_at=datetime.now(UTC),
                )
            )

    def _shortage(self, requested: int) -> dict:
        return {
            "product_id": str(self.id),
            "sku": self.sku,
            "requested": requested,
            "available": self.current_stock,
        }

    # -------------------------------------------------------------------
    # Stock movements
    # -------------------------------------------------------------------
    def receive_stock(self, quantity, cost_per_unit=0, reference=None, expiry_date=None):
        """Receive a supplier delivery as a new batch."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        previous = self.current_stock
        batch = self._add_batch(quantity, cost_per_unit, BatchSource.RECEIPT, reference, expiry_date)
        self.current_stock = previous + quantity
        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            StockReceived(
                product_id=str(self.id),
                batch_id=str(batch.id),
                quantity=quantity,
                cost_per_unit=cost_per_unit,
                expiry_date=expiry_date,
                reference=reference,
                previous_stock=previous,
                new_stock=self.current_stock,
                received_at=now,
            )
        )
        return batch

    def adjust_stock(self, quantity_change, reason, adjusted_by):
        """Apply a signed manual adjustment (count corrections, spoilage)."""
        if not reason:
            raise ValidationError({"reason": ["Reason is required for stock adjustments"]})
        if quantity_change == 0:
            raise ValidationError({"quantity_change": ["Adjustment cannot be zero"]})

        previous = self.current_stock
        new_stock = previous + quantity_change
        if new_stock < 0:
            raise InsufficientStock(
                [self._shortage(-quantity_change)],
                message=f"Adjustment would take {self.sku} below zero: {new_stock}",
            )

        if quantity_change < 0:
            self._consume_fifo(-quantity_change)
        else:
            self._add_batch(quantity_change, self.latest_cost(), BatchSource.ADJUSTMENT, reason)
        self.current_stock = new_stock
        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            StockAdjusted(
                product_id=str(self.id),
                quantity_change=quantity_change,
                reason=reason,
                adjusted_by=adjusted_by,
                previous_stock=previous,
                new_stock=new_stock,
                adjusted_at=now,
            )
        )
        self._check_low_stock(previous)

    def reserve(self, order_id, quantity):
        """Take ``quantity`` out of the available pool for an order."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if quantity > self.current_stock:
            raise InsufficientStock([self._shortage(quantity)])

        previous = self.current_stock
        self._consume_fifo(quantity)
        self.current_stock = previous - quantity
        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            StockReserved(
                product_id=str(self.id),
                order_id=str(order_id),
                quantity=quantity,
                previous_stock=previous,
                new_stock=self.current_stock,
                reserved_at=now,
            )
        )
        self._check_low_stock(previous)

    def restore(self, order_id, quantity, reason):
        """Return previously reserved stock as a return batch at the latest cost."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        previous = self.current_stock
        self._add_batch(quantity, self.latest_cost(), BatchSource.RETURN, f"Order {order_id}: {reason}")
        self.current_stock = previous + quantity
        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            StockRestored(
                product_id=str(self.id),
                order_id=str(order_id),
                quantity=quantity,
                reason=reason,
                previous_stock=previous,
                new_stock=self.current_stock,
                restored_at=now,
            )
        )

    def consume_batch(self, batch_id, quantity):
        """Write off ``quantity`` from one specific batch (spoilage, expiry)."""
        batch = next((b for b in (self.batches or []) if str(b.id) == str(batch_id)), None)
        if batch is None:
            raise ValidationError({"batch_id": ["Batch not found"]})
        if batch.is_consumed:
            raise AlreadyConsumed()
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if quantity > batch.quantity_remaining or quantity > self.current_stock:
            raise InsufficientStock(
                [
                    {
                        "product_id": str(self.id),
                        "sku": self.sku,
                        "requested": quantity,
                        "available": min(batch.quantity_remaining, self.current_stock),
                    }
                ],
                message="Consumption would take the batch below zero",
            )

        previous = self.current_stock
        batch.quantity_remaining -= quantity
        if batch.quantity_remaining == 0:
            batch.is_consumed = True
        self.current_stock = previous - quantity
        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            BatchConsumed(
                product_id=str(self.id),
                batch_id=str(batch.id),
                quantity=quantity,
                quantity_remaining=batch.quantity_remaining,
                previous_stock=previous,
                new_stock=self.current_stock,
                consumed_at=now,
            )
        )
        self._check_low_stock(previous)
