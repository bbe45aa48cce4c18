"""Order aggregate (CQRS) — the document every actor in the warehouse edits.

State Machine:
    PENDING → CONFIRMED → PACKING → READY_FOR_DELIVERY → OUT_FOR_DELIVERY → DELIVERED
    PENDING → AWAITING_APPROVAL → CONFIRMED   (backorder approval)
    PACKING → CONFIRMED                       (idle timeout / packing reset)
    READY_FOR_DELIVERY → PACKING              (item unpacked after ready)
    OUT_FOR_DELIVERY → READY_FOR_DELIVERY     (returned to warehouse)
    {every non-terminal status} → CANCELLED

DELIVERED and CANCELLED are terminal: the order is read-only afterwards.

The aggregate validates and records transitions; inventory side effects of a
transition belong to ``OrderLifecycle``. ``packing`` and ``delivery`` are value
objects replaced wholesale on every write. The packing record carries its own
version counter for optimistic concurrency between packers.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    Date,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)

from fulfillment.domain import fulfillment
from fulfillment.errors import AlreadyApproved, ConcurrentModification, InvalidTransition, NotAuthorized
from fulfillment.money import CURRENCY, calculate_totals, line_subtotal, line_tax
from fulfillment.order.events import (
    BackorderApproved,
    BackorderFlagged,
    BackorderRejected,
    DriverAssigned,
    ItemPackToggled,
    ItemQuantityCorrected,
    OrderPlaced,
    OrderStatusChanged,
    PackingReset,
)
from fulfillment.roles import ActorRole, parse_role


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    AWAITING_APPROVAL = "awaiting_approval"
    CONFIRMED = "confirmed"
    PACKING = "packing"
    READY_FOR_DELIVERY = "ready_for_delivery"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class BackorderStatus(Enum):
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    PARTIALLY_APPROVED = "partially_approved"
    REJECTED = "rejected"


class Zone(Enum):
    NORTH = "north"
    EAST = "east"
    SOUTH = "south"
    WEST = "west"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.AWAITING_APPROVAL, OrderStatus.CANCELLED},
    OrderStatus.AWAITING_APPROVAL: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.PACKING, OrderStatus.CANCELLED},
    OrderStatus.PACKING: {OrderStatus.READY_FOR_DELIVERY, OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.READY_FOR_DELIVERY: {OrderStatus.OUT_FOR_DELIVERY, OrderStatus.PACKING, OrderStatus.CANCELLED},
    OrderStatus.OUT_FOR_DELIVERY: {
        OrderStatus.DELIVERED,
        OrderStatus.READY_FOR_DELIVERY,
        OrderStatus.CANCELLED,
    },
    OrderStatus.DELIVERED: set(),  # terminal
    OrderStatus.CANCELLED: set(),  # terminal
}

_TERMINAL_STATUSES = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}

# Statuses in which the packing record may be edited.
_PACKABLE_STATUSES = {OrderStatus.CONFIRMED, OrderStatus.PACKING, OrderStatus.READY_FOR_DELIVERY}

_ADMINS = {ActorRole.ADMIN, ActorRole.MANAGER}

# Who may request each transition. The system role (placement, timers,
# automatic pack transitions) may perform any legal transition.
_ROLE_PERMISSIONS = {
    (OrderStatus.PENDING, OrderStatus.CONFIRMED): _ADMINS | {ActorRole.SALES},
    (OrderStatus.PENDING, OrderStatus.AWAITING_APPROVAL): _ADMINS | {ActorRole.SALES},
    (OrderStatus.PENDING, OrderStatus.CANCELLED): _ADMINS | {ActorRole.SALES, ActorRole.CUSTOMER},
    (OrderStatus.AWAITING_APPROVAL, OrderStatus.CONFIRMED): _ADMINS,
    (OrderStatus.AWAITING_APPROVAL, OrderStatus.CANCELLED): _ADMINS,
    (OrderStatus.CONFIRMED, OrderStatus.PACKING): _ADMINS | {ActorRole.PACKER},
    (OrderStatus.CONFIRMED, OrderStatus.CANCELLED): _ADMINS | {ActorRole.SALES},
    (OrderStatus.PACKING, OrderStatus.READY_FOR_DELIVERY): _ADMINS | {ActorRole.PACKER},
    (OrderStatus.PACKING, OrderStatus.CONFIRMED): _ADMINS,
    (OrderStatus.PACKING, OrderStatus.CANCELLED): _ADMINS,
    (OrderStatus.READY_FOR_DELIVERY, OrderStatus.OUT_FOR_DELIVERY): _ADMINS | {ActorRole.DRIVER},
    (OrderStatus.READY_FOR_DELIVERY, OrderStatus.PACKING): _ADMINS | {ActorRole.PACKER},
    (OrderStatus.READY_FOR_DELIVERY, OrderStatus.CANCELLED): _ADMINS,
    (OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED): _ADMINS | {ActorRole.DRIVER},
    (OrderStatus.OUT_FOR_DELIVERY, OrderStatus.READY_FOR_DELIVERY): _ADMINS | {ActorRole.DRIVER},
    (OrderStatus.OUT_FOR_DELIVERY, OrderStatus.CANCELLED): _ADMINS,
}

# Orders in these statuses count against the customer's credit limit.
CREDIT_CONSUMING_STATUSES = frozenset(
    {
        OrderStatus.PENDING,
        OrderStatus.CONFIRMED,
        OrderStatus.PACKING,
        OrderStatus.READY_FOR_DELIVERY,
        OrderStatus.OUT_FOR_DELIVERY,
    }
)

MIN_REJECTION_REASON_LENGTH = 10


def valid_transitions(status: OrderStatus) -> set[OrderStatus]:
    return set(_VALID_TRANSITIONS.get(status, set()))


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
@fulfillment.value_object(part_of="Order")
class OrderTotals:
    """Order money in integer minor units."""

    subtotal = Integer(default=0)
    tax = Integer(default=0)
    total = Integer(default=0)
    currency = String(max_length=3, default=CURRENCY)


@fulfillment.value_object(part_of="Order")
class DeliveryAddress:
    street = String(required=True, max_length=255)
    suburb = String(required=True, max_length=100)
    state = String(max_length=50)
    postcode = String(required=True, max_length=10)
    zone = String(required=True, choices=Zone)
    latitude = Float()
    longitude = Float()

    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def one_line(self) -> str:
        parts = [self.street, self.suburb, self.state, self.postcode]
        return ", ".join(p for p in parts if p)


@fulfillment.value_object(part_of="Order")
class CreditBypass:
    """Audit record of an order accepted over the customer's credit limit."""

    reason = String(required=True, max_length=500)
    approved_by = String(required=True, max_length=100)
    approved_at = DateTime(required=True)


@fulfillment.value_object(part_of="Order")
class BackorderReview:
    reviewed_by = String(max_length=100)
    reviewed_at = DateTime()
    notes = Text()
    expected_fulfillment = Date()


@fulfillment.value_object(part_of="Order")
class PackingRecord:
    packing_sequence = Integer()
    driver_packing_sequence = Integer()
    packed_skus = Text(default="[]")  # JSON sorted list, set semantics
    version = Integer(default=0)
    last_activity_at = DateTime()
    last_packed_by = String(max_length=100)
    paused_at = DateTime()
    notes = Text()

    def sku_set(self) -> set[str]:
        return set(json.loads(self.packed_skus or "[]"))


@fulfillment.value_object(part_of="Order")
class DeliveryRecord:
    delivery_sequence = Integer()
    estimated_arrival = DateTime()
    route_id = Identifier()
    driver_id = Identifier()
    driver_name = String(max_length=150)
    driver_delivery_sequence = Integer()
    dispatched_at = DateTime()
    delivered_at = DateTime()
    proof_of_delivery = String(max_length=500)
    returned_at = DateTime()
    return_reason = String(max_length=500)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@fulfillment.entity(part_of="Order")
class OrderItem:
    product_id = Identifier(required=True)
    sku = String(required=True, max_length=50)
    product_name = String(max_length=200)
    quantity = Integer(required=True, min_value=1)
    unit_price = Integer(required=True, min_value=0)
    tax_rate = Integer(default=0, min_value=0)
    subtotal = Integer(default=0)
    tax_amount = Integer(default=0)
    reserved_quantity = Integer(default=0, min_value=0)
    position = Integer(required=True)

    def recalculate(self) -> None:
        self.subtotal = line_subtotal(self.quantity, self.unit_price)
        self.tax_amount = line_tax(self.quantity, self.unit_price, self.tax_rate)


@fulfillment.entity(part_of="Order")
class StockShortfall:
    product_id = Identifier(required=True)
    sku = String(max_length=50)
    requested = Integer(required=True)
    available = Integer(required=True)
    shortfall = Integer(required=True)
    position = Integer(required=True)


@fulfillment.entity(part_of="Order")
class StatusChange:
    status = String(required=True, choices=OrderStatus)
    changed_at = DateTime(required=True)
    changed_by = String(required=True, max_length=100)
    role = String(max_length=20)
    note = String(max_length=500)
    position = Integer(required=True)


# ---------------------------------------------------------------------------
# Aggregate Root (CQRS)
# ---------------------------------------------------------------------------
@fulfillment.aggregate
class Order:
    order_number = String(required=True, max_length=20)
    customer_id = Identifier(required=True)
    items = HasMany(OrderItem)
    totals = ValueObject(OrderTotals)
    delivery_address = ValueObject(DeliveryAddress)
    requested_delivery_date = Date(required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    backorder_status = String(choices=BackorderStatus)
    shortfalls = HasMany(StockShortfall)
    backorder_review = ValueObject(BackorderReview)
    credit_bypass = ValueObject(CreditBypass)
    packing = ValueObject(PackingRecord)
    delivery = ValueObject(DeliveryRecord)
    status_history = HasMany(StatusChange)
    stock_reserved = Boolean(default=False)
    stock_finalized = Boolean(default=False)
    cancellation_reason = String(max_length=500)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        order_number: str,
        customer_id: str,
        lines: list[dict],
        delivery_address: dict,
        requested_delivery_date,
        placed_by: str,
        role: str = ActorRole.CUSTOMER.value,
        credit_bypass: CreditBypass | None = None,
    ):
        """Create a pending order from priced lines.

        Each line dict carries ``product_id``, ``sku``, ``product_name``,
        ``quantity``, ``unit_price`` and ``tax_rate`` as snapshotted at
        checkout.
        """
        if not lines:
            raise ValidationError({"items": ["An order needs at least one line"]})
        for line in lines:
            if line["quantity"] <= 0:
                raise ValidationError({"quantity": [f"Quantity for {line['sku']} must be positive"]})

        now = datetime.now(UTC)
        order = cls(
            order_number=order_number,
            customer_id=customer_id,
            delivery_address=DeliveryAddress(**delivery_address),
            requested_delivery_date=requested_delivery_date,
            status=OrderStatus.PENDING.value,
            credit_bypass=credit_bypass,
            packing=PackingRecord(),
            delivery=DeliveryRecord(),
            created_at=now,
            updated_at=now,
        )
        for position, line in enumerate(lines, start=1):
            item = OrderItem(
                product_id=line["product_id"],
                sku=line["sku"],
                product_name=line.get("product_name"),
                quantity=line["quantity"],
                unit_price=line["unit_price"],
                tax_rate=line.get("tax_rate", 0),
                position=position,
            )
            item.recalculate()
            order.add_items(item)
        order._recalculate_totals()
        order._append_history(OrderStatus.PENDING, placed_by, role, "Order placed", now)

        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                customer_id=str(customer_id),
                items=json.dumps([order._line_dict(item) for item in order.sorted_items()]),
                subtotal=order.totals.subtotal,
                tax=order.totals.tax,
                total=order.totals.total,
                requested_delivery_date=str(requested_delivery_date),
                credit_bypassed=credit_bypass is not None,
                placed_by=placed_by,
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    @staticmethod
    def _line_dict(item) -> dict:
        return {
            "product_id": str(item.product_id),
            "sku": item.sku,
            "quantity": item.quantity,
            "unit_price": item.unit_price,
            "tax_rate": item.tax_rate,
        }

    def sorted_items(self) -> list:
        return sorted(self.items or [], key=lambda i: i.position)

    def sorted_shortfalls(self) -> list:
        return sorted(self.shortfalls or [], key=lambda s: s.position)

    def history(self) -> list:
        return sorted(self.status_history or [], key=lambda h: h.position)

    def current_status(self) -> OrderStatus:
        return OrderStatus(self.status)

    def is_terminal(self) -> bool:
        return self.current_status() in _TERMINAL_STATUSES

    def _item(self, item_id):
        item = next((i for i in (self.items or []) if str(i.id) == str(item_id)), None)
        if item is None:
            raise ValidationError({"item_id": [f"Item {item_id} is not part of order {self.order_number}"]})
        return item

    def _recalculate_totals(self) -> None:
        sums = calculate_totals((i.quantity, i.unit_price, i.tax_rate) for i in self.items or [])
        currency = self.totals.currency if self.totals else CURRENCY
        self.totals = OrderTotals(subtotal=sums["subtotal"], tax=sums["tax"], total=sums["total"], currency=currency)

    def _append_history(self, status: OrderStatus, actor: str, role: str, note: str | None, at: datetime) -> None:
        self.add_status_history(
            StatusChange(
                status=status.value,
                changed_at=at,
                changed_by=actor,
                role=role,
                note=note,
                position=len(self.status_history or []) + 1,
            )
        )

    def _assert_mutable(self) -> None:
        if self.is_terminal():
            raise ValidationError({"status": [f"Order is {self.status} and can no longer be modified"]})

    def _assert_packable(self) -> None:
        if self.current_status() not in _PACKABLE_STATUSES:
            raise ValidationError({"status": [f"Cannot edit packing while order is {self.status}"]})

    # -------------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------------
    def can_transition_to(self, target: OrderStatus, role: str | None = None) -> bool:
        current = self.current_status()
        if target not in _VALID_TRANSITIONS.get(current, set()):
            return False
        if role is None:
            return True
        actor_role = parse_role(role)
        return actor_role == ActorRole.SYSTEM or actor_role in _ROLE_PERMISSIONS.get((current, target), set())

    def _assert_can_transition(self, target: OrderStatus, role: str) -> None:
        current = self.current_status()
        if current == target:
            raise InvalidTransition(current.value, target.value, f"Order is already {target.value}")
        if current in _TERMINAL_STATUSES:
            raise InvalidTransition(
                current.value, target.value, f"Cannot transition from terminal status {current.value}"
            )
        if target not in _VALID_TRANSITIONS.get(current, set()):
            raise InvalidTransition(current.value, target.value)
        actor_role = parse_role(role)
        if actor_role != ActorRole.SYSTEM and actor_role not in _ROLE_PERMISSIONS.get((current, target), set()):
            raise NotAuthorized(role, f"move orders from {current.value} to {target.value}")

    def transition_to(self, target: OrderStatus, actor: str, role: str, note: str | None = None) -> OrderStatus:
        """Validate and record a status change; returns the previous status.

        An illegal or unauthorised request raises before anything changes.
        """
        self._assert_can_transition(target, role)

        previous = self.current_status()
        now = datetime.now(UTC)
        self.status = target.value
        self.updated_at = now
        self._append_history(target, actor, role, note, now)
        self.raise_(
            OrderStatusChanged(
                order_id=str(self.id),
                order_number=self.order_number,
                customer_id=str(self.customer_id),
                from_status=previous.value,
                to_status=target.value,
                total=self.totals.total if self.totals else 0,
                changed_by=actor,
                role=role,
                note=note,
                changed_at=now,
            )
        )
        return previous

    # -------------------------------------------------------------------
    # Inventory bookkeeping
    # -------------------------------------------------------------------
    def record_reservation(self, item_id, quantity: int) -> None:
        self._item(item_id).reserved_quantity = quantity
        self.stock_reserved = any(i.reserved_quantity for i in self.items or [])

    def finalize_stock(self) -> None:
        self.stock_finalized = True

    # -------------------------------------------------------------------
    # Backorder workflow
    # -------------------------------------------------------------------
    def flag_backorder(self, shortfalls: list[dict]) -> None:
        """Record the per-product shortfall that sends this order to approval."""
        if self.current_status() != OrderStatus.PENDING:
            raise ValidationError({"status": ["Only pending orders can be flagged as backorders"]})
        if not shortfalls:
            raise ValidationError({"shortfalls": ["A backorder needs at least one shortfall line"]})

        for position, shortfall in enumerate(shortfalls, start=1):
            self.add_shortfalls(
                StockShortfall(
                    product_id=shortfall["product_id"],
                    sku=shortfall.get("sku"),
                    requested=shortfall["requested"],
                    available=shortfall["available"],
                    shortfall=shortfall["shortfall"],
                    position=position,
                )
            )
        self.backorder_status = BackorderStatus.PENDING_APPROVAL.value
        self.raise_(
            BackorderFlagged(
                order_id=str(self.id),
                order_number=self.order_number,
                customer_id=str(self.customer_id),
                shortfalls=json.dumps(shortfalls),
                flagged_at=datetime.now(UTC),
            )
        )

    def _assert_backorder_open(self) -> None:
        if self.backorder_status in (BackorderStatus.APPROVED.value, BackorderStatus.PARTIALLY_APPROVED.value):
            raise AlreadyApproved(f"Backorder for {self.order_number} is already {self.backorder_status}")
        if self.backorder_status != BackorderStatus.PENDING_APPROVAL.value:
            raise ValidationError({"backorder_status": [f"Order {self.order_number} has no open backorder"]})
        if self.current_status() != OrderStatus.AWAITING_APPROVAL:
            raise InvalidTransition(self.status, OrderStatus.CONFIRMED.value)

    def approve_backorder(
        self,
        approved_by: str,
        approved_quantities: dict | None = None,
        notes: str | None = None,
        expected_fulfillment=None,
    ) -> None:
        """Approve the backorder in full or with reduced quantities.

        ``approved_quantities`` maps product id → approved quantity; each must
        satisfy ``0 < approved <= requested``. Line and order totals are
        recomputed from the approved quantities. The status change to
        ``confirmed`` is made by the lifecycle, which also reserves stock.
        """
        self._assert_backorder_open()

        partial = False
        if approved_quantities:
            lines_by_product = {}
            for item in self.sorted_items():
                lines_by_product.setdefault(str(item.product_id), []).append(item)
            errors = []
            for product_id, approved in approved_quantities.items():
                lines = lines_by_product.get(str(product_id))
                if not lines:
                    errors.append(f"Product {product_id} is not on this order")
                    continue
                requested = sum(line.quantity for line in lines)
                if approved <= 0 or approved > requested:
                    errors.append(f"Approved quantity for {lines[0].sku} must be between 1 and {requested}")
            if errors:
                raise ValidationError({"approved_quantities": errors})

            for product_id, approved in approved_quantities.items():
                remaining = approved
                for line in lines_by_product[str(product_id)]:
                    new_quantity = min(line.quantity, remaining)
                    if new_quantity == 0:
                        raise ValidationError(
                            {"approved_quantities": [f"Approved quantity for {line.sku} leaves an empty line"]}
                        )
                    if new_quantity != line.quantity:
                        partial = True
                    line.quantity = new_quantity
                    line.recalculate()
                    remaining -= new_quantity
            self._recalculate_totals()

        now = datetime.now(UTC)
        self.backorder_status = (
            BackorderStatus.PARTIALLY_APPROVED.value if partial else BackorderStatus.APPROVED.value
        )
        self.backorder_review = BackorderReview(
            reviewed_by=approved_by,
            reviewed_at=now,
            notes=notes,
            expected_fulfillment=expected_fulfillment,
        )
        self.updated_at = now
        self.raise_(
            BackorderApproved(
                order_id=str(self.id),
                order_number=self.order_number,
                customer_id=str(self.customer_id),
                partial=partial,
                approved_quantities=json.dumps({str(k): v for k, v in (approved_quantities or {}).items()}),
                total=self.totals.total,
                approved_by=approved_by,
                approved_at=now,
            )
        )

    def reject_backorder(self, reason: str, rejected_by: str) -> None:
        self._assert_backorder_open()
        if not reason or len(reason.strip()) < MIN_REJECTION_REASON_LENGTH:
            raise ValidationError(
                {"reason": [f"Rejection reason must be at least {MIN_REJECTION_REASON_LENGTH} characters"]}
            )

        now = datetime.now(UTC)
        self.backorder_status = BackorderStatus.REJECTED.value
        self.backorder_review = BackorderReview(reviewed_by=rejected_by, reviewed_at=now, notes=reason)
        self.updated_at = now
        self.raise_(
            BackorderRejected(
                order_id=str(self.id),
                order_number=self.order_number,
                customer_id=str(self.customer_id),
                reason=reason,
                rejected_by=rejected_by,
                rejected_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Quantity correction
    # -------------------------------------------------------------------
    def correct_item_quantity(self, item_id, quantity: int, corrected_by: str):
        """Change one line's quantity and recompute money; packed flags stay."""
        self._assert_mutable()
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        item = self._item(item_id)
        previous = item.quantity
        if previous == quantity:
            return item
        item.quantity = quantity
        item.recalculate()
        self._recalculate_totals()
        now = datetime.now(UTC)
        self.updated_at = now
        self.raise_(
            ItemQuantityCorrected(
                order_id=str(self.id),
                item_id=str(item.id),
                sku=item.sku,
                previous_quantity=previous,
                new_quantity=quantity,
                total=self.totals.total,
                corrected_by=corrected_by,
                corrected_at=now,
            )
        )
        return item

    # -------------------------------------------------------------------
    # Packing record
    # -------------------------------------------------------------------
    def _packing_values(self) -> dict:
        packing = self.packing or PackingRecord()
        return {
            "packing_sequence": packing.packing_sequence,
            "driver_packing_sequence": packing.driver_packing_sequence,
            "packed_skus": packing.packed_skus or "[]",
            "version": packing.version or 0,
            "last_activity_at": packing.last_activity_at,
            "last_packed_by": packing.last_packed_by,
            "paused_at": packing.paused_at,
            "notes": packing.notes,
        }

    def _replace_packing(self, **changes) -> None:
        values = self._packing_values()
        values.update(changes)
        self.packing = PackingRecord(**values)

    def current_packing_version(self) -> int:
        return (self.packing.version or 0) if self.packing else 0

    def packed_skus(self) -> set[str]:
        return self.packing.sku_set() if self.packing else set()

    def line_skus(self) -> set[str]:
        return {item.sku for item in self.items or []}

    def all_items_packed(self) -> bool:
        return bool(self.items) and self.line_skus() <= self.packed_skus()

    def _assert_version(self, expected_version: int | None) -> None:
        if expected_version is not None and expected_version != self.current_packing_version():
            raise ConcurrentModification(expected_version, self.current_packing_version())

    def mark_item(self, sku: str, packed: bool, packed_by: str, expected_version: int | None = None) -> bool:
        """Toggle ``sku`` in the packed set; returns False when nothing changed.

        The version still advances on a no-op so the caller's read is
        accounted for, but no event is raised.
        """
        self._assert_packable()
        self._assert_version(expected_version)
        if sku not in self.line_skus():
            raise ValidationError({"sku": [f"{sku} is not on order {self.order_number}"]})

        skus = self.packed_skus()
        changed = (sku not in skus) if packed else (sku in skus)
        if packed:
            skus.add(sku)
        else:
            skus.discard(sku)

        now = datetime.now(UTC)
        new_version = self.current_packing_version() + 1
        self._replace_packing(
            packed_skus=json.dumps(sorted(skus)),
            version=new_version,
            last_activity_at=now,
            last_packed_by=packed_by,
            paused_at=None,
        )
        self.updated_at = now
        if changed:
            self.raise_(
                ItemPackToggled(
                    order_id=str(self.id),
                    sku=sku,
                    packed=packed,
                    packed_count=len(skus & self.line_skus()),
                    item_count=len(self.line_skus()),
                    version=new_version,
                    packed_by=packed_by,
                    toggled_at=now,
                )
            )
        return changed

    def is_packing_idle(self, now: datetime, timeout) -> bool:
        """True when a ``packing`` order saw no pack activity for ``timeout``."""
        if self.current_status() != OrderStatus.PACKING:
            return False
        last = self.packing.last_activity_at if self.packing else None
        if last is None:
            last = self.updated_at
        if last is None:
            return False
        if last.tzinfo is None:
            last = last.replace(tzinfo=UTC)
        return now - last >= timeout

    def pause_packing(self, paused_by: str) -> None:
        self._assert_packable()
        now = datetime.now(UTC)
        self._replace_packing(paused_at=now, version=self.current_packing_version() + 1, last_packed_by=paused_by)
        self.updated_at = now

    def add_packing_note(self, note: str, author: str) -> None:
        self._assert_packable()
        if not note or not note.strip():
            raise ValidationError({"note": ["Note cannot be empty"]})
        existing = self.packing.notes if self.packing and self.packing.notes else ""
        line = f"[{author}] {note.strip()}"
        self._replace_packing(
            notes=f"{existing}\n{line}" if existing else line,
            version=self.current_packing_version() + 1,
        )
        self.updated_at = datetime.now(UTC)

    def clear_packing(self, reason: str, reset_by: str) -> None:
        """Empty the packed set (used by packing reset)."""
        self._assert_packable()
        if not reason or not reason.strip():
            raise ValidationError({"reason": ["A reset reason is required"]})
        now = datetime.now(UTC)
        self._replace_packing(
            packed_skus="[]",
            version=self.current_packing_version() + 1,
            last_activity_at=None,
            paused_at=None,
        )
        self.updated_at = now
        self.raise_(PackingReset(order_id=str(self.id), reason=reason, reset_by=reset_by, reset_at=now))

    # -------------------------------------------------------------------
    # Sequencing
    # -------------------------------------------------------------------
    def _delivery_values(self) -> dict:
        delivery = self.delivery or DeliveryRecord()
        return {
            "delivery_sequence": delivery.delivery_sequence,
            "estimated_arrival": delivery.estimated_arrival,
            "route_id": delivery.route_id,
            "driver_id": delivery.driver_id,
            "driver_name": delivery.driver_name,
            "driver_delivery_sequence": delivery.driver_delivery_sequence,
            "dispatched_at": delivery.dispatched_at,
            "delivered_at": delivery.delivered_at,
            "proof_of_delivery": delivery.proof_of_delivery,
            "returned_at": delivery.returned_at,
            "return_reason": delivery.return_reason,
        }

    def _replace_delivery(self, **changes) -> None:
        values = self._delivery_values()
        values.update(changes)
        self.delivery = DeliveryRecord(**values)

    def apply_route_sequence(
        self,
        route_id: str,
        delivery_sequence: int,
        estimated_arrival: datetime | None,
        packing_sequence: int | None = None,
    ) -> None:
        """Write sequence numbers from a route run.

        Only sequence sub-fields change; packed items, version and status are
        left as they are.
        """
        self._assert_mutable()
        self._replace_delivery(
            route_id=route_id,
            delivery_sequence=delivery_sequence,
            estimated_arrival=estimated_arrival,
        )
        if packing_sequence is not None:
            self._replace_packing(packing_sequence=packing_sequence)

    def apply_driver_sequence(self, driver_delivery_sequence: int, driver_packing_sequence: int) -> None:
        self._assert_mutable()
        self._replace_delivery(driver_delivery_sequence=driver_delivery_sequence)
        self._replace_packing(driver_packing_sequence=driver_packing_sequence)

    def assign_driver(self, driver_id: str, driver_name: str | None = None) -> None:
        if self.current_status() != OrderStatus.READY_FOR_DELIVERY:
            raise ValidationError({"status": [f"Drivers are assigned to ready orders, not {self.status} ones"]})
        now = datetime.now(UTC)
        self._replace_delivery(driver_id=driver_id, driver_name=driver_name)
        self.updated_at = now
        self.raise_(
            DriverAssigned(
                order_id=str(self.id),
                driver_id=driver_id,
                driver_name=driver_name,
                delivery_date=str(self.requested_delivery_date),
                assigned_at=now,
            )
        )

    # -------------------------------------------------------------------
    # Delivery record
    # -------------------------------------------------------------------
    def record_dispatch(self) -> None:
        self._replace_delivery(dispatched_at=datetime.now(UTC), returned_at=None, return_reason=None)

    def record_return(self, reason: str) -> None:
        if not reason or not reason.strip():
            raise ValidationError({"reason": ["A return reason is required"]})
        self._replace_delivery(returned_at=datetime.now(UTC), return_reason=reason)

    def record_delivery(self, proof_of_delivery: str | None) -> None:
        self._replace_delivery(delivered_at=datetime.now(UTC), proof_of_delivery=proof_of_delivery)
