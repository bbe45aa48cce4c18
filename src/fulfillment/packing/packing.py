"""Packing — commands and handler.

Pack toggles carry the packing version the caller read. The handler checks
it against the stored version before writing, so a stale toggle is refused
with ``ConcurrentModification`` and retried by the session controller.
Status follows the packed set: the first pack starts packing, the last
completes it, and unpacking a ready order puts it back into packing.
"""

from datetime import UTC, datetime, timedelta

from protean import handle
from protean.fields import Boolean, DateTime, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from fulfillment.config import get_settings
from fulfillment.domain import fulfillment, logger
from fulfillment.errors import NotAuthorized
from fulfillment.order.lifecycle import OrderLifecycle
from fulfillment.order.order import Order, OrderStatus
from fulfillment.roles import ActorRole, assert_privileged, parse_role

_PACKING_ROLES = {ActorRole.PACKER, ActorRole.ADMIN, ActorRole.MANAGER, ActorRole.SYSTEM}


@fulfillment.command(part_of="Order")
class MarkItemPacked:
    order_id = Identifier(required=True)
    sku = String(required=True, max_length=50)
    packed = Boolean(default=True)
    packed_by = String(required=True, max_length=100)
    role = String(max_length=20, default=ActorRole.PACKER.value)
    expected_version = Integer()


@fulfillment.command(part_of="Order")
class PausePacking:
    order_id = Identifier(required=True)
    paused_by = String(required=True, max_length=100)


@fulfillment.command(part_of="Order")
class AddPackingNote:
    order_id = Identifier(required=True)
    note = Text(required=True)
    author = String(required=True, max_length=100)


@fulfillment.command(part_of="Order")
class ResetPacking:
    """Discard packing progress and send the order back to confirmed."""

    order_id = Identifier(required=True)
    reason = String(required=True, max_length=500)
    reset_by = String(required=True, max_length=100)
    role = String(required=True, max_length=20)


@fulfillment.command(part_of="Order")
class ReleaseIdlePacking:
    """Revert one order to confirmed if its packing session went idle."""

    order_id = Identifier(required=True)
    as_of = DateTime()


def release_if_idle(order: Order, as_of: datetime | None = None) -> bool:
    """Revert an abandoned packing session to confirmed; packed items are kept."""
    timeout = timedelta(minutes=get_settings().packing_idle_timeout_minutes)
    now = as_of or datetime.now(UTC)
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    if not order.is_packing_idle(now, timeout):
        return False

    OrderLifecycle().transition(
        order,
        OrderStatus.CONFIRMED,
        actor="system",
        role=ActorRole.SYSTEM.value,
        note=f"No packing activity for {get_settings().packing_idle_timeout_minutes} minutes",
    )
    logger.info(
        "Idle packing session released",
        order_id=str(order.id),
        order_number=order.order_number,
        last_activity_at=str(order.packing.last_activity_at),
    )
    return True


@fulfillment.command_handler(part_of=Order)
class PackingHandler:
    @handle(MarkItemPacked)
    def mark_item_packed(self, command):
        if parse_role(command.role) not in _PACKING_ROLES:
            raise NotAuthorized(command.role, "pack orders")

        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        release_if_idle(order)

        packed = command.packed if command.packed is not None else True
        order.mark_item(command.sku, packed, command.packed_by, command.expected_version)

        lifecycle = OrderLifecycle()
        status = order.current_status()
        if packed and status == OrderStatus.CONFIRMED:
            lifecycle.transition(
                order, OrderStatus.PACKING, actor=command.packed_by, role=ActorRole.SYSTEM.value, note="Packing started"
            )
        if order.current_status() == OrderStatus.PACKING and order.all_items_packed():
            lifecycle.transition(
                order,
                OrderStatus.READY_FOR_DELIVERY,
                actor=command.packed_by,
                role=ActorRole.SYSTEM.value,
                note="All items packed",
            )
        elif not packed and status == OrderStatus.READY_FOR_DELIVERY:
            lifecycle.transition(
                order,
                OrderStatus.PACKING,
                actor=command.packed_by,
                role=ActorRole.SYSTEM.value,
                note=f"{command.sku} unpacked",
            )

        repo.add(order)
        return order.current_packing_version()

    @handle(PausePacking)
    def pause_packing(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.pause_packing(command.paused_by)
        repo.add(order)

    @handle(AddPackingNote)
    def add_packing_note(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.add_packing_note(command.note, command.author)
        repo.add(order)

    @handle(ResetPacking)
    def reset_packing(self, command):
        assert_privileged(command.role, "reset packing")
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        order.clear_packing(command.reason, command.reset_by)

        lifecycle = OrderLifecycle()
        if order.current_status() == OrderStatus.READY_FOR_DELIVERY:
            lifecycle.transition(order, OrderStatus.PACKING, command.reset_by, command.role, command.reason)
        if order.current_status() == OrderStatus.PACKING:
            lifecycle.transition(order, OrderStatus.CONFIRMED, command.reset_by, command.role, command.reason)
        repo.add(order)

    @handle(ReleaseIdlePacking)
    def release_idle(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        if release_if_idle(order, command.as_of):
            repo.add(order)
            return True
        return False
