"""Fulfillment bounded context — order fulfillment and route sequencing.

Owns the order state machine, customer credit, the inventory ledger and the
backorder workflow, and turns each day's confirmed orders into zone-by-zone
delivery routes with a LIFO packing order. Uses CQRS (not event sourcing):
orders are mutable documents edited concurrently by packers, drivers and
admins, so the current state is what the engine reads.
"""

from protean.domain import Domain

from fulfillment.utils.logging import configure_logging, get_logger

# Configure logging for the application
configure_logging()

logger = get_logger(__name__)

# Domain Composition Root
fulfillment = Domain(name="fulfillment")
