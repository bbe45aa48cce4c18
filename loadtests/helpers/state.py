"""Per-user state tracking for Locust load test scenarios.

Each Locust user keeps its own ids; nothing is shared between users.
"""

from dataclasses import dataclass, field


@dataclass
class OrderJourneyState:
    """Ids collected while walking one order from placement to delivery."""

    customer_id: str | None = None
    product_ids: list[str] = field(default_factory=list)
    order_id: str | None = None
    skus: list[str] = field(default_factory=list)
    delivery_date: str | None = None
    current_status: str = "new"


@dataclass
class PackerState:
    """Orders a packer has pulled from the queue for the day."""

    delivery_date: str | None = None
    queue: list[str] = field(default_factory=list)
