"""Routing domain events."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from fulfillment.domain import fulfillment


@fulfillment.event(part_of="RouteOptimization")
class RouteOptimized:
    """A new route snapshot was stored for a delivery date."""

    __version__ = 1

    route_id = Identifier(required=True)
    delivery_date = String(required=True)
    route_type = String(required=True)
    driver_id = Identifier()
    stop_count = Integer(required=True)
    total_distance = Float(required=True)
    total_duration = Float(required=True)
    optimized_by = String(required=True)
    optimized_at = DateTime(required=True)
