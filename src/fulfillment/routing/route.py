"""RouteOptimization aggregate — an immutable snapshot of one routing run.

Each run of the sequencing engine stores a new snapshot keyed by delivery
date and route type (``packing`` or ``delivery``); per-driver snapshots also
carry the driver id. Snapshots are never edited. Readers ask the repository
for the latest one.
"""

import json
from datetime import UTC, datetime
from enum import Enum

from protean.fields import Date, DateTime, Float, HasMany, Identifier, Integer, String, Text

from fulfillment.domain import fulfillment
from fulfillment.order.repository import as_date
from fulfillment.routing.events import RouteOptimized


class RouteType(Enum):
    PACKING = "packing"
    DELIVERY = "delivery"


@fulfillment.entity(part_of="RouteOptimization")
class Waypoint:
    order_id = Identifier(required=True)
    order_number = String(required=True, max_length=20)
    zone = String(max_length=20)
    sequence = Integer(required=True, min_value=1)
    latitude = Float()
    longitude = Float()
    estimated_arrival = DateTime()
    distance_from_previous = Float(default=0.0)  # meters
    duration_from_previous = Float(default=0.0)  # seconds


@fulfillment.entity(part_of="RouteOptimization")
class ZoneRoute:
    zone = String(required=True, max_length=20)
    position = Integer(required=True)
    order_count = Integer(default=0)
    distance = Float(default=0.0)
    duration = Float(default=0.0)
    geometry = Text()  # GeoJSON


@fulfillment.aggregate
class RouteOptimization:
    delivery_date = Date(required=True)
    route_type = String(required=True, choices=RouteType)
    driver_id = Identifier()
    waypoints = HasMany(Waypoint)
    zones = HasMany(ZoneRoute)
    total_distance = Float(default=0.0)
    total_duration = Float(default=0.0)
    optimized_at = DateTime(required=True)
    optimized_by = String(required=True, max_length=100)

    @classmethod
    def record(
        cls,
        delivery_date,
        route_type: RouteType,
        waypoints: list[dict],
        zones: list[dict],
        optimized_by: str,
        driver_id: str | None = None,
    ) -> "RouteOptimization":
        now = datetime.now(UTC)
        route = cls(
            delivery_date=delivery_date,
            route_type=route_type.value,
            driver_id=driver_id,
            total_distance=sum(z.get("distance", 0.0) for z in zones),
            total_duration=sum(z.get("duration", 0.0) for z in zones),
            optimized_at=now,
            optimized_by=optimized_by,
        )
        for waypoint in waypoints:
            route.add_waypoints(Waypoint(**waypoint))
        for position, zone in enumerate(zones, start=1):
            route.add_zones(
                ZoneRoute(
                    zone=zone["zone"],
                    position=position,
                    order_count=zone.get("order_count", 0),
                    distance=zone.get("distance", 0.0),
                    duration=zone.get("duration", 0.0),
                    geometry=json.dumps(zone.get("geometry") or {}),
                )
            )

        route.raise_(
            RouteOptimized(
                route_id=str(route.id),
                delivery_date=str(as_date(delivery_date)),
                route_type=route_type.value,
                driver_id=driver_id,
                stop_count=len(waypoints),
                total_distance=route.total_distance,
                total_duration=route.total_duration,
                optimized_by=optimized_by,
                optimized_at=now,
            )
        )
        return route

    def sorted_waypoints(self) -> list:
        return sorted(self.waypoints or [], key=lambda w: w.sequence)

    def sorted_zones(self) -> list:
        return sorted(self.zones or [], key=lambda z: z.position)

    def order_ids(self) -> set[str]:
        return {str(w.order_id) for w in self.waypoints or []}


@fulfillment.repository(part_of=RouteOptimization)
class RouteOptimizationRepository:
    def for_date(self, delivery_date, route_type: RouteType, driver_id=None) -> list[RouteOptimization]:
        query = self._dao.query.filter(delivery_date=as_date(delivery_date), route_type=route_type.value)
        if driver_id:
            return query.filter(driver_id=str(driver_id)).all().items
        # Day-wide snapshots carry no driver
        return query.filter(driver_id__isnull=True).all().items

    def latest(self, delivery_date, route_type: RouteType, driver_id=None) -> RouteOptimization | None:
        """The snapshot with the greatest ``optimized_at`` for (date, type[, driver])."""
        routes = self.for_date(delivery_date, route_type, driver_id)
        if not routes:
            return None
        return max(routes, key=lambda r: _aware(r.optimized_at))


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=UTC)
