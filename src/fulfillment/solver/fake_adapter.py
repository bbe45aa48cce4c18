"""Fake route solver — deterministic nearest-neighbour routing.

Builds the trip greedily from the warehouse, always driving to the closest
unvisited stop (haversine distance, ties broken by stop id) at a constant
average speed. Configurable failure for testing solver outages.
"""

import math

from fulfillment.errors import RouteSolverError
from fulfillment.solver.port import Coordinate, RouteSolverPort, Segment, SolvedRoute, Stop

EARTH_RADIUS_M = 6_371_000


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in meters."""
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = math.sin(delta_lat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_M * c


class FakeRouteSolver(RouteSolverPort):
    """Fake solver that always succeeds by default."""

    def __init__(self, average_speed_kmh: float = 40.0):
        self.average_speed_kmh = average_speed_kmh
        self.should_succeed = True
        self.failure_reason = "Route solver unavailable"
        self.calls = []

    def configure(self, should_succeed: bool = True, failure_reason: str = "Route solver unavailable"):
        """Configure the fake solver behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def solve(self, origin: Coordinate, stops: list[Stop]) -> SolvedRoute:
        self.calls.append((origin, list(stops)))
        if not self.should_succeed:
            raise RouteSolverError(self.failure_reason)

        speed_ms = self.average_speed_kmh * 1000 / 3600
        remaining = sorted(stops, key=lambda s: s.id)
        current = (origin.latitude, origin.longitude)
        ordered_ids, segments = [], []
        path = [[origin.longitude, origin.latitude]]

        while remaining:
            nearest = min(
                remaining,
                key=lambda s: (haversine_distance(current[0], current[1], s.latitude, s.longitude), s.id),
            )
            distance = haversine_distance(current[0], current[1], nearest.latitude, nearest.longitude)
            segments.append(Segment(distance=round(distance, 1), duration=round(distance / speed_ms, 1)))
            ordered_ids.append(nearest.id)
            path.append([nearest.longitude, nearest.latitude])
            current = (nearest.latitude, nearest.longitude)
            remaining.remove(nearest)

        return SolvedRoute(
            ordered_ids=ordered_ids,
            segments=segments,
            geometry={"type": "LineString", "coordinates": path},
        )
