"""Mapbox route solver — Optimization API v1 over HTTP.

The warehouse is sent as the first coordinate and fixed as the trip source;
the trip is one-way (``roundtrip=false``, which Mapbox only accepts together
with ``destination=last``). The API caps a request at 12 coordinates, so a
zone holds at most 11 stops.
"""

import requests

from fulfillment.domain import logger
from fulfillment.errors import RouteSolverError
from fulfillment.solver.port import Coordinate, RouteSolverPort, Segment, SolvedRoute, Stop

MAPBOX_OPTIMIZATION_URL = "https://api.mapbox.com/optimized-trips/v1/mapbox/driving"
MAX_COORDINATES = 12


class MapboxRouteSolver(RouteSolverPort):
    def __init__(self, access_token: str, timeout: float = 10.0, session: requests.Session | None = None):
        self.access_token = access_token
        self.timeout = timeout
        self.session = session or requests.Session()

    def solve(self, origin: Coordinate, stops: list[Stop]) -> SolvedRoute:
        if not self.access_token:
            raise RouteSolverError("Mapbox access token is required")
        if not stops:
            return SolvedRoute(ordered_ids=[], segments=[])
        if len(stops) + 1 > MAX_COORDINATES:
            raise RouteSolverError(
                f"Mapbox Optimization API supports at most {MAX_COORDINATES} coordinates, got {len(stops) + 1}"
            )

        points = [(origin.longitude, origin.latitude)] + [(s.longitude, s.latitude) for s in stops]
        coordinates = ";".join(f"{lng},{lat}" for lng, lat in points)
        params = {
            "access_token": self.access_token,
            "geometries": "geojson",
            "overview": "full",
            "source": "first",
            "destination": "last",
            "roundtrip": "false",
        }

        try:
            response = self.session.get(
                f"{MAPBOX_OPTIMIZATION_URL}/{coordinates}", params=params, timeout=self.timeout
            )
        except requests.RequestException as exc:
            logger.warning("Mapbox request failed", error=str(exc), stops=len(stops))
            raise RouteSolverError(f"Route optimization failed: {exc}") from exc

        if response.status_code != 200:
            raise RouteSolverError(f"Mapbox API error ({response.status_code}): {response.text[:200]}")

        data = response.json()
        if data.get("code") != "Ok":
            raise RouteSolverError(f"Mapbox optimization failed: {data.get('code')}")
        trips = data.get("trips") or []
        if not trips:
            raise RouteSolverError("No trips returned from Mapbox API")
        return self._to_route(data["waypoints"], trips[0], stops)

    @staticmethod
    def _to_route(waypoints: list[dict], trip: dict, stops: list[Stop]) -> SolvedRoute:
        """Map Mapbox's answer back onto our stop ids.

        ``waypoints[i]["waypoint_index"]`` is the trip position of input
        coordinate ``i``; input 0 is the warehouse.
        """
        by_position = sorted(range(len(waypoints)), key=lambda i: waypoints[i]["waypoint_index"])
        ordered_ids = [stops[i - 1].id for i in by_position if i != 0]
        segments = [Segment(distance=leg["distance"], duration=leg["duration"]) for leg in trip.get("legs", [])]
        if len(segments) != len(ordered_ids):
            raise RouteSolverError(
                f"Mapbox returned {len(segments)} legs for {len(ordered_ids)} stops"
            )
        return SolvedRoute(ordered_ids=ordered_ids, segments=segments, geometry=trip.get("geometry") or {})
