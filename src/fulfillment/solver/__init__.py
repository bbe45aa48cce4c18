"""Route solver abstraction — pluggable routing service integration."""

import os

from fulfillment.config import get_settings

_solver_instance = None


def get_route_solver():
    """Return the configured route solver (singleton).

    Uses FakeRouteSolver by default. In production, set ROUTE_SOLVER=mapbox
    and MAPBOX_ACCESS_TOKEN.
    """
    global _solver_instance
    if _solver_instance is None:
        adapter = os.environ.get("ROUTE_SOLVER", "fake")
        if adapter == "fake":
            from fulfillment.solver.fake_adapter import FakeRouteSolver

            _solver_instance = FakeRouteSolver()
        elif adapter == "mapbox":
            from fulfillment.solver.mapbox_adapter import MapboxRouteSolver

            settings = get_settings()
            _solver_instance = MapboxRouteSolver(
                access_token=settings.mapbox_access_token,
                timeout=settings.solver_timeout_seconds,
            )
        else:
            raise ValueError(f"Unknown route solver: {adapter}")
    return _solver_instance


def reset_route_solver():
    """Reset the solver singleton (useful for testing)."""
    global _solver_instance
    _solver_instance = None
