"""Route solver port — abstract interface for the external routing service.

The sequencing engine hands the solver one zone at a time: a warehouse
origin and the stops to visit. The solver answers with the visiting order,
per-leg distance and duration, and a route geometry. Adapters are swapped
via configuration.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class Stop:
    id: str
    latitude: float
    longitude: float


@dataclass(frozen=True)
class Segment:
    """One leg, from the previous point (warehouse for the first) to a stop."""

    distance: float  # meters
    duration: float  # seconds


@dataclass
class SolvedRoute:
    ordered_ids: list[str]
    segments: list[Segment]
    geometry: dict = field(default_factory=dict)

    @property
    def distance(self) -> float:
        return sum(s.distance for s in self.segments)

    @property
    def duration(self) -> float:
        return sum(s.duration for s in self.segments)


class RouteSolverPort(ABC):
    """Abstract interface for route solver adapters."""

    @abstractmethod
    def solve(self, origin: Coordinate, stops: list[Stop]) -> SolvedRoute:
        """Order ``stops`` into a one-way trip starting at ``origin``.

        Returns a ``SolvedRoute`` whose ``segments[i]`` is the leg arriving at
        ``ordered_ids[i]``. Raises ``RouteSolverError`` on failure.
        """
        ...
