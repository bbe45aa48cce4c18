"""Engine settings read from the environment.

Protean's ``domain.toml`` configures persistence and messaging; these are the
operational knobs of the sequencing engine and its external collaborators.
"""

import os
from dataclasses import dataclass
from datetime import time

_settings_instance = None


@dataclass(frozen=True)
class EngineSettings:
    warehouse_latitude: float = -37.8136
    warehouse_longitude: float = 144.9631
    route_start: time = time(9, 0)
    stop_dwell_seconds: int = 300
    packing_idle_timeout_minutes: int = 30
    packing_max_attempts: int = 3
    solver_timeout_seconds: float = 10.0
    mapbox_access_token: str = ""
    accounting_max_attempts: int = 5

    @classmethod
    def from_env(cls) -> "EngineSettings":
        start = os.environ.get("ROUTE_START_TIME", "09:00")
        hour, minute = (int(part) for part in start.split(":", 1))
        return cls(
            warehouse_latitude=float(os.environ.get("WAREHOUSE_LATITUDE", cls.warehouse_latitude)),
            warehouse_longitude=float(os.environ.get("WAREHOUSE_LONGITUDE", cls.warehouse_longitude)),
            route_start=time(hour, minute),
            stop_dwell_seconds=int(os.environ.get("STOP_DWELL_SECONDS", cls.stop_dwell_seconds)),
            packing_idle_timeout_minutes=int(
                os.environ.get("PACKING_IDLE_TIMEOUT_MINUTES", cls.packing_idle_timeout_minutes)
            ),
            packing_max_attempts=int(os.environ.get("PACKING_MAX_ATTEMPTS", cls.packing_max_attempts)),
            solver_timeout_seconds=float(os.environ.get("ROUTE_SOLVER_TIMEOUT", cls.solver_timeout_seconds)),
            mapbox_access_token=os.environ.get("MAPBOX_ACCESS_TOKEN", ""),
            accounting_max_attempts=int(os.environ.get("ACCOUNTING_MAX_ATTEMPTS", cls.accounting_max_attempts)),
        )


def get_settings() -> EngineSettings:
    """Return the engine settings (singleton, read once from the environment)."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = EngineSettings.from_env()
    return _settings_instance


def reset_settings():
    """Forget cached settings so the next call re-reads the environment."""
    global _settings_instance
    _settings_instance = None
