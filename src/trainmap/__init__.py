"""trainmap - Live train positions, departure boards and punctuality for a transit map."""

__version__ = "0.1.0"

from .models import (
    StopEvent,
    Run,
    Station,
    Route,
    Direction,
    Snapshot,
    RunPhase,
    IconState,
    DelayTier,
    DisplayRow,
    RunMarker,
    MapFrame,
)
from .exceptions import MalformedSnapshotError
from .map_engine import LiveMapEngine
from .refresh import RefreshPeriodClient, RefreshScheduler

__all__ = [
    "LiveMapEngine",
    "RefreshScheduler",
    "RefreshPeriodClient",
    "MalformedSnapshotError",
    "StopEvent",
    "Run",
    "Station",
    "Route",
    "Direction",
    "Snapshot",
    "RunPhase",
    "IconState",
    "DelayTier",
    "DisplayRow",
    "RunMarker",
    "MapFrame",
]
