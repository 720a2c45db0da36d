"""Data models for the live train map."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

import pandas as pd

from .exceptions import MalformedSnapshotError

LatLng = Tuple[float, float]  # (latitude, longitude)


class RunPhase(Enum):
    """Where a run currently is along its journey."""
    NOT_STARTED = "not_started"
    AT_PLATFORM = "at_platform"
    IN_TRANSIT = "in_transit"


class IconState(Enum):
    """Icon variant the map should draw for a run marker."""
    DEPARTING = "train"  # upright, waiting to leave its first stop
    AT_PLATFORM = "train-platform"  # upright, stopped mid-route
    IN_TRANSIT = "train-side"
    IN_TRANSIT_INVERTED = "train-side-inverted"


class DelayTier(Enum):
    """Lateness of a departure, estimated against scheduled time."""
    ON_TIME = "on_time"
    BEHIND = "behind"
    LATE = "late"


@dataclass
class StopEvent:
    """One scheduled/real-time departure at one stop for one run."""
    stop_id: str
    route_id: str
    direction_id: str
    run_id: str
    scheduled_departure_utc: pd.Timestamp
    estimated_departure_utc: Optional[pd.Timestamp] = None  # None until real-time data arrives
    at_platform: bool = False

    @property
    def has_estimate(self) -> bool:
        return self.estimated_departure_utc is not None

    @property
    def authoritative_departure_utc(self) -> pd.Timestamp:
        """Estimated departure if known, else the scheduled one."""
        if self.estimated_departure_utc is not None:
            return self.estimated_departure_utc
        return self.scheduled_departure_utc


@dataclass
class Run:
    """One vehicle trip as an ordered list of stop events."""
    run_id: str
    departures: List[StopEvent]
    current_departure: int  # cursor: the event being approached or occupied
    next_stop_coordinates: LatLng
    previous_stop_coordinates: Optional[LatLng] = None
    direction_id: Optional[str] = None

    def __post_init__(self):
        if not self.departures:
            raise MalformedSnapshotError(f"Run {self.run_id} has no departures")
        if not 0 <= self.current_departure < len(self.departures):
            raise MalformedSnapshotError(
                f"Run {self.run_id} cursor {self.current_departure} outside "
                f"0..{len(self.departures) - 1}"
            )

    @property
    def current_event(self) -> StopEvent:
        return self.departures[self.current_departure]

    @property
    def previous_event(self) -> Optional[StopEvent]:
        """Event bounding the start of the current leg, None at the first stop."""
        if self.current_departure == 0:
            return None
        return self.departures[self.current_departure - 1]


@dataclass
class Station:
    """A stop location with its outbound departure board."""
    stop_id: str
    stop_name: str
    latitude: float
    longitude: float
    departures: List[StopEvent] = field(default_factory=list)

    @property
    def coordinates(self) -> LatLng:
        return (self.latitude, self.longitude)


@dataclass
class Direction:
    direction_id: str
    direction_name: str


@dataclass
class Route:
    route_id: str
    route_name: str
    directions: List[Direction] = field(default_factory=list)


@dataclass
class Snapshot:
    """One polling cycle's worth of feed data."""
    stations: List[Station] = field(default_factory=list)
    runs: List[Run] = field(default_factory=list)
    routes: List[Route] = field(default_factory=list)
    skipped: int = 0  # malformed entities dropped while parsing


@dataclass
class DisplayRow:
    """One line of a station departure board."""
    route_id: str
    route_name: str
    direction_id: str
    direction_name: str
    run_id: str
    minutes_away: int
    is_estimated: bool
    delay_tier: Optional[DelayTier] = None  # only set for estimated rows
    late_minutes: int = 0

    @property
    def text(self) -> str:
        label = "(Estimated)" if self.is_estimated else "(Scheduled)"
        line = f"{label} {self.route_name} (Direction: {self.direction_name}) -> {self.minutes_away} mins"
        if self.is_estimated and self.late_minutes > 0:
            line += f" ({self.late_minutes} min late)"
        return line


@dataclass
class RunMarker:
    """Everything the map needs to draw one vehicle."""
    run_id: str
    position: LatLng
    bearing_degrees: Optional[float]  # None means draw upright, not rotated
    phase: RunPhase
    icon_state: IconState
    delay_tier: DelayTier
    fraction: Optional[float] = None  # share of the leg still to travel, in transit only
    tooltip_fields: Dict[str, str] = field(default_factory=dict)
    stops_ahead: List[Tuple[str, int]] = field(default_factory=list)  # (stop name, minutes away)

    @property
    def is_delayed(self) -> bool:
        return self.delay_tier is not DelayTier.ON_TIME


@dataclass
class MapFrame:
    """Engine output for one refresh cycle."""
    runs: List[RunMarker]
    boards: Dict[str, List[DisplayRow]]  # stop_id -> rows
    punctuality: Optional[float]
    cursors: Dict[str, int]  # run_id -> cursor used this cycle
    generated_at: datetime
    skipped: int = 0

    @property
    def punctuality_text(self) -> str:
        if self.punctuality is None:
            return "no data"
        return f"{self.punctuality:.1f}%"
