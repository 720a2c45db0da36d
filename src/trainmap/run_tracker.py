"""Run phase classification and position estimation between stops."""

import logging
import math
from dataclasses import dataclass
from typing import Optional

from .config import ICON_ALIGNMENT_OFFSET
from .departure_times import TimestampLike, resolve
from .models import IconState, LatLng, Run, RunPhase

logger = logging.getLogger(__name__)


@dataclass
class PositionEstimate:
    """Where to draw a run and how to orient it."""
    position: LatLng
    bearing_degrees: Optional[float]  # None when the icon stays upright
    icon_state: IconState
    fraction: Optional[float] = None  # share of the leg left to travel; None unless in transit


def classify_run(run: Run, now: TimestampLike = None) -> RunPhase:
    """
    Classify which part of its journey a run occupies.

    This reads only the flags the caller supplied for this cycle; moving the
    cursor between polls is up to the caller. `now` is accepted so every stage
    shares the same call shape, but the phase does not depend on it.
    """
    if run.current_event.at_platform:
        return RunPhase.AT_PLATFORM
    if run.previous_stop_coordinates is None:
        return RunPhase.NOT_STARTED
    return RunPhase.IN_TRANSIT


def compass_bearing(origin: LatLng, destination: LatLng) -> float:
    """Initial great-circle bearing from origin to destination, degrees clockwise from north."""
    lat1, lng1 = map(math.radians, origin)
    lat2, lng2 = map(math.radians, destination)
    d_lng = lng2 - lng1

    x = math.sin(d_lng) * math.cos(lat2)
    y = math.cos(lat1) * math.sin(lat2) - math.sin(lat1) * math.cos(lat2) * math.cos(d_lng)
    return (math.degrees(math.atan2(x, y)) + 360) % 360


def leg_fraction(run: Run, now: TimestampLike) -> float:
    """
    Share of the current leg still to travel, clamped to [0, 1].

    1 keeps the vehicle at the previous stop, 0 puts it on the next one.
    A zero-length leg, or a leg with no event bounding its start, resolves
    to 0.
    """
    _, target = resolve(run.current_event, now)
    if target < 0:
        return 0.0

    previous = run.previous_event
    if previous is None:
        logger.debug(f"Run {run.run_id} in transit at its first stop; placing at next stop")
        return 0.0

    leg_duration = abs(
        (run.current_event.authoritative_departure_utc - previous.authoritative_departure_utc).total_seconds()
    )
    if leg_duration == 0:
        logger.debug(f"Run {run.run_id} has a zero-duration leg; placing at next stop")
        return 0.0

    return min(1.0, target / leg_duration)


def interpolate(origin: LatLng, destination: LatLng, fraction: float) -> LatLng:
    """
    Point on the straight line between two stops, `fraction` of the way back from destination.

    This is a straight line in lat/lng, not the route's track shape.
    """
    weight = 1 - fraction
    return (
        origin[0] + weight * (destination[0] - origin[0]),
        origin[1] + weight * (destination[1] - origin[1]),
    )


def estimate_position(run: Run, phase: RunPhase, now: TimestampLike) -> PositionEstimate:
    """
    Estimate where a run is and which way it is heading.

    Args:
        run: Run to place.
        phase: Phase from classify_run().
        now: Current time.

    Returns:
        PositionEstimate for the run's marker.
    """
    if phase is RunPhase.NOT_STARTED:
        return PositionEstimate(run.next_stop_coordinates, None, IconState.DEPARTING)
    if phase is RunPhase.AT_PLATFORM:
        return PositionEstimate(run.next_stop_coordinates, None, IconState.AT_PLATFORM)

    origin = run.previous_stop_coordinates
    destination = run.next_stop_coordinates
    fraction = leg_fraction(run, now)

    bearing = (compass_bearing(origin, destination) + ICON_ALIGNMENT_OFFSET) % 360

    # Westbound trains get the mirrored artwork rather than an upside-down rotation
    if destination[1] < origin[1]:
        icon = IconState.IN_TRANSIT_INVERTED
    else:
        icon = IconState.IN_TRANSIT

    return PositionEstimate(interpolate(origin, destination, fraction), bearing, icon, fraction)
