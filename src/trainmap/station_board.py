"""Departure boards shown on station markers."""

import math
from typing import AbstractSet, Iterable, List, Optional, Set, Tuple

from .delays import classify_delay, delay_minutes
from .departure_times import TimestampLike, minutes_until, resolve, to_utc
from .lookups import RouteDirectory
from .models import DisplayRow, Run, StopEvent

DepartureKey = Tuple[str, str]  # (run_id, stop_id)


def current_departure_keys(runs: Iterable[Run]) -> Set[DepartureKey]:
    """Keys of the event each run's cursor points at."""
    return {(run.run_id, run.current_event.stop_id) for run in runs}


def board(
    events: Iterable[StopEvent],
    now: TimestampLike,
    show_scheduled: bool = False,
    current_keys: AbstractSet[DepartureKey] = frozenset(),
    routes: Optional[RouteDirectory] = None,
) -> List[DisplayRow]:
    """
    Build the rows of one station's departure board.

    Departed events are hidden, except those a run's cursor still points at
    (a train that is due or a little overdue at the platform). Events with no
    estimate only show when `show_scheduled` is set. Rows keep input order.

    Args:
        events: The station's departures, in stop-sequence/time order.
        now: Current time.
        show_scheduled: Include departures with no real-time estimate.
        current_keys: (run_id, stop_id) of each run's cursor event.
        routes: Directory used for route and direction names.

    Returns:
        List of DisplayRow objects.
    """
    routes = routes or RouteDirectory()
    now = to_utc(now)
    rows: List[DisplayRow] = []

    for event in events:
        _, delta_seconds = resolve(event, now)
        delta_minutes = math.floor(delta_seconds / 60)

        if delta_minutes < 0 and (event.run_id, event.stop_id) not in current_keys:
            continue
        if not event.has_estimate and not show_scheduled:
            continue

        if event.has_estimate:
            tier = classify_delay(event)
            late_minutes = max(0, int(delay_minutes(event)))
        else:
            tier = None
            late_minutes = 0

        rows.append(
            DisplayRow(
                route_id=event.route_id,
                route_name=routes.route_name(event.route_id),
                direction_id=event.direction_id,
                direction_name=routes.direction_name(event.route_id, event.direction_id),
                run_id=event.run_id,
                minutes_away=minutes_until(delta_seconds),
                is_estimated=event.has_estimate,
                delay_tier=tier,
                late_minutes=late_minutes,
            )
        )

    return rows
