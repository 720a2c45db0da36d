"""Delay classification and on-time performance."""

import logging
from typing import Iterable, Optional

import pandas as pd

from .config import (
    BEHIND_THRESHOLD_MINUTES,
    LATE_THRESHOLD_MINUTES,
    PUNCTUALITY_THRESHOLD_MINUTES,
)
from .models import DelayTier, Station, StopEvent

logger = logging.getLogger(__name__)


def delay_minutes(event: StopEvent) -> Optional[float]:
    """Signed minutes the estimate runs behind schedule, None without an estimate."""
    if event.estimated_departure_utc is None:
        return None
    return (event.estimated_departure_utc - event.scheduled_departure_utc).total_seconds() / 60


def classify_delay(event: StopEvent) -> DelayTier:
    """
    Assign a delay tier to a stop event.

    Events with no estimate are ON_TIME, as are early ones: only running
    behind schedule is penalised here.
    """
    diff = delay_minutes(event)
    if diff is None or diff < BEHIND_THRESHOLD_MINUTES:
        return DelayTier.ON_TIME
    if diff < LATE_THRESHOLD_MINUTES:
        return DelayTier.BEHIND
    return DelayTier.LATE


def aggregate_punctuality(stations: Iterable[Station]) -> Optional[float]:
    """
    Percentage of estimated departures within schedule tolerance.

    Unlike classify_delay, early running counts against punctuality too.

    Args:
        stations: Stations whose departure boards are evaluated.

    Returns:
        Percentage in [0, 100], or None when no departure carried an estimate.
    """
    rows = [
        (event.scheduled_departure_utc, event.estimated_departure_utc)
        for station in stations
        for event in station.departures
        if event.estimated_departure_utc is not None
    ]
    if not rows:
        logger.debug("No estimated departures to evaluate punctuality")
        return None

    frame = pd.DataFrame(rows, columns=["scheduled", "estimated"])
    diff = (
        pd.to_datetime(frame["estimated"], utc=True) - pd.to_datetime(frame["scheduled"], utc=True)
    ).dt.total_seconds() / 60

    late_count = int((diff.abs() >= PUNCTUALITY_THRESHOLD_MINUTES).sum())
    evaluated = len(frame)
    logger.debug(f"Punctuality: {late_count} of {evaluated} departures off schedule")

    return 100 - 100 * late_count / evaluated
