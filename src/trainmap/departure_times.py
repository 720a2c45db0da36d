"""Resolve authoritative departure times for stop events."""

import math
from typing import Tuple, Union
from datetime import datetime

import pandas as pd

from .exceptions import MalformedSnapshotError
from .models import StopEvent

TimestampLike = Union[str, datetime, pd.Timestamp]


def to_utc(value: TimestampLike) -> pd.Timestamp:
    """
    Coerce a feed timestamp to a timezone-aware UTC Timestamp.

    Naive values are taken to already be UTC, which is what the feed sends.

    Raises:
        MalformedSnapshotError: If the value is missing or cannot be parsed.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        raise MalformedSnapshotError("Missing timestamp")
    try:
        ts = pd.Timestamp(value)
    except (ValueError, TypeError) as e:
        raise MalformedSnapshotError(f"Unparseable timestamp {value!r}: {e}") from e
    if pd.isna(ts):
        raise MalformedSnapshotError(f"Unparseable timestamp {value!r}")

    if ts.tzinfo is None:
        return ts.tz_localize("UTC")
    return ts.tz_convert("UTC")


def resolve(event: StopEvent, now: TimestampLike) -> Tuple[pd.Timestamp, float]:
    """
    Resolve the authoritative timestamp of an event and its offset from now.

    Args:
        event: Stop event to resolve.
        now: Current time.

    Returns:
        (authoritative timestamp, signed seconds until it). Negative seconds
        mean the departure has already passed.
    """
    authoritative = event.authoritative_departure_utc
    delta_seconds = (authoritative - to_utc(now)).total_seconds()
    return authoritative, delta_seconds


def minutes_until(delta_seconds: float) -> int:
    """Whole minutes shown to riders: rounded up, 0 once the departure is due."""
    if delta_seconds <= 0:
        return 0
    return math.ceil(delta_seconds / 60)
