"""Parse JSON snapshots from the map backend into models."""

import logging
from typing import Any, Dict, List, Optional

from .departure_times import to_utc
from .exceptions import MalformedSnapshotError
from .models import Direction, LatLng, Route, Run, Snapshot, Station, StopEvent

logger = logging.getLogger(__name__)


def _require(data: Dict[str, Any], key: str) -> Any:
    try:
        value = data[key]
    except (KeyError, TypeError):
        raise MalformedSnapshotError(f"Missing required field '{key}'")
    if value is None:
        raise MalformedSnapshotError(f"Field '{key}' is null")
    return value


def _normalize_id(value: Any) -> str:
    """IDs arrive as ints or strings; compare them as strings."""
    return str(value).strip()


def _parse_flag(value: Any, key: str) -> bool:
    """Booleans may arrive as JSON booleans, 0/1 or strings such as "false"."""
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("true", "1", "yes"):
            return True
        if text in ("false", "0", "no", ""):
            return False
    raise MalformedSnapshotError(f"Invalid boolean {value!r} for '{key}'")


def _parse_coordinates(value: Any) -> LatLng:
    try:
        lat, lng = value
        return (float(lat), float(lng))
    except (TypeError, ValueError):
        raise MalformedSnapshotError(f"Invalid coordinates {value!r}")


def parse_stop_event(data: Dict[str, Any]) -> StopEvent:
    """
    Parse one departure record.

    Raises:
        MalformedSnapshotError: If a required field is missing or invalid.
    """
    estimated = data.get("estimated_departure_utc")
    return StopEvent(
        stop_id=_normalize_id(_require(data, "stop_id")),
        route_id=_normalize_id(_require(data, "route_id")),
        direction_id=_normalize_id(_require(data, "direction_id")),
        run_id=_normalize_id(_require(data, "run_id")),
        scheduled_departure_utc=to_utc(_require(data, "scheduled_departure_utc")),
        estimated_departure_utc=to_utc(estimated) if estimated else None,
        at_platform=_parse_flag(data.get("at_platform", False), "at_platform"),
    )


def parse_station(data: Dict[str, Any]) -> Station:
    """Parse a station; malformed departures are dropped from its board."""
    station = Station(
        stop_id=_normalize_id(_require(data, "stop_id")),
        stop_name=str(_require(data, "stop_name")),
        latitude=float(_require(data, "stop_latitude")),
        longitude=float(_require(data, "stop_longitude")),
    )
    for raw in data.get("departures") or []:
        try:
            station.departures.append(parse_stop_event(raw))
        except MalformedSnapshotError as e:
            logger.warning(f"Skipping departure at station {station.stop_id}: {e}")
    return station


def parse_run(data: Dict[str, Any]) -> Run:
    """
    Parse a run.

    Any malformed departure rejects the whole run, since the cursor indexes
    the complete list.
    """
    coordinates = _require(data, "coordinates")
    departures = [parse_stop_event(raw) for raw in _require(data, "departure")]
    if not departures:
        raise MalformedSnapshotError("Run has no departures")

    try:
        cursor = int(_require(data, "currentDeparture"))
    except (TypeError, ValueError):
        raise MalformedSnapshotError(f"Invalid currentDeparture {data.get('currentDeparture')!r}")

    previous = coordinates.get("previousStopCoordinates")
    direction_id = coordinates.get("direction_id")

    return Run(
        run_id=departures[0].run_id,
        departures=departures,
        current_departure=cursor,
        next_stop_coordinates=_parse_coordinates(_require(coordinates, "nextStopCoordinates")),
        previous_stop_coordinates=_parse_coordinates(previous) if previous else None,
        direction_id=_normalize_id(direction_id) if direction_id is not None else departures[0].direction_id,
    )


def parse_route(data: Dict[str, Any]) -> Route:
    route_id = _normalize_id(_require(data, "route_id"))
    directions: List[Direction] = []
    for raw in data.get("directions") or []:
        try:
            directions.append(
                Direction(
                    direction_id=_normalize_id(_require(raw, "direction_id")),
                    direction_name=str(_require(raw, "direction_name")),
                )
            )
        except MalformedSnapshotError as e:
            logger.warning(f"Skipping direction of route {route_id}: {e}")
    return Route(route_id=route_id, route_name=str(data.get("route_name") or route_id), directions=directions)


def parse_snapshot(payload: Optional[Dict[str, Any]]) -> Snapshot:
    """
    Parse a full snapshot, skipping malformed entities.

    Args:
        payload: Decoded JSON with "stations", "runs" and "routes" lists.

    Returns:
        Snapshot with every entity that parsed cleanly; `skipped` counts the rest.
    """
    payload = payload or {}
    snapshot = Snapshot()

    sections = (
        ("stations", parse_station, snapshot.stations),
        ("runs", parse_run, snapshot.runs),
        ("routes", parse_route, snapshot.routes),
    )
    for key, parser, target in sections:
        for index, raw in enumerate(payload.get(key) or []):
            try:
                target.append(parser(raw))
            except (MalformedSnapshotError, AttributeError, TypeError, ValueError) as e:
                snapshot.skipped += 1
                logger.warning(f"Skipping malformed entry {index} in {key}: {e}")

    logger.debug(
        f"Parsed snapshot: {len(snapshot.stations)} stations, {len(snapshot.runs)} runs, "
        f"{len(snapshot.routes)} routes, {snapshot.skipped} skipped"
    )
    return snapshot
