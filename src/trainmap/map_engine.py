"""Main live map engine class."""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional

from .delays import aggregate_punctuality, classify_delay
from .departure_times import TimestampLike, minutes_until, resolve, to_utc
from .exceptions import MalformedSnapshotError
from .lookups import RouteDirectory, stop_names
from .models import LatLng, MapFrame, Run, RunMarker, RunPhase, Snapshot
from .run_tracker import classify_run, estimate_position
from .snapshot import parse_snapshot
from .station_board import board, current_departure_keys

logger = logging.getLogger(__name__)


class LiveMapEngine:
    """
    Turns feed snapshots into everything the live map draws.

    Each call to build_frame() is a pure recomputation from the snapshot it is
    given:
    - a marker per run, placed between its stops and classified by delay
    - a departure board per station
    - the on-time percentage across all station departures

    The only state carried between cycles is the run cursors, which the caller
    passes in and receives back with each frame.
    """

    def __init__(self, show_scheduled: bool = False, live_runs_only: bool = False):
        """
        Initialize the engine.

        Args:
            show_scheduled: Include departures without a real-time estimate on
                station boards.
            live_runs_only: Only draw runs whose current departure has a
                real-time estimate.
        """
        self.show_scheduled = show_scheduled
        self.live_runs_only = live_runs_only

    def set_show_scheduled(self, show_scheduled: bool) -> None:
        self.show_scheduled = show_scheduled

    def refresh(
        self,
        payload: Dict,
        now: Optional[TimestampLike] = None,
        cursors: Optional[Mapping[str, int]] = None,
    ) -> MapFrame:
        """Parse a raw JSON snapshot and build its frame."""
        return self.build_frame(parse_snapshot(payload), now=now, cursors=cursors)

    def build_frame(
        self,
        snapshot: Snapshot,
        now: Optional[TimestampLike] = None,
        cursors: Optional[Mapping[str, int]] = None,
    ) -> MapFrame:
        """
        Compute one refresh cycle.

        Args:
            snapshot: Parsed snapshot.
            now: Current time; defaults to the wall clock in UTC.
            cursors: run_id -> cursor kept by the caller from earlier cycles.
                A held cursor ahead of the snapshot's currentDeparture is kept,
                with the leg rebuilt from station coordinates; otherwise the
                snapshot's cursor wins.

        Returns:
            MapFrame with markers, boards, punctuality and the cursors used.
        """
        now = to_utc(now if now is not None else datetime.now(timezone.utc))
        routes = RouteDirectory(snapshot.routes)
        names = stop_names(snapshot.stations)
        stop_coordinates = {station.stop_id: station.coordinates for station in snapshot.stations}
        runs = self._apply_cursors(snapshot.runs, cursors or {}, stop_coordinates)

        markers: List[RunMarker] = []
        for run in runs:
            if self.live_runs_only and not run.current_event.has_estimate:
                continue
            try:
                markers.append(self._build_marker(run, now, routes, names))
            except MalformedSnapshotError as e:
                logger.warning(f"Failed to place run {run.run_id}: {e}")

        current_keys = current_departure_keys(runs)
        boards = {
            station.stop_id: board(
                station.departures,
                now,
                show_scheduled=self.show_scheduled,
                current_keys=current_keys,
                routes=routes,
            )
            for station in snapshot.stations
        }

        frame = MapFrame(
            runs=markers,
            boards=boards,
            punctuality=aggregate_punctuality(snapshot.stations),
            cursors={run.run_id: run.current_departure for run in runs},
            generated_at=now.to_pydatetime(),
            skipped=snapshot.skipped,
        )
        logger.info(
            f"Built frame: {len(markers)} runs, {len(boards)} stations, punctuality {frame.punctuality_text}"
        )
        return frame

    @staticmethod
    def _apply_cursors(
        runs: List[Run], cursors: Mapping[str, int], stop_coordinates: Mapping[str, LatLng]
    ) -> List[Run]:
        """
        Return runs with caller-held cursors applied, leaving the originals untouched.

        A run only moves forward: the later of the held and snapshot cursors
        wins. When the held cursor is ahead, the leg's coordinates are rebuilt
        from the stations of the two events bounding it; if either station is
        missing from the snapshot the snapshot's cursor is used instead.
        """
        result: List[Run] = []
        for run in runs:
            held = cursors.get(run.run_id)
            if held is None or held <= run.current_departure:
                result.append(run)
                continue
            if held >= len(run.departures):
                logger.warning(
                    f"Ignoring cursor {held} for run {run.run_id} "
                    f"({len(run.departures)} departures); using {run.current_departure}"
                )
                result.append(run)
                continue

            previous_stop = run.departures[held - 1].stop_id
            next_stop = run.departures[held].stop_id
            if previous_stop not in stop_coordinates or next_stop not in stop_coordinates:
                logger.warning(
                    f"No coordinates for leg {previous_stop} -> {next_stop} of run {run.run_id}; "
                    f"using cursor {run.current_departure}"
                )
                result.append(run)
                continue

            result.append(
                Run(
                    run_id=run.run_id,
                    departures=run.departures,
                    current_departure=held,
                    next_stop_coordinates=stop_coordinates[next_stop],
                    previous_stop_coordinates=stop_coordinates[previous_stop],
                    direction_id=run.direction_id,
                )
            )
        return result

    @staticmethod
    def _build_marker(run: Run, now, routes: RouteDirectory, names: Dict[str, str]) -> RunMarker:
        phase = classify_run(run, now)
        estimate = estimate_position(run, phase, now)
        event = run.current_event
        _, delta_seconds = resolve(event, now)
        minutes = minutes_until(delta_seconds)

        tooltip = {"route": routes.route_name(event.route_id)}
        if phase is RunPhase.AT_PLATFORM:
            tooltip["at"] = f"At {names.get(event.stop_id, event.stop_id)}"
        tooltip["run_id"] = run.run_id
        if phase is RunPhase.NOT_STARTED:
            tooltip["departure_time"] = f"{minutes} min"
        else:
            tooltip["arrival_time"] = f"{minutes} min"
        direction_id = run.direction_id or event.direction_id
        tooltip["direction"] = routes.direction_name(event.route_id, direction_id)

        stops_ahead = []
        for upcoming in run.departures[run.current_departure:]:
            _, seconds = resolve(upcoming, now)
            stops_ahead.append((names.get(upcoming.stop_id, upcoming.stop_id), minutes_until(seconds)))

        return RunMarker(
            run_id=run.run_id,
            position=estimate.position,
            bearing_degrees=estimate.bearing_degrees,
            phase=phase,
            icon_state=estimate.icon_state,
            delay_tier=classify_delay(event),
            fraction=estimate.fraction,
            tooltip_fields=tooltip,
            stops_ahead=stops_ahead,
        )
