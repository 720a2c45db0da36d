"""Route, direction and stop name lookups used for display text."""

import logging
from typing import Dict, Iterable, Tuple

from .models import Route, Station

logger = logging.getLogger(__name__)


class RouteDirectory:
    """Indexes route and direction names from a snapshot's route list."""

    def __init__(self, routes: Iterable[Route] = ()):
        self.routes: Dict[str, str] = {}  # route_id -> route_name
        self.directions: Dict[Tuple[str, str], str] = {}  # (route_id, direction_id) -> direction_name
        for route in routes:
            self.add(route)

    def add(self, route: Route) -> None:
        self.routes[route.route_id] = route.route_name
        for direction in route.directions:
            self.directions[(route.route_id, direction.direction_id)] = direction.direction_name

    def route_name(self, route_id: str) -> str:
        """Route name, or the route ID itself when unknown."""
        return self.routes.get(route_id, route_id)

    def direction_name(self, route_id: str, direction_id: str) -> str:
        """
        Human-readable direction for a route.

        Args:
            route_id: Route ID
            direction_id: Direction ID within that route

        Returns:
            Direction name (e.g., "City (Flinders Street)"), or "Direction <id>"
            when the route does not list it.
        """
        name = self.directions.get((route_id, direction_id))
        if name is None:
            return f"Direction {direction_id}"
        return name


def stop_names(stations: Iterable[Station]) -> Dict[str, str]:
    """Map stop_id -> stop_name for every station in the snapshot."""
    names: Dict[str, str] = {}
    for station in stations:
        if station.stop_id in names and names[station.stop_id] != station.stop_name:
            logger.debug(f"Stop {station.stop_id} listed under two names; keeping {names[station.stop_id]}")
            continue
        names[station.stop_id] = station.stop_name
    return names
