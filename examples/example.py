"""Example usage of LiveMapEngine."""

import json
import logging
import sys
from pathlib import Path

import requests

# Add src to path so we can import trainmap
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from trainmap import LiveMapEngine, RefreshPeriodClient, RefreshScheduler
from trainmap.models import MapFrame

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def print_frame(frame: MapFrame):
    """Print run markers, station boards and punctuality for one frame."""
    print(f"\n{'='*70}")
    print(f"Frame at {frame.generated_at.strftime('%H:%M:%S')} UTC")
    print(f"{'='*70}\n")

    print("RUNS:")
    print("-" * 70)
    for marker in frame.runs:
        lat, lng = marker.position
        bearing = "upright" if marker.bearing_degrees is None else f"{marker.bearing_degrees:.0f}°"
        print(
            f"  Run {marker.run_id}: {marker.phase.value:<12} ({lat:.5f}, {lng:.5f}) "
            f"{bearing} [{marker.icon_state.value}, {marker.delay_tier.value}]"
        )
        for stop_name, minutes in marker.stops_ahead:
            print(f"      {minutes:3d} min → {stop_name}")

    print("\nSTATIONS:")
    print("-" * 70)
    for stop_id, rows in frame.boards.items():
        print(f"\n{stop_id}:")
        if not rows:
            print("  No departures")
        for row in rows:
            print(f"  {row.text}")

    print(f"\nOn-time departures: {frame.punctuality_text}")
    if frame.skipped:
        print(f"Skipped {frame.skipped} malformed entries")


def fetch_snapshot(base_url: str) -> dict:
    """Fetch station boards and runs from the map backend."""
    stations = requests.get(f"{base_url}/api/stationDepartures", timeout=10)
    runs = requests.get(f"{base_url}/api/train", timeout=10)
    stations.raise_for_status()
    runs.raise_for_status()
    return {"stations": stations.json(), "runs": runs.json().get("runs", []), "routes": []}


def live_mode(base_url: str):
    """Poll the backend and print a frame on every refresh."""
    engine = LiveMapEngine(show_scheduled=True)
    cursors = {}

    def refresh():
        nonlocal cursors
        frame = engine.refresh(fetch_snapshot(base_url), cursors=cursors)
        cursors = frame.cursors
        print_frame(frame)

    period = RefreshPeriodClient(base_url).get_period()
    scheduler = RefreshScheduler(refresh, period=period)
    scheduler.start()

    print(f"Polling {base_url} every {period}s (Ctrl-C to stop)")
    try:
        while True:
            user_input = input().strip()
            if user_input.isdigit():
                try:
                    scheduler.set_period(int(user_input))
                except ValueError as e:
                    print(f"Error: {e}")
    except (KeyboardInterrupt, EOFError):
        print("\n\nGoodbye!")
    finally:
        scheduler.stop()


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("Usage: example.py <snapshot.json | http://backend>")
        sys.exit(1)

    target = sys.argv[1]
    if target.startswith(("http://", "https://")):
        live_mode(target.rstrip("/"))
    else:
        with open(target, "r", encoding="utf-8") as f:
            print_frame(LiveMapEngine(show_scheduled=True).refresh(json.load(f)))
