"""Configuration constants for the live train map engine."""

# Refresh period negotiated with the map backend (seconds)
DEFAULT_REFRESH_PERIOD = 30
MIN_REFRESH_PERIOD = 15
MAX_REFRESH_PERIOD = 600

# Backend endpoint holding the refresh period
REFRESH_PERIOD_PATH = "/api/refreshPeriod"
HTTP_TIMEOUT = 10

# Delay tiers: estimated minus scheduled, in minutes
BEHIND_THRESHOLD_MINUTES = 5
LATE_THRESHOLD_MINUTES = 10

# A departure counts against punctuality when off schedule by this much, either way
PUNCTUALITY_THRESHOLD_MINUTES = 5

# Train side icons point sideways, so rotated markers need a quarter turn
ICON_ALIGNMENT_OFFSET = 90.0
