"""Refresh period negotiation and the polling timer."""

import logging
import threading
from typing import Callable, Optional

import requests

from .config import (
    DEFAULT_REFRESH_PERIOD,
    HTTP_TIMEOUT,
    MAX_REFRESH_PERIOD,
    MIN_REFRESH_PERIOD,
    REFRESH_PERIOD_PATH,
)

logger = logging.getLogger(__name__)


def validate_period(seconds: float) -> float:
    """
    Check a refresh period against the allowed bounds.

    Raises:
        ValueError: If the period is outside MIN_REFRESH_PERIOD..MAX_REFRESH_PERIOD.
    """
    if not MIN_REFRESH_PERIOD <= seconds <= MAX_REFRESH_PERIOD:
        raise ValueError(
            f"Refresh period {seconds}s outside {MIN_REFRESH_PERIOD}-{MAX_REFRESH_PERIOD}s"
        )
    return seconds


class RefreshPeriodClient:
    """Reads and stores the map's refresh period on the backend."""

    def __init__(self, base_url: str, session: Optional[requests.Session] = None, timeout: float = HTTP_TIMEOUT):
        """
        Initialize the client.

        Args:
            base_url: Backend root, e.g. "http://localhost:5000".
            session: Optional requests session to reuse.
            timeout: Request timeout in seconds.
        """
        self.url = base_url.rstrip("/") + REFRESH_PERIOD_PATH
        self.session = session or requests.Session()
        self.timeout = timeout

    def get_period(self) -> float:
        """
        Fetch the current refresh period.

        Returns:
            Period in seconds, or DEFAULT_REFRESH_PERIOD when the backend is
            unreachable or answers with something unusable.
        """
        try:
            response = self.session.get(self.url, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
            if isinstance(data, dict):
                data = data.get("refresh_period")
            return validate_period(float(data))
        except requests.RequestException as e:
            logger.warning(f"Failed to fetch refresh period from {self.url}: {e}")
        except (TypeError, ValueError) as e:
            logger.warning(f"Invalid refresh period from {self.url}: {e}")
        return DEFAULT_REFRESH_PERIOD

    def set_period(self, seconds: float) -> None:
        """
        Store a new refresh period.

        Raises:
            ValueError: If the period is out of bounds.
            requests.RequestException: If the backend rejects the update.
        """
        validate_period(seconds)
        logger.debug(f"Posting refresh period {seconds}s to {self.url}")
        try:
            response = self.session.post(self.url, json={"refresh_period": seconds}, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            logger.error(f"Failed to store refresh period: {e}")
            raise


class RefreshScheduler:
    """
    Runs a callback periodically on a single timer.

    The next timer is only armed once the callback has returned, so refreshes
    never overlap. Changing the period cancels the pending timer and arms a
    new one under the same lock.
    """

    def __init__(self, callback: Callable[[], None], period: float = DEFAULT_REFRESH_PERIOD):
        self._callback = callback
        self._period = validate_period(period)
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()
        self._running = False
        self._in_flight = False

    @property
    def period(self) -> float:
        return self._period

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self, run_immediately: bool = True) -> None:
        """Start polling; the first refresh fires at once unless run_immediately is False."""
        with self._lock:
            if self._running:
                return
            self._running = True
            # A refresh still running re-arms the timer itself when it returns
            if not self._in_flight:
                self._arm(0 if run_immediately else self._period)
        logger.info(f"Refresh scheduler started, every {self._period}s")

    def stop(self) -> None:
        """Cancel the pending timer. A refresh already in progress finishes but is not rescheduled."""
        with self._lock:
            self._running = False
            self._cancel()
        logger.info("Refresh scheduler stopped")

    def set_period(self, seconds: float) -> None:
        """
        Change the refresh period and reschedule the pending timer.

        Raises:
            ValueError: If the period is out of bounds.
        """
        validate_period(seconds)
        with self._lock:
            self._period = seconds
            # While a refresh runs, the new period applies when it re-arms
            if self._running and not self._in_flight:
                self._cancel()
                self._arm(self._period)
        logger.info(f"Refresh period set to {seconds}s")

    def _arm(self, delay: float) -> None:
        self._timer = threading.Timer(delay, self._tick)
        self._timer.daemon = True
        self._timer.start()

    def _cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _tick(self) -> None:
        with self._lock:
            # A timer replaced by set_period() or stop() may still fire
            if not self._running or threading.current_thread() is not self._timer:
                return
            self._in_flight = True

        try:
            self._callback()
        except Exception as e:
            logger.error(f"Refresh failed: {e}", exc_info=True)
        finally:
            with self._lock:
                self._in_flight = False
                if self._running:
                    self._arm(self._period)
