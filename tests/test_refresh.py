"""Tests for refresh scheduling and period negotiation."""

import threading
import unittest
from unittest.mock import MagicMock, call, patch
import sys
from pathlib import Path

import requests

# Add src to path so we can import trainmap
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from trainmap.refresh import RefreshPeriodClient, RefreshScheduler, validate_period


class TestValidatePeriod(unittest.TestCase):
    """Test refresh period bounds."""

    def test_bounds(self):
        """Test accepted and rejected refresh periods."""
        self.assertEqual(validate_period(15), 15)
        self.assertEqual(validate_period(600), 600)
        with self.assertRaises(ValueError):
            validate_period(14)
        with self.assertRaises(ValueError):
            validate_period(601)


class TestRefreshPeriodClient(unittest.TestCase):
    """Test refresh period negotiation with the backend."""

    def setUp(self):
        self.session = MagicMock()
        self.client = RefreshPeriodClient("http://backend/", session=self.session)

    def test_get_period(self):
        """Test reading the refresh period from the backend."""
        self.session.get.return_value.json.return_value = {"refresh_period": 60}
        self.assertEqual(self.client.get_period(), 60)
        self.session.get.assert_called_once_with("http://backend/api/refreshPeriod", timeout=10)

    def test_get_period_plain_number(self):
        """Test a backend answering with a bare number."""
        self.session.get.return_value.json.return_value = 45
        self.assertEqual(self.client.get_period(), 45)

    def test_get_period_falls_back_when_unreachable(self):
        """Test the default period when the backend is down."""
        self.session.get.side_effect = requests.ConnectionError("backend down")
        with self.assertLogs("trainmap.refresh", level="WARNING"):
            self.assertEqual(self.client.get_period(), 30)

    def test_get_period_falls_back_on_bad_value(self):
        """Test the default period for unusable answers."""
        for value in ({"refresh_period": 5}, {"refresh_period": "soon"}, {}):
            self.session.get.return_value.json.return_value = value
            self.assertEqual(self.client.get_period(), 30)

    def test_get_period_falls_back_on_http_error(self):
        """Test the default period on an HTTP error."""
        self.session.get.return_value.raise_for_status.side_effect = requests.HTTPError("500")
        self.assertEqual(self.client.get_period(), 30)

    def test_set_period(self):
        """Test storing a new refresh period."""
        self.client.set_period(120)
        self.session.post.assert_called_once_with(
            "http://backend/api/refreshPeriod", json={"refresh_period": 120}, timeout=10
        )

    def test_set_period_out_of_bounds(self):
        """Test that out-of-range periods are never posted."""
        with self.assertRaises(ValueError):
            self.client.set_period(5)
        self.session.post.assert_not_called()

    def test_set_period_http_error_propagates(self):
        """Test that a rejected update raises."""
        self.session.post.return_value.raise_for_status.side_effect = requests.HTTPError("500")
        with self.assertRaises(requests.HTTPError):
            self.client.set_period(60)


class TestRefreshScheduler(unittest.TestCase):
    """Test the polling timer."""

    def test_rejects_out_of_bounds_period(self):
        """Test error handling for an out-of-range period."""
        with self.assertRaises(ValueError):
            RefreshScheduler(MagicMock(), period=10)

    @patch("trainmap.refresh.threading.Timer")
    def test_start_arms_one_timer(self, mock_timer):
        """Test that starting twice arms a single timer."""
        scheduler = RefreshScheduler(MagicMock())
        scheduler.start()
        scheduler.start()

        self.assertTrue(scheduler.is_running)
        mock_timer.assert_called_once_with(0, scheduler._tick)
        mock_timer.return_value.start.assert_called_once()

    @patch("trainmap.refresh.threading.Timer")
    def test_start_delayed(self, mock_timer):
        """Test starting with the first refresh one period away."""
        scheduler = RefreshScheduler(MagicMock(), period=45)
        scheduler.start(run_immediately=False)
        mock_timer.assert_called_once_with(45, scheduler._tick)

    @patch("trainmap.refresh.threading.Timer")
    def test_set_period_reschedules(self, mock_timer):
        """Test that changing the period re-arms the timer."""
        scheduler = RefreshScheduler(MagicMock())
        scheduler.start()
        scheduler.set_period(60)

        self.assertEqual(scheduler.period, 60)
        mock_timer.return_value.cancel.assert_called_once()
        self.assertEqual(mock_timer.call_args, call(60, scheduler._tick))

    @patch("trainmap.refresh.threading.Timer")
    def test_set_period_while_stopped(self, mock_timer):
        """Test changing the period before starting."""
        scheduler = RefreshScheduler(MagicMock())
        scheduler.set_period(90)
        self.assertEqual(scheduler.period, 90)
        mock_timer.assert_not_called()

    @patch("trainmap.refresh.threading.Timer")
    def test_stop_cancels_timer(self, mock_timer):
        """Test that stopping cancels the pending timer."""
        scheduler = RefreshScheduler(MagicMock())
        scheduler.start()
        scheduler.stop()

        self.assertFalse(scheduler.is_running)
        mock_timer.return_value.cancel.assert_called_once()

    @patch("trainmap.refresh.threading.current_thread")
    @patch("trainmap.refresh.threading.Timer")
    def test_tick_runs_callback_then_rearms(self, mock_timer, mock_current_thread):
        """Test that a refresh re-arms the timer once it returns."""
        callback = MagicMock()
        scheduler = RefreshScheduler(callback)
        scheduler.start()
        mock_current_thread.return_value = scheduler._timer

        scheduler._tick()

        callback.assert_called_once()
        self.assertEqual(mock_timer.call_count, 2)
        self.assertEqual(mock_timer.call_args, call(30, scheduler._tick))

    @patch("trainmap.refresh.threading.current_thread")
    @patch("trainmap.refresh.threading.Timer")
    def test_tick_survives_callback_failure(self, mock_timer, mock_current_thread):
        """Test that a failing refresh is logged and rescheduled."""
        callback = MagicMock(side_effect=RuntimeError("fetch failed"))
        scheduler = RefreshScheduler(callback)
        scheduler.start()
        mock_current_thread.return_value = scheduler._timer

        with self.assertLogs("trainmap.refresh", level="ERROR"):
            scheduler._tick()

        self.assertEqual(mock_timer.call_count, 2)

    @patch("trainmap.refresh.threading.current_thread")
    @patch("trainmap.refresh.threading.Timer")
    def test_stale_timer_ignored(self, mock_timer, mock_current_thread):
        """Test that a replaced timer does not refresh."""
        callback = MagicMock()
        scheduler = RefreshScheduler(callback)
        scheduler.start()
        mock_current_thread.return_value = object()

        scheduler._tick()

        callback.assert_not_called()
        self.assertEqual(mock_timer.call_count, 1)

    @patch("trainmap.refresh.threading.current_thread")
    @patch("trainmap.refresh.threading.Timer")
    def test_period_change_during_refresh_applies_on_rearm(self, mock_timer, mock_current_thread):
        """Test a period change made while a refresh runs."""
        scheduler = RefreshScheduler(lambda: scheduler.set_period(120))
        scheduler.start()
        mock_current_thread.return_value = scheduler._timer

        scheduler._tick()

        mock_timer.return_value.cancel.assert_not_called()
        self.assertEqual(mock_timer.call_count, 2)
        self.assertEqual(mock_timer.call_args, call(120, scheduler._tick))

    @patch("trainmap.refresh.threading.current_thread")
    @patch("trainmap.refresh.threading.Timer")
    def test_restart_during_refresh_keeps_one_timer(self, mock_timer, mock_current_thread):
        """Test that stopping and starting while a refresh runs arms a single timer."""

        def restart():
            scheduler.stop()
            scheduler.start()

        scheduler = RefreshScheduler(restart)
        scheduler.start()
        mock_current_thread.return_value = scheduler._timer

        scheduler._tick()

        self.assertTrue(scheduler.is_running)
        self.assertEqual(mock_timer.call_count, 2)
        self.assertEqual(mock_timer.call_args, call(30, scheduler._tick))

    def test_refresh_fires_on_real_timer(self):
        """Test a refresh on a real timer thread."""
        fired = threading.Event()
        scheduler = RefreshScheduler(fired.set)
        scheduler.start()
        try:
            self.assertTrue(fired.wait(timeout=5))
        finally:
            scheduler.stop()
        self.assertFalse(scheduler.is_running)


if __name__ == "__main__":
    unittest.main()
