"""Tests for on-battery cycle tracking."""

from datetime import datetime, timedelta
from unittest.mock import MagicMock

from apctray.engine import CycleState, CycleTracker, UpsState


T0 = datetime(2024, 5, 1, 10, 0, 0)


class TestCycleTracker:
    """State transitions into and out of battery."""

    def test_one_cycle_counts_once(self, status_factory):
        state = CycleState()
        persist = MagicMock()
        tracker = CycleTracker(state, persist=persist)

        onbatt = status_factory(STATUS="ONBATT")
        sequence = [
            (UpsState.ONLINE, status_factory(), T0),
            (UpsState.ONBATT, onbatt, T0 + timedelta(seconds=10)),
            (UpsState.ONBATT, onbatt, T0 + timedelta(seconds=20)),
            (UpsState.ONLINE, status_factory(), T0 + timedelta(seconds=130)),
        ]

        events = []
        previous = UpsState.ONLINE
        for current, status, now in sequence:
            events.extend(tracker.observe(previous, current, status, now))
            previous = current

        assert state.cycle_count == 1
        assert state.last_on_battery_seconds == 120
        assert state.on_battery_since is None
        assert events == ["Entered battery", "Left battery (duration=02:00)"]
        assert persist.call_count == 2

    def test_entering_battery_captures_start_metrics(self, status_factory):
        state = CycleState()
        tracker = CycleTracker(state)

        tracker.observe(UpsState.ONLINE, UpsState.ONBATT, status_factory(STATUS="ONBATT"), T0)

        assert state.on_battery_since == T0.timestamp()
        assert state.start_charge_pct == 100.0
        assert state.start_load_pct == 50.0
        assert state.start_battery_voltage == 27.1

    def test_leaving_battery_feeds_estimator(self, status_factory):
        estimator = MagicMock()
        state = CycleState()
        tracker = CycleTracker(state, estimator=estimator)

        tracker.observe(UpsState.ONLINE, UpsState.ONBATT, status_factory(STATUS="ONBATT"), T0)
        end_status = status_factory(BCHARGE="80.0 Percent")
        tracker.observe(UpsState.ONBATT, UpsState.ONLINE, end_status, T0 + timedelta(seconds=1800))

        estimator.observe_cycle.assert_called_once_with(100.0, 50.0, 27.1, 1800.0, end_status)
        assert state.start_charge_pct is None

    def test_no_transition_no_events(self, status_factory):
        tracker = CycleTracker(CycleState())
        assert tracker.observe(UpsState.ONLINE, UpsState.CHARGING, status_factory(), T0) == []
        assert tracker.observe(UpsState.COMMLOST, UpsState.ONLINE, status_factory(), T0) == []

    def test_commlost_while_on_battery_ends_cycle(self, status_factory):
        state = CycleState()
        tracker = CycleTracker(state)
        tracker.observe(UpsState.ONLINE, UpsState.ONBATT, status_factory(STATUS="ONBATT"), T0)

        events = tracker.observe(UpsState.ONBATT, UpsState.COMMLOST, {}, T0 + timedelta(hours=1, seconds=5))

        assert events == ["Left battery (duration=1:00:05)"]

    def test_leave_without_recorded_start(self, status_factory):
        state = CycleState(cycle_count=4)
        tracker = CycleTracker(state)

        events = tracker.observe(UpsState.ONBATT, UpsState.ONLINE, status_factory(), T0)

        assert events == ["Left battery (duration=--:--)"]
        assert state.cycle_count == 4

    def test_current_duration(self):
        state = CycleState(on_battery_since=T0.timestamp())
        tracker = CycleTracker(state)
        assert tracker.current_duration(T0 + timedelta(seconds=42)) == 42
        assert CycleTracker(CycleState()).current_duration(T0) is None
