"""Tests for line voltage/frequency alerting."""

from apctray.engine import AlertEvaluator, AlertState, Thresholds
from apctray.nis import parse_status


def run_sequence(field: str, values: list[float], thresholds: Thresholds | None = None):
    evaluator = AlertEvaluator()
    thresholds = thresholds or Thresholds()
    state = AlertState()
    events_per_poll = []
    for value in values:
        events, state = evaluator.evaluate(parse_status(f"{field}: {value}\n"), thresholds, state)
        events_per_poll.append(events)
    return events_per_poll, state


class TestVoltageAlerts:
    """Fire-once / clear-once behaviour."""

    def test_under_voltage_then_recovery(self):
        events, state = run_sequence("LINEV", [120, 90, 90, 125])

        flat = [event for poll in events for event in poll]
        assert len(flat) == 2
        assert events[1] == ["Alert UNDER-VOLTAGE LINEV=90.0V (limits 105-140)"]
        assert events[2] == []
        assert events[3] == ["Voltage recovered LINEV=125.0V"]
        assert state.voltage_alerting is False

    def test_over_voltage(self):
        events, state = run_sequence("LINEV", [150])
        assert events == [["Alert OVER-VOLTAGE LINEV=150.0V (limits 105-140)"]]
        assert state.voltage_alerting is True

    def test_bounds_are_inclusive(self):
        events, _ = run_sequence("LINEV", [105, 140])
        assert events == [[], []]

    def test_no_dead_band_at_threshold(self):
        events, _ = run_sequence("LINEV", [104.9, 105.0, 104.9])
        assert [len(poll) for poll in events] == [1, 1, 1]

    def test_custom_thresholds(self):
        thresholds = Thresholds(voltage_low=200, voltage_high=240)
        events, _ = run_sequence("LINEV", [121], thresholds)
        assert events[0][0].startswith("Alert UNDER-VOLTAGE")


class TestFrequencyAlerts:
    """Frequency uses its own flag."""

    def test_low_and_high_frequency(self):
        events, state = run_sequence("LINEFREQ", [57.5, 63.0, 60.0])
        assert events[0] == ["Alert LOW FREQUENCY LINEFREQ=57.5Hz (limits 58-62)"]
        assert events[1] == []
        assert events[2] == ["Frequency recovered LINEFREQ=60.0Hz"]
        assert state.frequency_alerting is False

    def test_comma_decimal_value(self):
        evaluator = AlertEvaluator()
        events, state = evaluator.evaluate(parse_status("LINEFREQ: 57,2 Hz\n"), Thresholds(), AlertState())
        assert events == ["Alert LOW FREQUENCY LINEFREQ=57.2Hz (limits 58-62)"]


class TestMissingReadings:
    """Absent fields keep their previous state."""

    def test_missing_field_keeps_flag(self):
        evaluator = AlertEvaluator()
        state = AlertState(voltage_alerting=True)
        events, new_state = evaluator.evaluate(parse_status(""), Thresholds(), state)
        assert events == []
        assert new_state == state

    def test_thresholds_from_config(self):
        thresholds = Thresholds.from_config({"voltage_low": 200, "voltage_high": "250"})
        assert thresholds == Thresholds(voltage_low=200, voltage_high=250)
