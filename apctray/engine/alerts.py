"""Line voltage and frequency alerts with fire-once / clear-once semantics.

There is no dead-band: a value hovering exactly at a threshold can flap
between alert and recovery on consecutive polls.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Any

from ..nis.parser import get_number

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Thresholds:
    """Acceptable line voltage and frequency ranges (inclusive)."""

    voltage_low: float = 105.0
    voltage_high: float = 140.0
    frequency_low: float = 58.0
    frequency_high: float = 62.0

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "Thresholds":
        """Build thresholds from the ``alerts`` configuration section."""
        defaults = cls()
        return cls(
            voltage_low=float(config.get("voltage_low", defaults.voltage_low)),
            voltage_high=float(config.get("voltage_high", defaults.voltage_high)),
            frequency_low=float(config.get("frequency_low", defaults.frequency_low)),
            frequency_high=float(config.get("frequency_high", defaults.frequency_high)),
        )


@dataclass(frozen=True)
class AlertState:
    """Whether each monitored quantity is currently in alert."""

    voltage_alerting: bool = False
    frequency_alerting: bool = False


@dataclass(frozen=True)
class _Quantity:
    field: str
    unit: str
    flag: str
    low_attr: str
    high_attr: str
    low_kind: str
    high_kind: str
    recovered: str


_QUANTITIES = [
    _Quantity(
        field="LINEV",
        unit="V",
        flag="voltage_alerting",
        low_attr="voltage_low",
        high_attr="voltage_high",
        low_kind="UNDER-VOLTAGE",
        high_kind="OVER-VOLTAGE",
        recovered="Voltage recovered",
    ),
    _Quantity(
        field="LINEFREQ",
        unit="Hz",
        flag="frequency_alerting",
        low_attr="frequency_low",
        high_attr="frequency_high",
        low_kind="LOW FREQUENCY",
        high_kind="HIGH FREQUENCY",
        recovered="Frequency recovered",
    ),
]


class AlertEvaluator:
    """Compares line readings against thresholds and reports state changes."""

    def evaluate(
        self, status: Mapping[str, str], thresholds: Thresholds, state: AlertState
    ) -> tuple[list[str], AlertState]:
        """Evaluate one poll.

        Args:
            status: Parsed status of the current poll
            thresholds: Configured bounds
            state: Alert flags from the previous poll

        Returns:
            Event messages for breaches and recoveries, and the updated flags.
            A quantity that is missing from ``status`` keeps its previous flag.
        """
        events: list[str] = []
        for quantity in _QUANTITIES:
            value = get_number(status, quantity.field)
            if value is None:
                continue

            low = getattr(thresholds, quantity.low_attr)
            high = getattr(thresholds, quantity.high_attr)
            alerting = getattr(state, quantity.flag)
            out_of_range = value < low or value > high

            if out_of_range and not alerting:
                kind = quantity.low_kind if value < low else quantity.high_kind
                events.append(
                    f"Alert {kind} {quantity.field}={value:.1f}{quantity.unit} "
                    f"(limits {low:g}-{high:g})"
                )
                logger.warning(f"⚠️ {kind}: {quantity.field}={value:.1f}{quantity.unit}")
                state = replace(state, **{quantity.flag: True})
            elif not out_of_range and alerting:
                events.append(f"{quantity.recovered} {quantity.field}={value:.1f}{quantity.unit}")
                logger.info(f"✅ {quantity.recovered}: {quantity.field}={value:.1f}{quantity.unit}")
                state = replace(state, **{quantity.flag: False})

        return events, state
