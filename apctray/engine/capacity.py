"""Battery capacity estimation from on-battery discharge cycles.

This is a rough physical model: it assumes a constant load during the cycle
and a battery pack voltage equal to the series voltage of the pack. It is
useful for spotting a degrading battery over time, not for metrology.
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from ..nis.parser import get_number

logger = logging.getLogger(__name__)

DEFAULT_INVERTER_EFFICIENCY = 0.85
DEFAULT_SMOOTHING_ALPHA = 0.3
MIN_DELTA_SOC = 0.05  # Floor so tiny discharges don't explode the estimate
MIN_OUTPUT_WATTS = 10.0
MIN_BATTERY_WATTS = 10.0


@dataclass
class CapacityEstimate:
    """Smoothed capacity estimate, persisted between runs."""

    capacity_ah: float = 0.0
    samples: int = 0


def resolve_ups_watts(
    status: Mapping[str, str], power_factor: float, fallback_watts: float
) -> float:
    """UPS output rating in watts.

    Prefers NOMPOWER, then NOMAPNT (VA) times the assumed power factor, then
    the configured fallback.
    """
    nominal_watts = get_number(status, "NOMPOWER")
    if nominal_watts is not None and nominal_watts > 0:
        return nominal_watts

    nominal_va = get_number(status, "NOMAPNT")
    if nominal_va is not None and nominal_va > 0:
        return nominal_va * power_factor

    return fallback_watts


def estimate_capacity_ah(
    start_charge_pct: float,
    end_charge_pct: float,
    load_pct: float,
    duration_seconds: float,
    battery_voltage: float,
    ups_watts: float,
    inverter_efficiency: float = DEFAULT_INVERTER_EFFICIENCY,
) -> float | None:
    """Estimate battery capacity in Ah from one discharge.

    Returns None unless the charge actually dropped and the duration is positive.
    """
    if start_charge_pct <= end_charge_pct or duration_seconds <= 0:
        return None

    delta_soc = max(MIN_DELTA_SOC, (start_charge_pct - end_charge_pct) / 100.0)
    output_watts = max(MIN_OUTPUT_WATTS, ups_watts * load_pct / 100.0)
    load_current = output_watts / max(MIN_BATTERY_WATTS, battery_voltage * inverter_efficiency)
    return load_current * (duration_seconds / 3600.0) / delta_soc


def battery_health_percent(estimated_ah: float, nominal_ah: float) -> int | None:
    """Estimated capacity as a percentage of nominal, clamped to 0-100."""
    if estimated_ah <= 0 or nominal_ah <= 0:
        return None
    return max(0, min(100, round(estimated_ah / nominal_ah * 100.0)))


class CapacityEstimator:
    """Turns completed on-battery cycles into a smoothed capacity estimate."""

    def __init__(
        self,
        estimate: CapacityEstimate,
        config: dict[str, Any],
        persist: Callable[[], None] | None = None,
    ):
        """Initialize estimator.

        Args:
            estimate: Shared estimate record, mutated in place
            config: The ``battery`` configuration section
            persist: Called after every change to the estimate
        """
        self.estimate = estimate
        self.persist = persist
        self.ups_nominal_watts = config.get("ups_nominal_watts", 600.0)
        self.nominal_voltage = config.get("nominal_voltage", 24.0)
        self.power_factor = config.get("assumed_power_factor", 0.65)
        self.inverter_efficiency = config.get("inverter_efficiency", DEFAULT_INVERTER_EFFICIENCY)
        self.alpha = config.get("smoothing_alpha", DEFAULT_SMOOTHING_ALPHA)

    def observe_cycle(
        self,
        start_charge_pct: float | None,
        start_load_pct: float | None,
        start_battery_voltage: float | None,
        duration_seconds: float,
        status: Mapping[str, str],
    ) -> float | None:
        """Feed a completed cycle; returns the new smoothed estimate or None.

        Args:
            start_charge_pct: BCHARGE captured when the cycle started
            start_load_pct: LOADPCT captured when the cycle started
            start_battery_voltage: BATTV captured when the cycle started
            duration_seconds: Time spent on battery
            status: Status from the poll that ended the cycle
        """
        end_charge_pct = get_number(status, "BCHARGE")
        if start_charge_pct is None or end_charge_pct is None:
            logger.debug("Capacity estimate skipped: missing battery charge readings")
            return None

        load_pct = start_load_pct
        if load_pct is None:
            load_pct = get_number(status, "LOADPCT") or 0.0

        battery_voltage = get_number(status, "NOMBATTV") or start_battery_voltage or self.nominal_voltage
        ups_watts = resolve_ups_watts(status, self.power_factor, self.ups_nominal_watts)

        sample_ah = estimate_capacity_ah(
            start_charge_pct,
            end_charge_pct,
            load_pct,
            duration_seconds,
            battery_voltage,
            ups_watts,
            self.inverter_efficiency,
        )
        if sample_ah is None:
            logger.debug(
                f"Capacity estimate skipped: charge {start_charge_pct:.0f}% -> {end_charge_pct:.0f}%, "
                f"duration {duration_seconds:.0f}s"
            )
            return None

        return self.add_sample(sample_ah)

    def add_sample(self, sample_ah: float) -> float:
        """Blend one raw estimate into the exponential moving average."""
        previous = self.estimate.capacity_ah
        if previous <= 0:
            smoothed = sample_ah
        else:
            smoothed = self.alpha * sample_ah + (1 - self.alpha) * previous

        self.estimate.capacity_ah = smoothed
        self.estimate.samples += 1
        logger.info(
            f"🔋 Battery capacity estimate: {smoothed:.1f}Ah "
            f"(sample {sample_ah:.1f}Ah, {self.estimate.samples} samples)"
        )
        if self.persist:
            self.persist()
        return smoothed
