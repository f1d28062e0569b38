"""On-battery cycle tracking."""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime

from ..nis.parser import get_number
from ..util.formatting import format_duration
from .capacity import CapacityEstimator
from .classifier import UpsState

logger = logging.getLogger(__name__)

ENTERED_BATTERY = "Entered battery"
LEFT_BATTERY = "Left battery"


@dataclass
class CycleState:
    """Battery cycle bookkeeping, persisted after every change."""

    cycle_count: int = 0
    on_battery_since: float | None = None  # epoch seconds
    last_on_battery_seconds: float = 0.0
    start_charge_pct: float | None = None
    start_load_pct: float | None = None
    start_battery_voltage: float | None = None

    @property
    def on_battery(self) -> bool:
        return self.on_battery_since is not None

    def clear_start_metrics(self) -> None:
        self.start_charge_pct = None
        self.start_load_pct = None
        self.start_battery_voltage = None


class CycleTracker:
    """Counts on-battery cycles and times them across polls."""

    def __init__(
        self,
        state: CycleState,
        estimator: CapacityEstimator | None = None,
        persist: Callable[[], None] | None = None,
    ):
        """Initialize tracker.

        Args:
            state: Shared cycle record, mutated in place
            estimator: Fed with every completed cycle
            persist: Called after every mutation of ``state``
        """
        self.state = state
        self.estimator = estimator
        self.persist = persist

    def observe(
        self,
        previous: UpsState,
        current: UpsState,
        status: Mapping[str, str],
        now: datetime,
    ) -> list[str]:
        """Apply one poll's state transition and return the resulting event messages."""
        if current == UpsState.ONBATT and previous != UpsState.ONBATT:
            return [self._enter_battery(status, now)]

        if previous == UpsState.ONBATT and current != UpsState.ONBATT:
            return [self._leave_battery(status, now)]

        return []

    def current_duration(self, now: datetime) -> float | None:
        """Seconds spent on battery so far, None when not on battery."""
        if self.state.on_battery_since is None:
            return None
        return max(0.0, now.timestamp() - self.state.on_battery_since)

    def _enter_battery(self, status: Mapping[str, str], now: datetime) -> str:
        self.state.cycle_count += 1
        self.state.on_battery_since = now.timestamp()
        self.state.start_charge_pct = get_number(status, "BCHARGE")
        self.state.start_load_pct = get_number(status, "LOADPCT")
        self.state.start_battery_voltage = get_number(status, "BATTV")
        self._save()

        logger.info(f"🔋 On battery (cycle #{self.state.cycle_count})")
        return ENTERED_BATTERY

    def _leave_battery(self, status: Mapping[str, str], now: datetime) -> str:
        duration = self.current_duration(now)
        if duration is None:
            # Restarted mid-cycle without a persisted start time
            logger.warning("Left battery but no cycle start was recorded")
            return f"{LEFT_BATTERY} (duration=--:--)"

        start_charge = self.state.start_charge_pct
        start_load = self.state.start_load_pct
        start_voltage = self.state.start_battery_voltage

        self.state.last_on_battery_seconds = duration
        self.state.on_battery_since = None
        self.state.clear_start_metrics()
        self._save()

        logger.info(f"🔌 Back on line after {format_duration(duration)} on battery")

        if self.estimator:
            self.estimator.observe_cycle(start_charge, start_load, start_voltage, duration, status)

        return f"{LEFT_BATTERY} (duration={format_duration(duration)})"

    def _save(self) -> None:
        if self.persist:
            self.persist()
