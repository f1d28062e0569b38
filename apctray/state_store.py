"""Persistence of battery cycle and capacity state between runs."""

import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .engine.capacity import CapacityEstimate
from .engine.cycles import CycleState

logger = logging.getLogger(__name__)


@dataclass
class PersistedState:
    """Everything the monitor must remember across restarts."""

    cycle: CycleState = field(default_factory=CycleState)
    capacity: CapacityEstimate = field(default_factory=CapacityEstimate)
    battery_replaced_epoch: float = 0.0

    def set_battery_replaced(self, epoch: float) -> bool:
        """Record a battery replacement date.

        A date newer than the stored one resets the cycle count and the
        capacity estimate.

        Returns:
            True if the counters were reset
        """
        if epoch <= self.battery_replaced_epoch:
            logger.debug("Battery replacement date not newer than stored one, ignoring")
            return False

        self.battery_replaced_epoch = epoch
        self.cycle.cycle_count = 0
        self.cycle.last_on_battery_seconds = 0.0
        self.capacity.capacity_ah = 0.0
        self.capacity.samples = 0
        logger.info("🔧 Battery replaced: cycle count and capacity estimate reset")
        return True

    def to_dict(self) -> dict[str, Any]:
        return {
            "cycle": asdict(self.cycle),
            "capacity": asdict(self.capacity),
            "battery_replaced_epoch": self.battery_replaced_epoch,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PersistedState":
        return cls(
            cycle=CycleState(**_known_fields(CycleState, data.get("cycle"))),
            capacity=CapacityEstimate(**_known_fields(CapacityEstimate, data.get("capacity"))),
            battery_replaced_epoch=float(data.get("battery_replaced_epoch") or 0.0),
        )


def _known_fields(cls: type, data: Any) -> dict[str, Any]:
    if not isinstance(data, dict):
        return {}
    names = {f.name for f in fields(cls)}
    return {key: value for key, value in data.items() if key in names}


class StateRepository:
    """Loads and saves PersistedState as YAML."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> PersistedState:
        """Load state; a missing or corrupt file yields defaults."""
        if not self.path.exists():
            return PersistedState()

        try:
            with open(self.path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ValueError("state file is not a mapping")
            state = PersistedState.from_dict(data)
        except (OSError, yaml.YAMLError, ValueError, TypeError) as e:
            logger.warning(f"Failed to load state from {self.path}, using defaults: {e}")
            return PersistedState()

        logger.info(
            f"Loaded state: {state.cycle.cycle_count} cycles, "
            f"capacity {state.capacity.capacity_ah:.1f}Ah"
        )
        return state

    def save(self, state: PersistedState) -> bool:
        """Write state synchronously; I/O errors are logged and skipped."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp_path, "w", encoding="utf-8") as f:
                yaml.safe_dump(state.to_dict(), f, default_flow_style=False, indent=2)
            tmp_path.replace(self.path)
        except OSError as e:
            logger.error(f"Failed to save state to {self.path}: {e}")
            return False
        return True
