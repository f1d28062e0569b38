"""Bounded history of per-poll UPS readings with JSON persistence."""

import asyncio
import json
import logging
import threading
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from .nis.parser import get_number

logger = logging.getLogger(__name__)

DEFAULT_MAX_SAMPLES = 2880  # 48h at one sample per minute

# Field name -> JSON key
_JSON_KEYS = {
    "time": "time",
    "charge": "charge",
    "load": "load",
    "line_v": "lineV",
    "freq": "freq",
    "time_left": "timeLeft",
}


@dataclass(frozen=True)
class MetricSample:
    """Readings captured from one poll."""

    time: datetime
    charge: float | None = None
    load: float | None = None
    line_v: float | None = None
    freq: float | None = None
    time_left: float | None = None  # minutes

    @classmethod
    def from_status(cls, status: Mapping[str, str], now: datetime) -> "MetricSample":
        return cls(
            time=now,
            charge=get_number(status, "BCHARGE"),
            load=get_number(status, "LOADPCT"),
            line_v=get_number(status, "LINEV"),
            freq=get_number(status, "LINEFREQ"),
            time_left=get_number(status, "TIMELEFT"),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"time": self.time.isoformat()}
        for field_name, key in _JSON_KEYS.items():
            if field_name != "time":
                data[key] = getattr(self, field_name)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MetricSample":
        values: dict[str, Any] = {"time": datetime.fromisoformat(data["time"])}
        for field_name, key in _JSON_KEYS.items():
            if field_name == "time":
                continue
            raw = data.get(key)
            values[field_name] = float(raw) if raw is not None else None
        return cls(**values)


class MetricsStore:
    """Ring buffer of MetricSample, safe to snapshot from another thread."""

    def __init__(self, path: str | Path, max_samples: int = DEFAULT_MAX_SAMPLES):
        self.path = Path(path)
        self.max_samples = max(1, int(max_samples))
        self._samples: deque[MetricSample] = deque(maxlen=self.max_samples)
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._samples)

    def append(self, sample: MetricSample) -> None:
        """Add a sample, evicting the oldest once the buffer is full."""
        with self._lock:
            self._samples.append(sample)

    def record(self, status: Mapping[str, str], now: datetime) -> MetricSample:
        sample = MetricSample.from_status(status, now)
        self.append(sample)
        return sample

    def snapshot(self) -> list[MetricSample]:
        """Copy of the buffered samples, oldest first."""
        with self._lock:
            return list(self._samples)

    def load(self) -> int:
        """Load samples from disk, replacing the buffer.

        A missing or unreadable file leaves the buffer empty.

        Returns:
            Number of samples loaded
        """
        if not self.path.exists():
            return 0

        try:
            with open(self.path, encoding="utf-8") as f:
                raw = json.load(f)
            samples = [MetricSample.from_dict(item) for item in raw]
        except (OSError, ValueError, TypeError, KeyError) as e:
            logger.warning(f"Failed to load metrics from {self.path}: {e}")
            return 0

        with self._lock:
            self._samples.clear()
            self._samples.extend(samples)
            count = len(self._samples)
        logger.info(f"Loaded {count} metric samples from {self.path}")
        return count

    def save(self) -> bool:
        """Write the buffer to disk; I/O errors are logged and skipped."""
        data = [sample.to_dict() for sample in self.snapshot()]
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            tmp_path.replace(self.path)
        except OSError as e:
            logger.error(f"Failed to save metrics to {self.path}: {e}")
            return False

        logger.debug(f"Saved {len(data)} metric samples to {self.path}")
        return True

    async def save_async(self) -> bool:
        """Save from a worker thread so the event loop is not blocked."""
        return await asyncio.to_thread(self.save)
