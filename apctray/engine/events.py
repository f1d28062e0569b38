"""Event log with de-duplicated emission and presentation helpers."""

import logging
from collections.abc import Callable, Mapping
from datetime import date, datetime

from ..nis.parser import get_field
from ..util.formatting import format_timestamp

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 1000

# (keywords, icon) - first match wins, matched against the upper-cased line
EVENT_ICONS: list[tuple[tuple[str, ...], str]] = [
    (("COMMLOST", "COMMUNICATION LOST"), "❌"),
    (("ONBATT", "ENTERED BATTERY", "POWER FAILURE"), "🔋"),
    (("RECOVERED",), "✅"),
    (("LEFT BATTERY", "ONLINE", "POWER IS BACK"), "🔌"),
    (("VOLTAGE",), "⚡️"),
    (("FREQUENCY",), "📶"),
    (("CHARG",), "🔄"),
]
DEFAULT_ICON = "ℹ️"

# (keywords, context fields) - first match wins
_CONTEXT_FIELDS: list[tuple[tuple[str, ...], tuple[str, ...]]] = [
    (("ALERT",), ("charge", "load", "voltage", "frequency")),
    (("ENTERED BATTERY",), ("time_left", "charge", "load")),
    (("LEFT BATTERY",), ("charge", "voltage", "frequency")),
    (("STATUS CHANGED", "INITIALIZED"), ("charge", "load", "voltage_frequency", "time_left")),
    (("RECOVERED",), ("voltage", "frequency", "charge")),
]
_DEFAULT_CONTEXT = ("charge", "load")

SELF_TEST_PATTERNS = [
    "SELFTEST",
    "SELF-TEST",
    "SELF TEST",
    "AUTO TEST",
    "TEST PASSED",
    "TEST FAILED",
]


def event_icon(line: str) -> str:
    """Pick an icon for an event line by keyword lookup."""
    upper = line.upper()
    for keywords, icon in EVENT_ICONS:
        if any(keyword in upper for keyword in keywords):
            return icon
    return DEFAULT_ICON


def enrich_event(line: str, status: Mapping[str, str]) -> str:
    """Prefix an event line with its icon and append a context line of readings.

    Already multi-line (enriched) text is returned unchanged.
    """
    if "\n" in line:
        return line

    def first_token(key: str) -> str:
        value = get_field(status, key)
        if not value:
            return "--"
        return value.split()[0]

    context = {
        "charge": f"Battery: {get_field(status, 'BCHARGE') or '--'}",
        "load": f"Load: {get_field(status, 'LOADPCT') or '--'}",
        "voltage": f"Volt: {first_token('LINEV')}V",
        "frequency": f"Freq: {first_token('LINEFREQ')}Hz",
        "voltage_frequency": f"Volt/Freq: {first_token('LINEV')}V / {first_token('LINEFREQ')}Hz",
        "time_left": f"Runtime: {get_field(status, 'TIMELEFT') or '--'}",
    }

    upper = line.upper()
    fields = _DEFAULT_CONTEXT
    for keywords, candidate in _CONTEXT_FIELDS:
        if any(keyword in upper for keyword in keywords):
            fields = candidate
            break

    icon = event_icon(line)
    prefixed = line if line.startswith(icon) else f"{icon} {line}"
    return f"{prefixed}\n{' | '.join(context[name] for name in fields)}"


class EventLog:
    """Ordered, user-clearable log of event lines.

    Every appended line that differs from the last emitted one is passed to
    ``on_emit`` exactly once.
    """

    def __init__(
        self,
        on_emit: Callable[[str], None] | None = None,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        self.on_emit = on_emit
        self.max_entries = max_entries
        self.entries: list[str] = []
        self.last_emitted_line = ""
        self._native_snapshot: list[str] | None = None

    def __len__(self) -> int:
        return len(self.entries)

    def append(self, line: str) -> bool:
        """Append a line; returns True if it was emitted (not a duplicate)."""
        self._store(line)
        if line == self.last_emitted_line:
            logger.debug(f"Duplicate event suppressed: {line}")
            return False

        self.last_emitted_line = line
        if self.on_emit:
            self.on_emit(line)
        return True

    def add(self, message: str, now: datetime) -> bool:
        """Append a synthesized message prefixed with its timestamp."""
        return self.append(f"{format_timestamp(now)} {message}")

    def mirror(self, lines: list[str]) -> list[str]:
        """Mirror the daemon's native event feed.

        Only lines past the overlap with the previous snapshot are appended.
        The first snapshot after start-up (or after clear) is stored as
        backlog without emitting anything.

        Returns:
            The lines that were appended as new
        """
        previous = self._native_snapshot
        self._native_snapshot = list(lines)

        if previous is None:
            for line in lines:
                self._store(line)
            if lines:
                self.last_emitted_line = lines[-1]
            logger.debug(f"Loaded {len(lines)} native events as backlog")
            return []

        new_lines = lines[_overlap(previous, lines):]
        for line in new_lines:
            self.append(line)
        return new_lines

    def clear(self) -> None:
        """Forget all entries and the de-duplication / mirroring memory."""
        self.entries.clear()
        self.last_emitted_line = ""
        self._native_snapshot = None

    def recent(self, count: int) -> list[str]:
        return self.entries[-count:] if count > 0 else []

    def self_tests(self) -> list[str]:
        """Entries that report UPS self-test activity."""
        return [
            line
            for line in self.entries
            if any(pattern in line.upper() for pattern in SELF_TEST_PATTERNS)
        ]

    def entries_on(self, day: date) -> list[str]:
        """Entries whose leading ``YYYY-MM-DD`` timestamp falls on ``day``."""
        selected = []
        for line in self.entries:
            try:
                entry_day = datetime.strptime(line[:10], "%Y-%m-%d").date()
            except ValueError:
                continue
            if entry_day == day:
                selected.append(line)
        return selected

    def _store(self, line: str) -> None:
        self.entries.append(line)
        if len(self.entries) > self.max_entries:
            del self.entries[: len(self.entries) - self.max_entries]


def _overlap(previous: list[str], current: list[str]) -> int:
    """Length of the longest suffix of ``previous`` that prefixes ``current``."""
    for size in range(min(len(previous), len(current)), 0, -1):
        if previous[-size:] == current[:size]:
            return size
    return 0
