"""Parsing of NIS status and event responses."""

import re
from collections.abc import Iterator, Mapping

_NUMBER_RE = re.compile(r"^[+-]?\d+(?:[.,]\d+)?")


class StatusMap(Mapping[str, str]):
    """Read-only mapping of daemon status fields with case-insensitive keys.

    The original key spelling of the last occurrence is preserved for iteration.
    """

    def __init__(self, items: Mapping[str, str] | None = None):
        self._data: dict[str, tuple[str, str]] = {}
        if items:
            for key, value in items.items():
                self._data[key.upper()] = (key, value)

    def __getitem__(self, key: str) -> str:
        return self._data[key.upper()][1]

    def __iter__(self) -> Iterator[str]:
        return (original for original, _ in self._data.values())

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key.upper() in self._data

    def __repr__(self) -> str:
        return f"StatusMap({dict(self.items())!r})"


def parse_status(text: str) -> StatusMap:
    """Parse ``KEY : VALUE`` lines into a StatusMap.

    Only the first colon splits a line; key and value are trimmed, lines
    without a colon (or with an empty key) are ignored and the last
    occurrence of a duplicate key wins.
    """
    fields: dict[str, str] = {}
    for line in text.replace("\r", "").split("\n"):
        if not line.strip():
            continue
        key, sep, value = line.partition(":")
        key = key.strip()
        if not sep or not key:
            continue
        # Drop an earlier spelling so the last occurrence wins regardless of case
        for existing in [k for k in fields if k.upper() == key.upper()]:
            del fields[existing]
        fields[key] = value.strip()
    return StatusMap(fields)


def parse_events(text: str) -> list[str]:
    """Split an events response into non-blank, right-trimmed lines."""
    lines = []
    for line in text.replace("\r", "").split("\n"):
        line = line.rstrip()
        if line.strip():
            lines.append(line)
    return lines


def parse_number(raw: str | None) -> float | None:
    """Parse the leading numeric token of a value such as ``"120.3 Volts"``.

    Both ``.`` and ``,`` are accepted as decimal separator.
    """
    if raw is None:
        return None
    match = _NUMBER_RE.match(raw.strip())
    if not match:
        return None
    try:
        return float(match.group(0).replace(",", "."))
    except ValueError:
        return None


def get_field(status: Mapping[str, str], key: str) -> str | None:
    """Case-insensitive field lookup that also works on plain dicts."""
    if key in status:
        return status[key]
    wanted = key.upper()
    for candidate, value in status.items():
        if candidate.upper() == wanted:
            return value
    return None


def get_number(status: Mapping[str, str], key: str) -> float | None:
    """Leading numeric value of a status field, None if absent or unparseable."""
    return parse_number(get_field(status, key))
