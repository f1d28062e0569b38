"""UPS operating state classification."""

from collections.abc import Mapping
from enum import Enum

from ..nis.parser import get_field, get_number


class UpsState(Enum):
    """Operating state derived from one status poll."""

    COMMLOST = "commlost"
    ONBATT = "onbatt"
    CHARGING = "charging"
    ONLINE = "online"


# First match wins
_STATUS_RULES = [
    ("COMMLOST", UpsState.COMMLOST),
    ("ONBATT", UpsState.ONBATT),
    ("ONLINE", UpsState.ONLINE),
]


def classify(status: Mapping[str, str]) -> UpsState:
    """Classify a parsed status mapping into a UpsState.

    Rules are evaluated against the STATUS field (case-insensitive substring).
    Without STATUS, a parsed battery charge below 100% means CHARGING and
    anything else (including an empty mapping) means COMMLOST.
    """
    raw_status = get_field(status, "STATUS")
    if raw_status is not None:
        text = raw_status.upper()
        for token, state in _STATUS_RULES:
            if token in text:
                return state
        return UpsState.CHARGING

    charge = get_number(status, "BCHARGE")
    if charge is not None and charge < 100:
        return UpsState.CHARGING
    return UpsState.COMMLOST
