"""apctray - status polling and derived battery state for apcupsd / apcctrl UPS daemons."""

from .core import UpsMonitor
from .engine import UpsState, classify
from .nis import NisClient, StatusMap, parse_status

__version__ = "0.1.0"
__all__ = ["UpsMonitor", "UpsState", "classify", "NisClient", "StatusMap", "parse_status"]
