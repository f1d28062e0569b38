"""NIS protocol client for the UPS monitoring daemon."""

from .client import NisClient
from .errors import (
    FallbackExhausted,
    NisConnectionError,
    NisError,
    NisParseError,
    NisTimeoutError,
)
from .parser import (
    StatusMap,
    get_field,
    get_number,
    parse_events,
    parse_number,
    parse_status,
)
from .transport import FramedTransport, ProtocolTransport, StreamTransport, create_transport

__all__ = [
    "NisClient",
    "NisError",
    "NisTimeoutError",
    "NisConnectionError",
    "NisParseError",
    "FallbackExhausted",
    "StatusMap",
    "parse_status",
    "parse_events",
    "parse_number",
    "get_field",
    "get_number",
    "ProtocolTransport",
    "StreamTransport",
    "FramedTransport",
    "create_transport",
]
