"""Error taxonomy for talking to the UPS monitoring daemon."""


class NisError(Exception):
    """Base class for all NIS protocol failures."""


class NisTimeoutError(NisError, TimeoutError):
    """No response from the daemon within the configured timeout."""


class NisConnectionError(NisError, ConnectionError):
    """Daemon unreachable, connection refused or reset."""


class NisParseError(NisError):
    """Malformed response (e.g. a frame shorter than its length header)."""


class FallbackExhausted(NisError):
    """Both the NIS daemon and the local status executable failed."""
