"""Wire strategies for the NIS line protocol.

Two framings exist in the wild:

* ``stream``: write ``command\\n``, half-close the write side and read until EOF.
* ``framed``: every message is a 2-byte big-endian length followed by the
  payload; the response is a series of frames terminated by a zero-length frame.
"""

import asyncio
import logging
import struct
from abc import ABC, abstractmethod

from .errors import NisConnectionError, NisParseError, NisTimeoutError

logger = logging.getLogger(__name__)

READ_CHUNK = 4096
_HEADER = struct.Struct(">H")


class ProtocolTransport(ABC):
    """Sends one command to the daemon and returns the raw response text."""

    name = "base"

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port

    async def request(self, command: str, timeout: float) -> str:
        """Run a single command round-trip bounded by ``timeout`` seconds.

        Raises:
            NisTimeoutError: connect or response did not complete in time
            NisConnectionError: connection refused, reset or unreachable
            NisParseError: malformed framing
        """
        try:
            return await asyncio.wait_for(self._request(command), timeout=timeout)
        except TimeoutError as e:
            raise NisTimeoutError(
                f"No response from {self.host}:{self.port} within {timeout:.1f}s"
            ) from e
        except (ConnectionError, OSError) as e:
            raise NisConnectionError(f"Cannot talk to {self.host}:{self.port}: {e}") from e

    async def _request(self, command: str) -> str:
        reader, writer = await asyncio.open_connection(self.host, self.port)
        try:
            return await self._exchange(reader, writer, command)
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError):
                pass

    @abstractmethod
    async def _exchange(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter, command: str
    ) -> str:
        """Write the command and read the complete response."""


class StreamTransport(ProtocolTransport):
    """Newline-terminated command, response read until end-of-stream."""

    name = "stream"

    async def _exchange(self, reader, writer, command):
        writer.write(f"{command}\n".encode("ascii"))
        await writer.drain()
        if writer.can_write_eof():
            writer.write_eof()

        chunks = []
        while True:
            chunk = await reader.read(READ_CHUNK)
            if not chunk:
                break
            chunks.append(chunk)
        return b"".join(chunks).decode("utf-8", errors="replace")


class FramedTransport(ProtocolTransport):
    """Length-prefixed frames in both directions."""

    name = "framed"

    async def _exchange(self, reader, writer, command):
        writer.write(encode_frame(command.encode("ascii")))
        await writer.drain()

        parts = []
        while True:
            payload = await read_frame(reader)
            if payload is None:
                break
            parts.append(payload.decode("ascii", errors="replace"))
        return "".join(parts)


def encode_frame(payload: bytes) -> bytes:
    """Prefix payload with its 2-byte big-endian length."""
    if len(payload) > 0xFFFF:
        raise ValueError(f"NIS payload too long: {len(payload)} bytes")
    return _HEADER.pack(len(payload)) + payload


async def read_frame(reader: asyncio.StreamReader) -> bytes | None:
    """Read one frame; None marks the end of the response.

    A zero-length frame or a clean EOF before a header both end the response.
    A partial header or a truncated payload raises NisParseError.
    """
    try:
        header = await reader.readexactly(_HEADER.size)
    except asyncio.IncompleteReadError as e:
        if not e.partial:
            return None
        raise NisParseError(
            f"NIS frame header truncated: received {len(e.partial)} of {_HEADER.size} bytes"
        ) from e

    (length,) = _HEADER.unpack(header)
    if length == 0:
        return None

    try:
        return await reader.readexactly(length)
    except asyncio.IncompleteReadError as e:
        raise NisParseError(
            f"NIS frame truncated: received {len(e.partial)} bytes, expected {length}"
        ) from e


TRANSPORTS: dict[str, type[ProtocolTransport]] = {
    StreamTransport.name: StreamTransport,
    FramedTransport.name: FramedTransport,
}


def create_transport(name: str, host: str, port: int) -> ProtocolTransport:
    """Build a transport by name ("stream" or "framed")."""
    try:
        transport_class = TRANSPORTS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown NIS transport: {name} (expected one of {', '.join(TRANSPORTS)})"
        ) from None
    return transport_class(host, port)
