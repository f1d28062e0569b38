"""NIS client for the UPS monitoring daemon (apcupsd / apcctrl)."""

import asyncio
import logging
import os
import shutil
from typing import Any

from .errors import FallbackExhausted, NisConnectionError, NisError, NisTimeoutError
from .parser import StatusMap, parse_events, parse_status
from .transport import (
    FramedTransport,
    ProtocolTransport,
    StreamTransport,
    create_transport,
    encode_frame,
)

logger = logging.getLogger(__name__)

DEFAULT_APCACCESS_PATHS = [
    "/opt/homebrew/sbin/apcaccess",
    "/opt/homebrew/bin/apcaccess",
    "/usr/local/sbin/apcaccess",
    "/usr/local/bin/apcaccess",
    "/usr/sbin/apcaccess",
    "/usr/bin/apcaccess",
]


class NisClient:
    """Fetches status and events from the daemon over a pluggable transport."""

    def __init__(self, config: dict[str, Any]):
        """Initialize client from the ``nis`` configuration section.

        Args:
            config: Dict with host, port, timeout, transport and apcaccess_paths
        """
        self.host = config.get("host", "127.0.0.1")
        self.port = int(config.get("port", 3551))
        self.timeout = float(config.get("timeout", 3.0))
        self.transport_name = config.get("transport", "auto").lower()
        self.apcaccess_paths = config.get("apcaccess_paths") or DEFAULT_APCACCESS_PATHS

        self._transport: ProtocolTransport | None = None
        if self.transport_name != "auto":
            self._transport = create_transport(self.transport_name, self.host, self.port)

    @property
    def transport(self) -> ProtocolTransport | None:
        """Transport in use, None until an ``auto`` probe has decided."""
        return self._transport

    async def fetch_status(self, timeout: float | None = None) -> StatusMap:
        """Request ``status`` from the daemon and parse it.

        Raises:
            NisError: on timeout, connection or framing failure
        """
        text = await self._request("status", timeout)
        return parse_status(text)

    async def fetch_events(self, timeout: float | None = None) -> list[str]:
        """Request ``events`` from the daemon.

        Raises:
            NisError: on timeout, connection or framing failure
        """
        text = await self._request("events", timeout)
        return parse_events(text)

    async def fetch_status_with_fallback(self, timeout: float | None = None) -> StatusMap:
        """Fetch status, using the local apcaccess binary when NIS is not usable.

        The fallback also runs when the daemon answers without a STATUS field.

        Raises:
            FallbackExhausted: NIS failed and apcaccess produced nothing
        """
        status = StatusMap()
        nis_error: NisError | None = None
        try:
            status = await self.fetch_status(timeout)
        except NisError as e:
            nis_error = e
            logger.debug(f"NIS status fetch failed: {e}")

        if "STATUS" in status:
            return status

        fallback = await self._run_apcaccess(timeout)
        if fallback:
            return fallback
        if nis_error is not None:
            raise FallbackExhausted(
                f"No status from {self.host}:{self.port} ({nis_error}) or apcaccess"
            ) from nis_error
        return status

    async def poll_status(self, timeout: float | None = None) -> StatusMap:
        """Like fetch_status_with_fallback but never raises.

        Returns an empty StatusMap when both sources fail.
        """
        try:
            return await self.fetch_status_with_fallback(timeout)
        except NisError as e:
            logger.debug(f"Status unavailable: {e}")
            return StatusMap()

    async def poll_events(self, timeout: float | None = None) -> list[str]:
        """Fetch events without raising; empty list on failure."""
        try:
            return await self.fetch_events(timeout)
        except NisError as e:
            logger.debug(f"NIS events fetch failed: {e}")
            return []

    async def test_connection(self, timeout: float = 2.0) -> bool:
        """Check that the daemon answers a status request."""
        try:
            await self.fetch_status(timeout)
            return True
        except NisError as e:
            logger.info(f"NIS connection test to {self.host}:{self.port} failed: {e}")
            return False

    async def probe_transport(self, timeout: float | None = None) -> ProtocolTransport:
        """Detect which framing the daemon speaks.

        Sends a length-prefixed ``status``; a plausible 2-byte header in reply
        selects the framed transport, anything else the stream transport.

        Raises:
            NisTimeoutError: connect did not complete in time, nothing decided
            NisConnectionError: the daemon could not be reached, nothing decided
        """
        timeout = self.timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        started = loop.time()
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port), timeout=timeout
            )
        except TimeoutError as e:
            raise NisTimeoutError(
                f"Cannot probe NIS transport at {self.host}:{self.port}: connect timed out"
            ) from e
        except (ConnectionError, OSError) as e:
            raise NisConnectionError(
                f"Cannot probe NIS transport at {self.host}:{self.port}: {e}"
            ) from e

        framed = False
        try:
            remaining = max(timeout - (loop.time() - started), 0.0)
            framed = await asyncio.wait_for(self._probe_framed(reader, writer), timeout=remaining)
        except TimeoutError:
            logger.debug(f"Framed probe of {self.host}:{self.port} got no reply within {timeout:.1f}s")
        except (ConnectionError, OSError) as e:
            logger.debug(f"Framed probe of {self.host}:{self.port} dropped: {e}")
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError):
                pass

        transport_class = FramedTransport if framed else StreamTransport
        logger.info(f"NIS transport for {self.host}:{self.port}: {transport_class.name}")
        return transport_class(self.host, self.port)

    async def _probe_framed(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> bool:
        writer.write(encode_frame(b"status"))
        await writer.drain()
        header = await reader.read(2)
        if len(header) < 2:
            return False
        length = (header[0] << 8) | header[1]
        # A stream daemon answers with text, whose first two bytes decode
        # to a huge length ("AP" -> 16720) for a status line.
        return 0 < length < 1024

    async def _request(self, command: str, timeout: float | None) -> str:
        timeout = self.timeout if timeout is None else timeout
        if self._transport is None:
            # Probe and request share one timeout budget
            loop = asyncio.get_running_loop()
            started = loop.time()
            self._transport = await self.probe_transport(timeout / 2)
            timeout = max(timeout - (loop.time() - started), 0.0)
        return await self._transport.request(command, timeout)

    async def _run_apcaccess(self, timeout: float | None = None) -> StatusMap:
        """Run the first working apcaccess candidate and parse its stdout."""
        timeout = self.timeout if timeout is None else timeout
        for path in self._apcaccess_candidates():
            try:
                proc = await asyncio.create_subprocess_exec(
                    path,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.DEVNULL,
                )
            except OSError as e:
                logger.debug(f"Cannot run {path}: {e}")
                continue

            try:
                stdout, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)
            except TimeoutError:
                logger.debug(f"{path} timed out after {timeout:.1f}s")
                proc.kill()
                await proc.wait()
                continue

            text = stdout.decode("utf-8", errors="replace")
            if text.strip():
                logger.debug(f"Status read from local {path}")
                return parse_status(text)

        return StatusMap()

    def _apcaccess_candidates(self) -> list[str]:
        candidates = [
            path
            for path in self.apcaccess_paths
            if os.path.isfile(path) and os.access(path, os.X_OK)
        ]
        on_path = shutil.which("apcaccess")
        if on_path and on_path not in candidates:
            candidates.append(on_path)
        return candidates
