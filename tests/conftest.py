"""Test fixtures and configuration for apctray tests."""

import asyncio
import copy
import struct
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from apctray.config import DEFAULT_CONFIG
from apctray.nis import parse_status

STATUS_ONLINE = (
    "APC      : 001,036,0870\n"
    "DATE     : 2024-05-01 10:00:00 -0300\n"
    "UPSNAME  : office\n"
    "STATUS   : ONLINE\n"
    "LINEV    : 121.0 Volts\n"
    "LOADPCT  : 50.0 Percent\n"
    "BCHARGE  : 100.0 Percent\n"
    "TIMELEFT : 45.0 Minutes\n"
    "OUTPUTV  : 120.0 Volts\n"
    "LINEFREQ : 60.0 Hz\n"
    "BATTV    : 27.1 Volts\n"
    "NOMBATTV : 24.0 Volts\n"
    "NOMPOWER : 600 Watts\n"
)


def make_status(**overrides: str):
    """ONLINE status with selected fields replaced (e.g. STATUS="ONBATT")."""
    status = dict(parse_status(STATUS_ONLINE))
    status.update(overrides)
    return parse_status("\n".join(f"{key}: {value}" for key, value in status.items()))


@pytest.fixture
def test_config(tmp_path) -> dict[str, Any]:
    """Default configuration with data files in a temporary directory."""
    config = copy.deepcopy(DEFAULT_CONFIG)
    config["app"]["data_dir"] = str(tmp_path)
    config["nis"]["transport"] = "stream"
    config["nis"]["timeout"] = 1.0
    config["nis"]["apcaccess_paths"] = []
    return config


@pytest.fixture
def mock_client():
    """NIS client double returning an ONLINE status and no native events."""
    client = MagicMock()
    client.host = "127.0.0.1"
    client.port = 3551
    client.poll_status = AsyncMock(return_value=make_status())
    client.poll_events = AsyncMock(return_value=[])
    return client


@pytest.fixture
def mock_notifier():
    """Local notifier double."""
    return MagicMock()


@pytest_asyncio.fixture
async def nis_server():
    """Factory for in-process NIS daemons on localhost.

    ``await nis_server(responses, framed=False, hang=False, port=0)`` returns the
    bound port.
    """
    servers = []
    release = asyncio.Event()

    async def start(
        responses: dict[str, str], framed: bool = False, hang: bool = False, port: int = 0
    ) -> int:
        async def handle(reader, writer):
            try:
                if framed:
                    header = await reader.readexactly(2)
                    (length,) = struct.unpack(">H", header)
                    command = (await reader.readexactly(length)).decode("ascii", errors="replace")
                else:
                    command = (await reader.readline()).decode("ascii", errors="replace").strip()

                if hang:
                    await release.wait()
                    return

                body = responses.get(command, "")
                if framed:
                    for line in body.splitlines(keepends=True):
                        data = line.encode("ascii")
                        writer.write(struct.pack(">H", len(data)) + data)
                    writer.write(struct.pack(">H", 0))
                else:
                    writer.write(body.encode("ascii"))
                await writer.drain()
            except (asyncio.IncompleteReadError, ConnectionError):
                pass
            finally:
                writer.close()

        server = await asyncio.start_server(handle, "127.0.0.1", port)
        servers.append(server)
        return server.sockets[0].getsockname()[1]

    yield start

    release.set()
    for server in servers:
        server.close()
        await server.wait_closed()


@pytest_asyncio.fixture
async def closed_port() -> int:
    """A localhost port with nothing listening on it."""
    server = await asyncio.start_server(lambda r, w: None, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    server.close()
    await server.wait_closed()
    return port


@pytest.fixture
def status_factory():
    """Builds StatusMaps from the ONLINE template with field overrides."""
    return make_status
