"""Tests for the Telegram client and message builders."""

from datetime import datetime

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from apctray.engine import CapacityEstimate
from apctray.notifications import (
    TelegramClient,
    build_daily_log,
    build_status_summary,
    build_telegram_text,
    load_watts,
)


@pytest_asyncio.fixture
async def telegram_api():
    """In-process stand-in for the Bot API; token "bad" is rejected."""
    received = []

    async def send_message(request):
        received.append((request.match_info["token"], await request.json()))
        if request.match_info["token"] == "bad":
            return web.json_response({"ok": False, "description": "Unauthorized"}, status=401)
        return web.json_response({"ok": True})

    app = web.Application()
    app.router.add_post("/bot{token}/sendMessage", send_message)
    server = TestServer(app)
    await server.start_server()
    yield str(server.make_url("/")), received
    await server.close()


class TestTelegramClient:
    """sendMessage delivery."""

    @pytest.mark.asyncio
    async def test_send_message(self, telegram_api):
        api_base, received = telegram_api
        client = TelegramClient("123:abc", 42, api_base=api_base)

        assert await client.send_message("office\n🔋 Entered battery") is True
        assert received == [("123:abc", {"chat_id": "42", "text": "office\n🔋 Entered battery"})]

    @pytest.mark.asyncio
    async def test_http_error_returns_false(self, telegram_api):
        api_base, _ = telegram_api
        client = TelegramClient("bad", "42", api_base=api_base)
        assert await client.send_message("hello") is False

    @pytest.mark.asyncio
    async def test_unreachable_api_returns_false(self, closed_port):
        client = TelegramClient("123:abc", "42", timeout=2, api_base=f"http://127.0.0.1:{closed_port}")
        assert await client.send_message("hello") is False

    @pytest.mark.asyncio
    async def test_unconfigured_client_does_not_send(self, telegram_api):
        api_base, received = telegram_api
        client = TelegramClient("", None, api_base=api_base)
        assert client.configured is False
        assert await client.send_message("hello") is False
        assert received == []

    def test_from_config(self):
        client = TelegramClient.from_config({"bot_token": " 1:x ", "chat_id": -100123, "timeout": 5})
        assert client.bot_token == "1:x"
        assert client.chat_id == "-100123"
        assert client.timeout.total == 5


class TestMessageBuilders:
    """Message layouts."""

    def test_event_text_layout(self):
        assert build_telegram_text("office", "🔋 Entered battery\nBattery: 100") == (
            "office\n🔋 Entered battery\nBattery: 100"
        )

    def test_daily_log(self):
        text = build_daily_log(
            "office",
            datetime(2024, 5, 2, 8, 1, 0),
            3,
            CapacityEstimate(capacity_ah=6.54, samples=2),
            ["2024-05-02 03:00:00 Entered battery"],
        )
        lines = text.split("\n")
        assert lines[1] == "Name: office"
        assert lines[2] == "Date: 2024-05-02 08:01:00"
        assert "Cycles: 3" in lines
        assert "Estimated capacity: 6.5 Ah (2 samples)" in lines
        assert lines[-1] == "- 2024-05-02 03:00:00 Entered battery"

    def test_daily_log_without_events(self):
        text = build_daily_log("office", datetime(2024, 5, 2, 8), 0, CapacityEstimate(), [])
        assert "Estimated capacity: --" in text
        assert text.endswith("(no events recorded today)")

    def test_status_summary(self, status_factory):
        text = build_status_summary(
            status_factory(),
            "fallback-name",
            5,
            CapacityEstimate(capacity_ah=7.0, samples=1),
            100,
            [str(i) for i in range(8)],
        )
        lines = text.split("\n")
        assert "Name: office" in lines
        assert "Status: ONLINE" in lines
        assert "Load: 50.0 Percent (300 W)" in lines
        assert "Battery health: 100%" in lines
        assert lines[-6:] == ["Recent events:", "- 3", "- 4", "- 5", "- 6", "- 7"]

    def test_status_summary_with_empty_status(self):
        text = build_status_summary({}, "office", 0, CapacityEstimate(), None, [])
        assert "Name: office" in text
        assert "Status: ?" in text
        assert "Battery health: --" in text
        assert "Recent events" not in text

    def test_load_watts(self, status_factory):
        assert load_watts(status_factory()) == 300
        assert load_watts({"LOADPCT": "50"}) is None
