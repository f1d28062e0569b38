"""Telegram Bot API client and message builders."""

import asyncio
import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

import aiohttp

from ..engine.capacity import CapacityEstimate
from ..nis.parser import get_field, get_number
from ..util.formatting import format_timestamp

logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"
RECENT_EVENTS_IN_SUMMARY = 5


class TelegramClient:
    """Sends text messages through the Telegram Bot API."""

    def __init__(
        self,
        bot_token: str | None,
        chat_id: str | int | None,
        timeout: float = 10.0,
        api_base: str = TELEGRAM_API_BASE,
    ):
        """Initialize Telegram client.

        Args:
            bot_token: Bot token issued by BotFather
            chat_id: Destination chat
            timeout: Total request timeout in seconds
            api_base: API root URL (overridable for testing)
        """
        self.bot_token = (bot_token or "").strip()
        self.chat_id = str(chat_id).strip() if chat_id is not None else ""
        self.api_base = api_base.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> "TelegramClient":
        """Build a client from the ``telegram`` configuration section."""
        return cls(
            bot_token=config.get("bot_token"),
            chat_id=config.get("chat_id"),
            timeout=float(config.get("timeout", 10.0)),
        )

    @property
    def configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    async def send_message(self, text: str) -> bool:
        """POST one message; failures are logged and reported as False."""
        if not self.configured:
            logger.debug("Telegram not configured, message dropped")
            return False

        url = f"{self.api_base}/bot{self.bot_token}/sendMessage"
        payload = {"chat_id": self.chat_id, "text": text}

        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(url, json=payload) as response:
                    if response.status == 200:
                        logger.debug("Telegram message sent")
                        return True
                    body = await response.text()
                    logger.warning(f"❌ Telegram API error: HTTP {response.status} {body[:200]}")
                    return False
        except aiohttp.ClientError as e:
            logger.warning(f"❌ Telegram request failed: {e}")
            return False
        except asyncio.TimeoutError:
            logger.warning("⏱️ Telegram request timed out")
            return False


def build_telegram_text(ups_name: str, event_text: str) -> str:
    """UPS name on the first line, the (enriched) event below it."""
    return f"{ups_name}\n{event_text}"


def _capacity_line(capacity: CapacityEstimate) -> str:
    if capacity.capacity_ah <= 0:
        return "--"
    return f"{capacity.capacity_ah:.1f} Ah ({capacity.samples} samples)"


def build_daily_log(
    ups_name: str,
    now: datetime,
    cycle_count: int,
    capacity: CapacityEstimate,
    today_events: list[str],
) -> str:
    lines = [
        "[UPS daily log]",
        f"Name: {ups_name}",
        f"Date: {format_timestamp(now)}",
        f"Cycles: {cycle_count}",
        f"Estimated capacity: {_capacity_line(capacity)}",
        "",
        "Today's events:",
    ]
    if today_events:
        lines.extend(f"- {event}" for event in today_events)
    else:
        lines.append("(no events recorded today)")
    return "\n".join(lines)


def load_watts(status: Mapping[str, str]) -> float | None:
    """Output power in watts from NOMPOWER and LOADPCT."""
    nominal = get_number(status, "NOMPOWER")
    load = get_number(status, "LOADPCT")
    if nominal is None or load is None:
        return None
    return nominal * load / 100.0


def build_status_summary(
    status: Mapping[str, str],
    ups_name: str,
    cycle_count: int,
    capacity: CapacityEstimate,
    health_percent: int | None,
    recent_events: list[str],
) -> str:
    """On-demand snapshot of the UPS and the derived battery state."""

    def field(key: str) -> str:
        return get_field(status, key) or "--"

    watts = load_watts(status)
    load = field("LOADPCT")
    if watts is not None:
        load = f"{load} ({watts:.0f} W)"

    lines = [
        "[UPS summary]",
        f"Name: {get_field(status, 'UPSNAME') or ups_name}",
        f"Status: {get_field(status, 'STATUS') or '?'}",
        f"Battery: {field('BCHARGE')}",
        f"Load: {load}",
        f"Input voltage: {field('LINEV')}",
        f"Output voltage: {field('OUTPUTV')}",
        f"Frequency: {field('LINEFREQ')}",
        f"Time left: {field('TIMELEFT')}",
        f"Cycles: {cycle_count}",
        f"Estimated capacity: {_capacity_line(capacity)}",
        f"Battery health: {f'{health_percent}%' if health_percent is not None else '--'}",
    ]
    recent = recent_events[-RECENT_EVENTS_IN_SUMMARY:]
    if recent:
        lines.append("Recent events:")
        lines.extend(f"- {event}" for event in recent)
    return "\n".join(lines)
