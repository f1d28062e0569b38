"""Fan-out of newly emitted event lines to local and Telegram sinks."""

import asyncio
import logging
from collections.abc import Callable, Mapping

from ..engine.events import enrich_event
from .local import LocalNotifier, LogNotifier
from .telegram import TelegramClient, build_telegram_text

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Delivers events without ever blocking or failing the caller.

    Telegram sends run as background tasks. References are held until each
    task finishes and any exception is logged.
    """

    def __init__(
        self,
        local: LocalNotifier | None = None,
        telegram: TelegramClient | None = None,
        telegram_enabled: bool = False,
        status_provider: Callable[[], Mapping[str, str]] | None = None,
        ups_name_provider: Callable[[], str] | None = None,
    ):
        self.local = local or LogNotifier()
        self.telegram = telegram
        self.telegram_enabled = telegram_enabled
        self.status_provider = status_provider or (lambda: {})
        self.ups_name_provider = ups_name_provider or (lambda: "UPS")
        self._tasks: set[asyncio.Task] = set()

    def dispatch(self, line: str) -> None:
        """Notify about one event line (used as the EventLog emit hook)."""
        text = enrich_event(line, self.status_provider())
        ups_name = self.ups_name_provider()

        try:
            self.local.notify(ups_name, text)
        except Exception as e:
            logger.warning(f"Local notification failed: {e}")

        if self.telegram_enabled:
            self.send_telegram(build_telegram_text(ups_name, text))

    def send_telegram(self, text: str) -> asyncio.Task | None:
        """Schedule a Telegram message; returns the task, or None if not sent."""
        if self.telegram is None or not self.telegram.configured:
            logger.debug("Telegram disabled or not configured, skipping send")
            return None

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop, Telegram message dropped")
            return None

        task = loop.create_task(self.telegram.send_message(text))
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    async def drain(self) -> None:
        """Wait for in-flight sends to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Telegram send task failed: {exc}")
        elif task.result() is False:
            logger.debug("Telegram message was not delivered")
