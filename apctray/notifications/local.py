"""Local (desktop) notification sink."""

import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)


class LocalNotifier(ABC):
    """Shows a short notification on the local machine."""

    @abstractmethod
    def notify(self, title: str, body: str) -> None:
        """Display one notification. Must not block the caller."""


class LogNotifier(LocalNotifier):
    """Headless notifier that writes notifications to the log."""

    def notify(self, title: str, body: str) -> None:
        logger.info(f"🔔 {title}: {body}")
