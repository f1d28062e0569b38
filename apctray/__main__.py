"""Main entry point for apctray (headless monitor)."""

import asyncio
import logging
import re
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

from apctray.config import load_config
from apctray.core import UpsMonitor

DATE_FORMAT = "%m-%d %H:%M:%S"
_SIZE_UNITS = {"": 1, "B": 1, "KB": 1024, "MB": 1024**2, "GB": 1024**3}


class ConditionalFormatter(logging.Formatter):
    def format(self, record):
        if record.levelno >= logging.DEBUG and record.levelno < logging.INFO:
            # Debug level: show module name
            self._style._fmt = "%(asctime)s %(name)s %(message)s"
        else:
            # Info and above: hide module name
            self._style._fmt = "%(asctime)s %(message)s"
        return super().format(record)


logger = logging.getLogger(__name__)


def parse_size(value: Any, default: int = 10 * 1024**2) -> int:
    """Parse sizes like ``10MB`` or ``512KB`` into bytes."""
    if isinstance(value, int):
        return value
    match = re.fullmatch(r"\s*(\d+)\s*([KMG]?B?)\s*", str(value).upper())
    if not match:
        return default
    return int(match.group(1)) * _SIZE_UNITS[match.group(2)]


def setup_logging(config: dict[str, Any]) -> None:
    """Console logging plus an optional size-rotated log file."""
    level = getattr(logging, str(config.get("level", "INFO")).upper(), logging.INFO)
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    log_file = config.get("file")
    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                path,
                maxBytes=parse_size(config.get("max_size", "10MB")),
                backupCount=int(config.get("backup_count", 5)),
            )
        )

    logging.basicConfig(level=level, datefmt=DATE_FORMAT, handlers=handlers, force=True)

    # Apply custom formatter to root logger
    formatter = ConditionalFormatter(datefmt=DATE_FORMAT)
    for handler in logging.getLogger().handlers:
        handler.setFormatter(formatter)


async def main() -> None:
    """Main application loop."""
    config = load_config()
    setup_logging(config["logging"])
    logger.info("Starting apctray UPS monitor")

    monitor = UpsMonitor(config)
    try:
        await monitor.start()
        await asyncio.Event().wait()
    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Shutting down apctray")
    finally:
        await monitor.stop()


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
