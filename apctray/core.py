"""UPS monitor: poll loop, derived state and user actions."""

import asyncio
import logging
from datetime import date, datetime
from typing import Any

from .config import data_dir
from .engine import (
    AlertEvaluator,
    AlertState,
    CapacityEstimator,
    CycleTracker,
    EventLog,
    Thresholds,
    UpsState,
    battery_health_percent,
    classify,
)
from .metrics_store import MetricsStore
from .nis import NisClient, StatusMap, get_field
from .notifications import (
    LocalNotifier,
    NotificationDispatcher,
    TelegramClient,
    build_daily_log,
    build_status_summary,
)
from .state_store import StateRepository
from .util.formatting import format_duration

logger = logging.getLogger(__name__)

STATE_FILE = "state.yaml"
DAILY_LOG_WINDOW_MINUTES = 5
DAILY_LOG_CHECK_INTERVAL = 60
COMM_LOST_MESSAGE = "Communication lost"


class UpsMonitor:
    """Polls the UPS daemon and maintains cycles, capacity, alerts and events."""

    def __init__(
        self,
        config: dict[str, Any],
        client: NisClient | None = None,
        local_notifier: LocalNotifier | None = None,
        telegram: TelegramClient | None = None,
    ):
        """Initialize the monitor.

        Args:
            config: Full configuration (see config.load_config)
            client: NIS client, built from the ``nis`` section when omitted
            local_notifier: Local notification sink, logs when omitted
            telegram: Telegram client, built from the ``telegram`` section when omitted
        """
        self.config = config
        self.client = client or NisClient(config["nis"])
        self.polling_interval = float(config["app"]["polling_interval"])
        self.data_dir = data_dir(config)

        self.state_repo = StateRepository(self.data_dir / STATE_FILE)
        self.state = self.state_repo.load()

        self.estimator = CapacityEstimator(self.state.capacity, config["battery"], persist=self.save_state)
        self.tracker = CycleTracker(self.state.cycle, self.estimator, persist=self.save_state)

        alerts_config = config.get("alerts", {})
        self.alerts_enabled = alerts_config.get("enabled", True)
        self.thresholds = Thresholds.from_config(alerts_config)
        self.alert_evaluator = AlertEvaluator()
        self.alert_state = AlertState()

        telegram_config = config.get("telegram", {})
        self.telegram_enabled = bool(telegram_config.get("enabled", False))
        self.daily_log_hour = int(telegram_config.get("daily_log_hour", 8))
        self.dispatcher = NotificationDispatcher(
            local=local_notifier,
            telegram=telegram or TelegramClient.from_config(telegram_config),
            telegram_enabled=self.telegram_enabled,
            status_provider=lambda: self.last_status,
            ups_name_provider=lambda: self.ups_name,
        )
        self.event_log = EventLog(on_emit=self.dispatcher.dispatch)

        metrics_config = config.get("metrics", {})
        self.metrics: MetricsStore | None = None
        self.metrics_save_interval = float(metrics_config.get("save_interval", 300))
        if metrics_config.get("enabled", True):
            self.metrics = MetricsStore(
                self.data_dir / metrics_config.get("file", "metrics.json"),
                metrics_config.get("max_samples", 2880),
            )

        # A persisted cycle start means we stopped while on battery
        self.current_state = UpsState.ONBATT if self.state.cycle.on_battery else UpsState.COMMLOST
        self.last_status = StatusMap()
        self.last_status_text: str | None = None
        self.ups_name = "UPS"
        self.last_daily_log_date: date | None = None
        self._comm_lost_reported = False

        self._running = False
        self._tasks: list[asyncio.Task] = []

    async def start(self) -> None:
        """Start the poll loop and the background timers."""
        logger.info(
            f"Starting UPS monitor for {self.client.host}:{self.client.port} "
            f"(polling every {self.polling_interval:g}s)"
        )
        self._running = True

        if self.metrics is not None:
            self.metrics.load()
            self._tasks.append(asyncio.create_task(self._metrics_save_loop()))
        self._tasks.append(asyncio.create_task(self._monitor_loop()))
        if self.telegram_enabled:
            self._tasks.append(asyncio.create_task(self._daily_log_loop()))

    async def stop(self) -> None:
        """Stop all loops and flush state, metrics and pending notifications."""
        logger.info("Stopping UPS monitor")
        self._running = False

        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

        if self.metrics is not None:
            await self.metrics.save_async()
        self.save_state()
        await self.dispatcher.drain()

    async def poll_once(self, now: datetime | None = None) -> UpsState:
        """Run one complete poll and update all derived state.

        Never raises on daemon failure: an unreachable daemon classifies as
        COMMLOST with an empty status.
        """
        now = now or datetime.now()
        status = await self.client.poll_status()
        native_events = await self.client.poll_events() if status else []

        state = classify(status)
        previous = self.current_state
        self.last_status = status
        if status:
            self._comm_lost_reported = False
        ups_name = get_field(status, "UPSNAME")
        if ups_name:
            self.ups_name = ups_name

        messages: list[str] = []
        if native_events:
            self.event_log.mirror(native_events)
        else:
            messages.extend(self._status_change_messages(status))

        cycle_messages = self.tracker.observe(previous, state, status, now)
        if not native_events:
            messages.extend(cycle_messages)

        if self.alerts_enabled:
            alert_messages, self.alert_state = self.alert_evaluator.evaluate(
                status, self.thresholds, self.alert_state
            )
            messages.extend(alert_messages)

        for message in messages:
            self.event_log.add(message, now)

        if self.metrics is not None and status:
            self.metrics.record(status, now)

        if state != previous:
            logger.info(f"UPS state: {previous.value} -> {state.value}")
        self.current_state = state
        return state

    def _status_change_messages(self, status: StatusMap) -> list[str]:
        if not status:
            if self._comm_lost_reported:
                return []
            self._comm_lost_reported = True
            logger.warning(f"❌ No status from {self.client.host}:{self.client.port}")
            return [COMM_LOST_MESSAGE]

        text = get_field(status, "STATUS")
        if text is None or text == self.last_status_text:
            return []

        first = self.last_status_text is None
        self.last_status_text = text
        if first:
            return [f"Initialized - Status: {text}"]
        return [f"Status changed - Status: {text}"]

    def save_state(self) -> None:
        self.state_repo.save(self.state)

    def clear_events(self) -> None:
        """Clear the event log and forget status text and alert flags."""
        self.event_log.clear()
        self.last_status_text = None
        self.alert_state = AlertState()
        self._comm_lost_reported = False
        logger.info("Event log cleared")

    def set_battery_replaced(self, when: datetime) -> bool:
        """Record a battery replacement; a newer date resets cycles and capacity."""
        reset = self.state.set_battery_replaced(when.timestamp())
        if reset:
            self.save_state()
        return reset

    @property
    def battery_health(self) -> int | None:
        """Estimated capacity as a percentage of the nominal pack capacity."""
        return battery_health_percent(
            self.state.capacity.capacity_ah, float(self.config["battery"]["nominal_ah"])
        )

    def on_battery_duration(self, now: datetime | None = None) -> str:
        duration = self.tracker.current_duration(now or datetime.now())
        if duration is None:
            duration = self.state.cycle.last_on_battery_seconds
        return format_duration(duration)

    async def send_status_summary(self) -> bool:
        """Send a snapshot of the UPS and battery state to Telegram."""
        status = await self.client.poll_status()
        if not status:
            status = self.last_status
        text = build_status_summary(
            status,
            self.ups_name,
            self.state.cycle.cycle_count,
            self.state.capacity,
            self.battery_health,
            self.event_log.recent(5),
        )
        task = self.dispatcher.send_telegram(text)
        if task is None:
            return False
        return await task

    def check_daily_log(self, now: datetime) -> bool:
        """Send the daily log once per day inside the configured hour's window."""
        if not self.telegram_enabled:
            return False
        if now.hour != self.daily_log_hour or now.minute >= DAILY_LOG_WINDOW_MINUTES:
            return False
        if self.last_daily_log_date == now.date():
            return False

        self.last_daily_log_date = now.date()
        text = build_daily_log(
            self.ups_name,
            now,
            self.state.cycle.cycle_count,
            self.state.capacity,
            self.event_log.entries_on(now.date()),
        )
        self.dispatcher.send_telegram(text)
        logger.info("📨 Daily log sent to Telegram")
        return True

    async def _monitor_loop(self) -> None:
        """Poll loop: each poll completes before the next sleep starts."""
        logger.info(f"Starting UPS monitoring loop (polling every {self.polling_interval:g}s)")
        while self._running:
            try:
                await self.poll_once()
                await asyncio.sleep(self.polling_interval)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in UPS monitoring loop: {e}")
                await asyncio.sleep(self.polling_interval)

    async def _metrics_save_loop(self) -> None:
        while self._running:
            try:
                await asyncio.sleep(self.metrics_save_interval)
                await self.metrics.save_async()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error saving metrics: {e}")

    async def _daily_log_loop(self) -> None:
        while self._running:
            try:
                self.check_daily_log(datetime.now())
                await asyncio.sleep(DAILY_LOG_CHECK_INTERVAL)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in daily log loop: {e}")
                await asyncio.sleep(DAILY_LOG_CHECK_INTERVAL)
