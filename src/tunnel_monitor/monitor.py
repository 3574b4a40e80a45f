"""High-level tunnel monitor facade used by presentation layers."""

from collections.abc import Callable
from datetime import datetime
from types import TracebackType

from .collector import LiveStateCollector, QueryFailure
from .common.exceptions import QueryError
from .common.logging import get_logger
from .config import MonitorConfig
from .logwindow import LogWindowManager
from .models import (
    ConfigSnapshot,
    GlobalStatus,
    LogLevel,
    LogWindow,
    ServiceState,
    StatusSnapshot,
)
from .reconciler import build_snapshot, failed_snapshot
from .scheduler import PollScheduler
from .sources import ConfigSource, UciConfigSource

logger = get_logger(__name__)

StatusCallback = Callable[[StatusSnapshot], None]
LogCallback = Callable[[LogWindow], None]


class TunnelMonitor:
    """Polls live state and keeps the latest status snapshot and log window.

    Status and logs run on independent schedulers. Published values are
    immutable and replaced by reference, so readers always see a whole
    snapshot.
    """

    def __init__(
        self,
        config: MonitorConfig | None = None,
        source: ConfigSource | None = None,
        collector: LiveStateCollector | None = None,
    ):
        self.config = config or MonitorConfig()
        self.profile = self.config.profile
        self.collector = collector or LiveStateCollector(self.config)
        self.source = source or UciConfigSource(
            self.profile, self.collector.runner, self.config.commands.uci
        )
        self.logs = LogWindowManager(
            max_size=self.config.log_max_lines,
            min_level=self.config.log_min_level,
            clear_grace_seconds=self.config.clear_grace_seconds,
        )

        self._snapshot = StatusSnapshot(
            global_status=GlobalStatus(state=ServiceState.UNKNOWN, enabled=False)
        )
        self._last_config: ConfigSnapshot | None = None
        self._status_subscribers: list[StatusCallback] = []
        self._log_subscribers: list[LogCallback] = []

        self.status_scheduler: PollScheduler[StatusSnapshot] = PollScheduler(
            self._status_cycle,
            self._publish_status,
            on_failure=self._status_failure,
            name=f"{self.profile.name}-status",
        )
        self.log_scheduler: PollScheduler[str | None] = PollScheduler(
            self._log_cycle,
            self._commit_logs,
            name=f"{self.profile.name}-logs",
        )
        logger.info(
            "TunnelMonitor initialized",
            profile=self.profile.name,
            service=self.profile.service_name,
        )

    # -- presentation API -------------------------------------------------

    def get_status_snapshot(self) -> StatusSnapshot:
        return self._snapshot

    def get_log_window(self) -> LogWindow:
        return self.logs.window

    def clear_log_window(self, cutoff: datetime | None = None) -> LogWindow:
        """Only show lines logged after ``cutoff`` (default: now)."""
        window = self.logs.clear(cutoff)
        self._publish_logs(window)
        return window

    def reset_log_window(self) -> LogWindow:
        window = self.logs.reset()
        self._publish_logs(window)
        return window

    def set_log_level(self, level: LogLevel | str) -> LogWindow:
        """Change the minimum level shown in the log window."""
        parsed = LogLevel.parse(level)
        if parsed is None:
            raise ValueError(f"Unknown log level '{level}'")
        window = self.logs.set_min_level(parsed)
        self._publish_logs(window)
        return window

    def subscribe(self, callback: StatusCallback) -> Callable[[], None]:
        """Register a status listener; returns an unsubscribe function."""
        self._status_subscribers.append(callback)
        return lambda: self._discard(self._status_subscribers, callback)

    def subscribe_logs(self, callback: LogCallback) -> Callable[[], None]:
        self._log_subscribers.append(callback)
        return lambda: self._discard(self._log_subscribers, callback)

    def start_polling(
        self, interval: float | None = None, log_interval: float | None = None
    ) -> bool:
        """Start both poll streams; the first cycles run immediately.

        Returns:
            True if at least one stream was started
        """
        started_status = self.status_scheduler.start(
            interval or self.config.status_interval, immediate=True
        )
        started_logs = self.log_scheduler.start(
            log_interval or self.config.log_interval, immediate=True
        )
        return started_status or started_logs

    def stop_polling(self) -> None:
        self.status_scheduler.stop()
        self.log_scheduler.stop()

    def pause_logs(self) -> None:
        self.log_scheduler.pause()

    def resume_logs(self) -> bool:
        if self.log_scheduler.interval is None:
            return self.log_scheduler.start(self.config.log_interval, immediate=True)
        return self.log_scheduler.resume()

    @property
    def logs_paused(self) -> bool:
        return not self.log_scheduler.active

    async def refresh(self) -> StatusSnapshot:
        """Run a status cycle right away."""
        await self.status_scheduler.run_once()
        return self._snapshot

    async def refresh_logs(self) -> LogWindow:
        await self.log_scheduler.run_once()
        return self.logs.window

    async def __aenter__(self) -> "TunnelMonitor":
        self.start_polling()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.stop_polling()
        await self.status_scheduler.wait_stopped()
        await self.log_scheduler.wait_stopped()

    # -- cycles -------------------------------------------------------------

    async def _status_cycle(self) -> StatusSnapshot:
        try:
            config = await self.source.load()
        except QueryError as e:
            logger.warning("Configuration query failed", error=str(e))
            return failed_snapshot(f"Configuration unavailable: {e}", self._last_config)
        self._last_config = config

        facts = await self.collector.collect()
        return build_snapshot(config, facts, self.profile)

    def _status_failure(self, error: Exception) -> StatusSnapshot:
        return failed_snapshot(f"Check failed: {error}", self._last_config)

    async def _log_cycle(self) -> str | None:
        blob = await self.collector.read_logs()
        if isinstance(blob, QueryFailure):
            # None keeps the previous window
            return None
        return blob

    # -- publishing ---------------------------------------------------------

    def _publish_status(self, snapshot: StatusSnapshot) -> None:
        self._snapshot = snapshot
        logger.debug(
            "Status published",
            state=snapshot.global_status.state.value,
            tunnels=len(snapshot.tunnels),
            degraded=snapshot.degraded,
        )
        self._notify(self._status_subscribers, snapshot)

    def _commit_logs(self, blob: str | None) -> None:
        """Apply a finished log cycle; only called for results not discarded."""
        window = self.logs.window if blob is None else self.logs.update(blob)
        self._publish_logs(window)

    def _publish_logs(self, window: LogWindow) -> None:
        self._notify(self._log_subscribers, window)

    @staticmethod
    def _notify(subscribers: list, value: object) -> None:
        for callback in list(subscribers):
            try:
                callback(value)
            except Exception as e:
                logger.error("Subscriber raised", error=str(e), exc_info=True)

    @staticmethod
    def _discard(subscribers: list, callback: object) -> None:
        if callback in subscribers:
            subscribers.remove(callback)
