"""Bounded, filterable log window."""

from datetime import datetime, timedelta

from .common.logging import get_logger
from .models import LogLevel, LogLine, LogSeverity, LogWindow
from .parsing import parse_log_line

logger = get_logger(__name__)

MARKER_TEMPLATE = "=== Logs cleared ({time}) ==="


def make_marker(cutoff: datetime) -> LogLine:
    """Build the synthetic line announcing a clear action."""
    text = MARKER_TEMPLATE.format(time=cutoff.strftime("%Y-%m-%d %H:%M:%S"))
    return LogLine(
        raw=text,
        text=text,
        timestamp=cutoff,
        severity=LogSeverity.INFO,
        is_marker=True,
    )


def _passes_level(line: LogLine, min_level: LogLevel) -> bool:
    # Lines without a level token are always shown
    return line.level is None or line.level >= min_level


def build_log_window(
    raw_blob: str | None,
    cutoff: datetime | None = None,
    max_size: int = 150,
    min_level: LogLevel = LogLevel.TRACE,
) -> LogWindow:
    """Turn a raw log dump into a display-ready window.

    Lines are parsed and level-filtered. With a cutoff, only lines stamped
    strictly after it survive and a marker line is put in front of them.
    The last ``max_size`` lines are kept in chronological order and the
    result is reversed so the newest line comes first.

    Args:
        raw_blob: Log text, oldest line first
        cutoff: Hide lines at or before this time
        max_size: Number of lines to retain
        min_level: Lowest explicit level to show

    Returns:
        Immutable window, most recent first
    """
    lines = [
        parse_log_line(raw)
        for raw in (raw_blob or "").splitlines()
        if raw.strip()
    ]
    lines = [line for line in lines if line.text and _passes_level(line, min_level)]

    if cutoff is not None:
        lines = [
            line
            for line in lines
            if line.timestamp is not None and line.timestamp > cutoff
        ]
        lines.insert(0, make_marker(cutoff))

    retained = lines[-max_size:] if max_size > 0 else []
    retained.reverse()

    return LogWindow(
        lines=tuple(retained),
        cutoff=cutoff,
        max_size=max_size,
        min_level=min_level,
    )


class LogWindowManager:
    """Owns the cutoff and the last published window for one log stream."""

    def __init__(
        self,
        max_size: int = 150,
        min_level: LogLevel = LogLevel.TRACE,
        clear_grace_seconds: float = 0.0,
    ):
        if max_size < 0:
            raise ValueError("max_size cannot be negative")
        self.max_size = max_size
        self.min_level = min_level
        self.clear_grace = timedelta(seconds=clear_grace_seconds)
        self._cutoff: datetime | None = None
        self._last_blob: str | None = None
        self._window = LogWindow(max_size=max_size, min_level=min_level)

    @property
    def cutoff(self) -> datetime | None:
        return self._cutoff

    @property
    def window(self) -> LogWindow:
        return self._window

    def update(self, raw_blob: str | None) -> LogWindow:
        """Rebuild the window from a fresh log dump."""
        self._last_blob = raw_blob
        return self._rebuild()

    def clear(self, cutoff: datetime | None = None) -> LogWindow:
        """Hide everything logged up to ``cutoff`` (default: now minus grace).

        Aware cutoffs are converted to naive local time, the form log
        timestamps are parsed into.
        """
        if cutoff is None:
            cutoff = datetime.now() - self.clear_grace
        elif cutoff.tzinfo is not None:
            cutoff = cutoff.astimezone().replace(tzinfo=None)
        self._cutoff = cutoff
        logger.info("Log window cleared", cutoff=self._cutoff.isoformat())
        return self._rebuild()

    def reset(self) -> LogWindow:
        """Drop the cutoff so the full history shows again."""
        self._cutoff = None
        logger.info("Log window cutoff reset")
        return self._rebuild()

    def set_min_level(self, level: LogLevel) -> LogWindow:
        self.min_level = level
        return self._rebuild()

    def _rebuild(self) -> LogWindow:
        window = build_log_window(
            self._last_blob,
            cutoff=self._cutoff,
            max_size=self.max_size,
            min_level=self.min_level,
        )
        self._window = window
        return window
