"""Log line cleaning and classification."""

import re
from datetime import datetime

from ..models import LogLevel, LogLine, LogSeverity

_CSI = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")
_OSC = re.compile(r"\x1b\][^\x07]*\x07")
_ESC = re.compile(r"\x1b")

_MONTHS = {
    name: index
    for index, name in enumerate(
        ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
         "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"],
        start=1,
    )
}

# logread: "Sat Jan 31 12:34:56 2026 daemon.info phantun[812]: ..."
_SYSLOG_TS = re.compile(
    r"(?:\b(?:Mon|Tue|Wed|Thu|Fri|Sat|Sun)\s+)?"
    r"\b(?P<month>Jan|Feb|Mar|Apr|May|Jun|Jul|Aug|Sep|Oct|Nov|Dec)\s+"
    r"(?P<day>\d{1,2})\s+(?P<hour>\d{1,2}):(?P<minute>\d{2}):(?P<second>\d{2})\s+"
    r"(?P<year>\d{4})\b"
)
# udp2raw "[2026-01-10 12:34:56][INFO]" and env_logger "[2026-01-31T12:34:56Z INFO ...]"
_ISO_TS = re.compile(
    r"\b(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})[ T]"
    r"(?P<hour>\d{2}):(?P<minute>\d{2}):(?P<second>\d{2})"
)

_FACILITY_LEVEL = re.compile(
    r"\b(?:kern|user|mail|daemon|auth|syslog|lpr|news|uucp|cron|authpriv|ftp|"
    r"local[0-7])\.(?P<level>[a-z]+)\b"
)
_BRACKET_LEVEL = re.compile(
    r"\[(?P<level>TRACE|DEBUG|INFO|NOTICE|WARN|WARNING|ERROR|ERR|FATAL)\]",
    re.IGNORECASE,
)
_ENV_LOGGER_LEVEL = re.compile(
    r"\[[0-9T:.\-+Z]+\s+(?P<level>TRACE|DEBUG|INFO|WARN|ERROR)\b"
)

ERROR_KEYWORDS = (
    "error", ".err", "fail", "fatal", "panic", "crit", "refused", "denied",
)
WARN_KEYWORDS = ("warn", "timeout", "timed out", "retry")


def strip_control_codes(text: str | None) -> str:
    """Remove terminal control sequences.

    CSI sequences go first, then BEL-terminated OSC sequences, then any
    stray ESC bytes left behind.
    """
    if not text:
        return ""
    text = _CSI.sub("", text)
    text = _OSC.sub("", text)
    return _ESC.sub("", text)


def _build_datetime(parts: dict[str, str], month: int) -> datetime | None:
    try:
        return datetime(
            int(parts["year"]),
            month,
            int(parts["day"]),
            int(parts["hour"]),
            int(parts["minute"]),
            int(parts["second"]),
        )
    except ValueError:
        return None


def parse_timestamp(text: str | None) -> datetime | None:
    """Find the first recognizable timestamp in a log line.

    Returns:
        Naive datetime, or None when the line carries no timestamp
    """
    if not text:
        return None

    match = _SYSLOG_TS.search(text)
    if match:
        parts = match.groupdict()
        return _build_datetime(parts, _MONTHS[parts["month"]])

    match = _ISO_TS.search(text)
    if match:
        parts = match.groupdict()
        return _build_datetime(parts, int(parts["month"]))

    return None


def detect_level(text: str | None) -> LogLevel | None:
    """Find an explicit level token such as ``daemon.err`` or ``[WARN]``."""
    if not text:
        return None
    for pattern in (_FACILITY_LEVEL, _BRACKET_LEVEL, _ENV_LOGGER_LEVEL):
        match = pattern.search(text)
        if match:
            level = LogLevel.parse(match.group("level"))
            if level is not None:
                return level
    return None


def classify_severity(text: str | None) -> LogSeverity:
    """Classify a line as error, warn or info by keyword."""
    lowered = (text or "").lower()
    if any(keyword in lowered for keyword in ERROR_KEYWORDS):
        return LogSeverity.ERROR
    if any(keyword in lowered for keyword in WARN_KEYWORDS):
        return LogSeverity.WARN
    return LogSeverity.INFO


def parse_log_line(raw: str) -> LogLine:
    """Clean a raw log line and attach its parsed facts."""
    text = strip_control_codes(raw).strip()
    return LogLine(
        raw=raw,
        text=text,
        timestamp=parse_timestamp(text),
        severity=classify_severity(text),
        level=detect_level(text),
    )
