"""Text fact extraction from raw CLI output.

Every function in this package is pure: no I/O, no state, and unmatched
input yields an empty result rather than an exception.
"""

from .interfaces import parse_interfaces
from .logs import (
    classify_severity,
    detect_level,
    parse_log_line,
    parse_timestamp,
    strip_control_codes,
)
from .nat import parse_nat_rules

__all__ = [
    "classify_severity",
    "detect_level",
    "parse_interfaces",
    "parse_log_line",
    "parse_nat_rules",
    "parse_timestamp",
    "strip_control_codes",
]
