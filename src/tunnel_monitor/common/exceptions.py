"""Custom exceptions for tunnel monitor."""


class TunnelMonitorError(Exception):
    """Base exception for all tunnel monitor errors."""
    pass


class QueryError(TunnelMonitorError):
    """Raised when a read-only external query fails."""

    def __init__(self, message: str, query: str | None = None):
        super().__init__(message)
        self.query = query


class CommandTimeoutError(QueryError):
    """Raised when an external command exceeds its timeout."""
    pass


class SupervisorError(QueryError):
    """Raised when the service supervisor is unreachable or answers garbage."""
    pass


class ConfigurationError(TunnelMonitorError):
    """Raised when configuration is invalid."""
    pass


class SchedulerError(TunnelMonitorError):
    """Raised when a poll scheduler is used incorrectly."""
    pass
