"""Tunnel Monitor - status reconciliation and diagnostics for UDP tunnel managers."""

from .collector import (
    CommandResult,
    CommandRunner,
    LiveFacts,
    LiveStateCollector,
    QueryFailure,
    UbusSupervisor,
)
from .common.exceptions import (
    CommandTimeoutError,
    ConfigurationError,
    QueryError,
    SchedulerError,
    SupervisorError,
    TunnelMonitorError,
)
from .common.logging import get_logger, setup_logging
from .config import PHANTUN, PROFILES, UDP2RAW, MonitorConfig, ToolProfile, get_profile
from .logwindow import LogWindowManager, build_log_window
from .models import (
    AddressFamily,
    CheckState,
    ConfigSnapshot,
    GlobalStatus,
    InterfaceDiagnostic,
    InterfaceFact,
    InterfaceState,
    LiveInstance,
    LogLevel,
    LogLine,
    LogSeverity,
    LogWindow,
    NatDiagnostic,
    NatRuleFact,
    NatRuleKind,
    ServiceState,
    StatusSnapshot,
    TunnelDefinition,
    TunnelRole,
    TunnelState,
    TunnelStatus,
)
from .monitor import TunnelMonitor
from .reconciler import build_snapshot, reconcile, summarize_service
from .scheduler import PollScheduler, SchedulerState
from .sources import ConfigSource, StaticConfigSource, UciConfigSource

# Setup logging on package initialization
setup_logging(level="INFO")

logger = get_logger(__name__)

__version__ = "0.1.0"


__all__ = [
    # Facade
    "TunnelMonitor",
    "MonitorConfig",
    "ToolProfile",
    "PHANTUN",
    "UDP2RAW",
    "PROFILES",
    "get_profile",
    # Components
    "LiveStateCollector",
    "CommandRunner",
    "CommandResult",
    "UbusSupervisor",
    "LiveFacts",
    "QueryFailure",
    "LogWindowManager",
    "build_log_window",
    "PollScheduler",
    "SchedulerState",
    "reconcile",
    "summarize_service",
    "build_snapshot",
    "ConfigSource",
    "StaticConfigSource",
    "UciConfigSource",
    # Models
    "AddressFamily",
    "CheckState",
    "ConfigSnapshot",
    "GlobalStatus",
    "InterfaceDiagnostic",
    "InterfaceFact",
    "InterfaceState",
    "LiveInstance",
    "LogLevel",
    "LogLine",
    "LogSeverity",
    "LogWindow",
    "NatDiagnostic",
    "NatRuleFact",
    "NatRuleKind",
    "ServiceState",
    "StatusSnapshot",
    "TunnelDefinition",
    "TunnelRole",
    "TunnelState",
    "TunnelStatus",
    # Exceptions
    "TunnelMonitorError",
    "QueryError",
    "CommandTimeoutError",
    "SupervisorError",
    "ConfigurationError",
    "SchedulerError",
    # Logging
    "get_logger",
    "setup_logging",
]
