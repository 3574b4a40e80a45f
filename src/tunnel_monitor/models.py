"""Data models for tunnel status reconciliation.

Every model here is frozen: a poll cycle builds fresh instances and publishes
them by reference, so readers never observe a half-updated value.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TunnelRole(str, Enum):
    """Which side of the obfuscated link a tunnel runs as."""

    CLIENT = "client"
    SERVER = "server"


class TunnelDefinition(BaseModel):
    """A tunnel as declared in the configuration store."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str = Field(min_length=1, description="Stable section identifier")
    alias: str | None = Field(default=None, description="Display alias")
    role: TunnelRole = Field(default=TunnelRole.CLIENT)
    enabled: bool = Field(default=True)
    local: str = Field(default="?", description="Local endpoint display string")
    remote: str = Field(default="?", description="Remote endpoint display string")
    tags: dict[str, str] = Field(
        default_factory=dict, description="Transport/crypto mode tags"
    )

    @property
    def display_alias(self) -> str:
        return self.alias or self.id

    def instance_key(self, template: str) -> str:
        """Render the supervisor instance key for this tunnel.

        Args:
            template: Format string using ``{role}`` and ``{id}``

        Returns:
            Key under which the supervisor reports the instance
        """
        return template.format(role=self.role.value, id=self.id)


class ConfigSnapshot(BaseModel):
    """Point-in-time read of the configuration store."""

    model_config = ConfigDict(frozen=True)

    global_enabled: bool = True
    tunnels: tuple[TunnelDefinition, ...] = ()


class LiveInstance(BaseModel):
    """An instance reported by the process supervisor."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(min_length=1)
    running: bool = False
    pid: int | None = Field(default=None, ge=1)
    command_line: str | None = None


class AddressFamily(str, Enum):
    """IP protocol family of a NAT table."""

    IPV4 = "ipv4"
    IPV6 = "ipv6"


class NatRuleKind(str, Enum):
    """Kind of firewall rule evidence found in a table dump."""

    MASQUERADE = "MASQUERADE"
    DNAT = "DNAT"
    NAMED_CHAIN = "named-chain"
    MATCH = "match"


class NatRuleFact(BaseModel):
    """One firewall/NAT rule relevant to a tunnel."""

    model_config = ConfigDict(frozen=True)

    family: AddressFamily
    kind: NatRuleKind
    chain: str | None = None
    text: str


class InterfaceState(str, Enum):
    """Administrative state of a network interface."""

    UP = "UP"
    DOWN = "DOWN"


class InterfaceFact(BaseModel):
    """A virtual interface and its assigned addresses."""

    model_config = ConfigDict(frozen=True)

    name: str
    state: InterfaceState
    ipv4: tuple[str, ...] = ()
    ipv6: tuple[str, ...] = ()


class TunnelState(str, Enum):
    """Reconciled status of a tunnel."""

    DISABLED = "disabled"
    SERVICE_DISABLED = "service_disabled"
    STOPPED = "stopped"
    RUNNING = "running"
    UNKNOWN = "unknown"


class TunnelStatus(BaseModel):
    """Reconciler output for one configured tunnel."""

    model_config = ConfigDict(frozen=True)

    id: str
    alias: str
    role: TunnelRole
    state: TunnelState
    pid: int | None = None
    local: str
    remote: str
    tags: dict[str, str] = Field(default_factory=dict)

    @property
    def is_running(self) -> bool:
        return self.state == TunnelState.RUNNING


class ServiceState(str, Enum):
    """Overall state of the wrapped service."""

    RUNNING = "running"
    STOPPED = "stopped"
    DISABLED = "disabled"
    UNKNOWN = "unknown"


class GlobalStatus(BaseModel):
    """Service-wide status."""

    model_config = ConfigDict(frozen=True)

    state: ServiceState
    enabled: bool
    active_instances: int = Field(default=0, ge=0)


class CheckState(str, Enum):
    """Outcome of a single diagnostic probe."""

    OK = "ok"
    MISSING = "missing"
    FAILED = "failed"


class NatDiagnostic(BaseModel):
    """NAT rule check for one address family."""

    model_config = ConfigDict(frozen=True)

    family: AddressFamily
    state: CheckState
    rules: tuple[NatRuleFact, ...] = ()
    error: str | None = None

    @property
    def chains(self) -> list[str]:
        return [rule.chain for rule in self.rules if rule.chain]


class InterfaceDiagnostic(BaseModel):
    """Virtual interface check."""

    model_config = ConfigDict(frozen=True)

    state: CheckState
    interfaces: tuple[InterfaceFact, ...] = ()
    error: str | None = None


class StatusSnapshot(BaseModel):
    """Everything the status view needs for one poll cycle."""

    model_config = ConfigDict(frozen=True)

    global_status: GlobalStatus
    tunnels: tuple[TunnelStatus, ...] = ()
    nat: tuple[NatDiagnostic, ...] = ()
    interfaces: InterfaceDiagnostic | None = None
    collected_at: datetime = Field(default_factory=datetime.now)
    error: str | None = Field(
        default=None, description="Set when the whole cycle faulted"
    )

    @property
    def degraded(self) -> bool:
        """True if any part of the snapshot could not be determined."""
        if self.error is not None:
            return True
        if self.global_status.state == ServiceState.UNKNOWN:
            return True
        if any(check.state == CheckState.FAILED for check in self.nat):
            return True
        return (
            self.interfaces is not None
            and self.interfaces.state == CheckState.FAILED
        )

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


class LogSeverity(str, Enum):
    """Keyword-inferred severity of a log line."""

    ERROR = "error"
    WARN = "warn"
    INFO = "info"


class LogLevel(int, Enum):
    """Ordinal log level table used for threshold filtering."""

    TRACE = 0
    DEBUG = 1
    INFO = 2
    WARN = 3
    ERROR = 4
    FATAL = 5

    @classmethod
    def parse(cls, value: "str | int | LogLevel | None") -> "LogLevel | None":
        """Map a level name or udp2raw verbosity number to a level.

        Args:
            value: Level token such as ``"warning"``, ``"err"`` or ``"4"``

        Returns:
            Matching level, or None when the token is not recognized
        """
        if value is None:
            return None
        if isinstance(value, LogLevel):
            return value
        if isinstance(value, int):
            return _VERBOSITY_LEVELS.get(value)
        token = value.strip().lower()
        if token.isdigit():
            return _VERBOSITY_LEVELS.get(int(token))
        return _LEVEL_NAMES.get(token)


_LEVEL_NAMES: dict[str, LogLevel] = {
    "trace": LogLevel.TRACE,
    "debug": LogLevel.DEBUG,
    "info": LogLevel.INFO,
    "notice": LogLevel.INFO,
    "warn": LogLevel.WARN,
    "warning": LogLevel.WARN,
    "error": LogLevel.ERROR,
    "err": LogLevel.ERROR,
    "crit": LogLevel.FATAL,
    "alert": LogLevel.FATAL,
    "emerg": LogLevel.FATAL,
    "fatal": LogLevel.FATAL,
}

# udp2raw --log-level: 0 never .. 6 trace
_VERBOSITY_LEVELS: dict[int, LogLevel] = {
    0: LogLevel.FATAL,
    1: LogLevel.FATAL,
    2: LogLevel.ERROR,
    3: LogLevel.WARN,
    4: LogLevel.INFO,
    5: LogLevel.DEBUG,
    6: LogLevel.TRACE,
}


class LogLine(BaseModel):
    """A single cleaned log line."""

    model_config = ConfigDict(frozen=True)

    raw: str
    text: str
    timestamp: datetime | None = None
    severity: LogSeverity = LogSeverity.INFO
    level: LogLevel | None = None
    is_marker: bool = False


class LogWindow(BaseModel):
    """Bounded, most-recent-first view over a log source."""

    model_config = ConfigDict(frozen=True)

    lines: tuple[LogLine, ...] = ()
    cutoff: datetime | None = None
    max_size: int = Field(default=150, ge=0)
    min_level: LogLevel = LogLevel.TRACE
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def texts(self) -> list[str]:
        return [line.text for line in self.lines]

    def render_text(self) -> str:
        """Join the window for export, most recent first."""
        return "\n".join(self.texts)
