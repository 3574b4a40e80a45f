"""Configuration models for the tunnel monitor."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .common.exceptions import ConfigurationError
from .models import LogLevel, TunnelRole

DEFAULT_INTERVAL = 5.0
DEFAULT_COMMAND_TIMEOUT = 5.0
DEFAULT_LOG_LINES = 150


class EndpointLayout(BaseModel):
    """How to render one endpoint display string from UCI options."""

    model_config = ConfigDict(frozen=True)

    addr_option: str | None = Field(
        default=None, description="Option holding the address (None = fixed)"
    )
    port_option: str
    default_addr: str = "?"
    default_port: str = "?"
    suffix: str = ""

    def render(self, options: dict[str, str]) -> str:
        addr = self.default_addr
        if self.addr_option is not None:
            addr = options.get(self.addr_option) or self.default_addr
        port = options.get(self.port_option) or self.default_port
        return f"{addr}:{port}{self.suffix}"


class ToolProfile(BaseModel):
    """Describes one wrapped UDP obfuscation tool and its LuCI package."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    service_name: str = Field(min_length=1, description="procd service name")
    log_tag: str = Field(min_length=1, description="Tag passed to logread -e")
    instance_key: str = Field(
        default="{role}.{id}", description="Supervisor instance key template"
    )

    # NAT / firewall evidence
    nat_table: str | None = Field(default="nat", description="iptables -t table")
    nat_markers_v4: tuple[str, ...] = ()
    nat_markers_v6: tuple[str, ...] = ()
    nat_rule_tokens: tuple[str, ...] = ("MASQUERADE", "DNAT")
    chain_prefix: str | None = None
    check_ipv6: bool = True

    # Virtual interfaces
    interface_pattern: str | None = Field(
        default=r"tun\d+", description="Regex for virtual interface names"
    )

    # UCI layout
    uci_package: str = Field(min_length=1)
    section_types: tuple[str, ...] = ()
    role_option: str | None = Field(
        default=None, description="Option holding the role (None = section type)"
    )
    enabled_option: str = "enabled"
    enabled_inverted: bool = Field(
        default=False, description="True when the option is a 'disabled' flag"
    )
    global_section: str | None = "general"
    global_enabled_default: bool = True
    local_endpoints: dict[TunnelRole, EndpointLayout] = Field(default_factory=dict)
    remote_endpoints: dict[TunnelRole, EndpointLayout] = Field(default_factory=dict)
    tag_defaults: dict[str, str] = Field(
        default_factory=dict, description="Mode tag options and their defaults"
    )
    role_tag_defaults: dict[TunnelRole, dict[str, str]] = Field(
        default_factory=dict, description="Tag defaults that depend on the role"
    )

    @field_validator("instance_key")
    @classmethod
    def validate_instance_key(cls, v: str) -> str:
        if "{id}" not in v:
            raise ValueError("Instance key template must contain '{id}'")
        return v


PHANTUN = ToolProfile(
    name="phantun",
    service_name="phantun",
    log_tag="phantun",
    instance_key="{role}.{id}",
    nat_table="nat",
    nat_markers_v4=("phantun", "192.168.200", "192.168.201"),
    nat_markers_v6=("phantun", "fcc8", "fcc9"),
    nat_rule_tokens=("MASQUERADE", "DNAT"),
    chain_prefix="phantun",
    check_ipv6=True,
    interface_pattern=r"tun\d+",
    uci_package="phantun",
    section_types=("server", "client"),
    role_option=None,
    enabled_option="enabled",
    enabled_inverted=False,
    global_section="general",
    global_enabled_default=True,
    local_endpoints={
        TunnelRole.SERVER: EndpointLayout(
            port_option="local_port",
            default_addr="0.0.0.0",
            default_port="4567",
            suffix=" (TCP)",
        ),
        TunnelRole.CLIENT: EndpointLayout(
            addr_option="local_addr",
            port_option="local_port",
            default_addr="127.0.0.1",
            default_port="51820",
            suffix=" (UDP)",
        ),
    },
    remote_endpoints={
        TunnelRole.SERVER: EndpointLayout(
            addr_option="remote_addr",
            port_option="remote_port",
            default_addr="127.0.0.1",
            default_port="51820",
            suffix=" (UDP)",
        ),
        TunnelRole.CLIENT: EndpointLayout(
            addr_option="remote_addr",
            port_option="remote_port",
            suffix=" (TCP)",
        ),
    },
    role_tag_defaults={
        TunnelRole.SERVER: {"tun_local": "192.168.201.1", "tun_peer": "192.168.201.2"},
        TunnelRole.CLIENT: {"tun_local": "192.168.200.1", "tun_peer": "192.168.200.2"},
    },
)

_UDP2RAW_LOCAL = EndpointLayout(
    addr_option="local_addr", port_option="local_port", default_addr="0.0.0.0"
)
_UDP2RAW_REMOTE = EndpointLayout(addr_option="remote_addr", port_option="remote_port")

UDP2RAW = ToolProfile(
    name="udp2raw",
    service_name="udp2raw",
    log_tag="udp2raw",
    instance_key="{id}",
    nat_table=None,
    nat_markers_v4=("udp2raw", "RST"),
    nat_markers_v6=("udp2raw",),
    nat_rule_tokens=("DROP", "REJECT"),
    chain_prefix="udp2raw",
    check_ipv6=False,
    interface_pattern=None,
    uci_package="udp2raw",
    section_types=("tunnel",),
    role_option="mode",
    enabled_option="disabled",
    enabled_inverted=True,
    global_section="general",
    global_enabled_default=False,
    local_endpoints={
        TunnelRole.SERVER: _UDP2RAW_LOCAL,
        TunnelRole.CLIENT: _UDP2RAW_LOCAL,
    },
    remote_endpoints={
        TunnelRole.SERVER: _UDP2RAW_REMOTE,
        TunnelRole.CLIENT: _UDP2RAW_REMOTE,
    },
    tag_defaults={
        "raw_mode": "faketcp",
        "cipher_mode": "aes128cbc",
        "auth_mode": "hmac_sha1",
    },
)

PROFILES: dict[str, ToolProfile] = {
    PHANTUN.name: PHANTUN,
    UDP2RAW.name: UDP2RAW,
}


def get_profile(name: str) -> ToolProfile:
    """Look up a built-in tool profile.

    Args:
        name: Profile name (``phantun`` or ``udp2raw``)

    Returns:
        The matching profile

    Raises:
        ConfigurationError: If no such profile exists
    """
    try:
        return PROFILES[name.strip().lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown tool profile '{name}'. Available: {', '.join(sorted(PROFILES))}"
        ) from None


class CommandPaths(BaseModel):
    """Locations of the read-only system commands the collector invokes."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    ubus: str = "/bin/ubus"
    iptables: str = "/usr/sbin/iptables"
    ip6tables: str = "/usr/sbin/ip6tables"
    ip: str = "/sbin/ip"
    logread: str = "/sbin/logread"
    sh: str = "/bin/sh"
    uci: str = "/sbin/uci"


class MonitorConfig(BaseModel):
    """Runtime settings for a tunnel monitor."""

    model_config = ConfigDict(
        str_strip_whitespace=True, validate_assignment=True, extra="forbid"
    )

    profile: ToolProfile = Field(default=PHANTUN)
    status_interval: float = Field(
        default=DEFAULT_INTERVAL, ge=0.5, le=3600.0, description="Status poll period"
    )
    log_interval: float = Field(
        default=DEFAULT_INTERVAL, ge=0.5, le=3600.0, description="Log poll period"
    )
    command_timeout: float = Field(
        default=DEFAULT_COMMAND_TIMEOUT,
        ge=0.1,
        le=60.0,
        description="Timeout for every external query",
    )
    log_max_lines: int = Field(default=DEFAULT_LOG_LINES, ge=0, le=10000)
    log_min_level: LogLevel = Field(default=LogLevel.TRACE)
    clear_grace_seconds: float = Field(
        default=0.0, ge=0.0, le=60.0, description="Cutoff = now - grace on clear"
    )
    commands: CommandPaths = Field(default_factory=CommandPaths)

    @field_validator("profile", mode="before")
    @classmethod
    def resolve_profile(cls, v: Any) -> Any:
        """Accept a built-in profile name in place of a profile object."""
        if isinstance(v, str):
            try:
                return get_profile(v)
            except ConfigurationError as e:
                raise ValueError(str(e)) from e
        return v

    @field_validator("log_min_level", mode="before")
    @classmethod
    def resolve_log_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            level = LogLevel.parse(v)
            if level is None:
                raise ValueError(f"Unknown log level '{v}'")
            return level
        return v

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MonitorConfig":
        """Build config from a plain mapping, e.g. parsed JSON or TOML.

        Raises:
            ConfigurationError: If the mapping fails validation
        """
        try:
            return cls.model_validate(data)
        except ValueError as e:
            raise ConfigurationError(f"Invalid monitor configuration: {e}") from e
