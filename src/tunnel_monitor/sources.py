"""Configuration collaborators: read-only tunnel definition sources."""

import re
from typing import Protocol

from .collector.runner import CommandRunner
from .common.exceptions import QueryError
from .common.logging import get_logger
from .config import ToolProfile
from .models import ConfigSnapshot, TunnelDefinition, TunnelRole

logger = get_logger(__name__)

# "phantun.server_main=server" / "phantun.server_main.enabled='1'"
_UCI_LINE = re.compile(
    r"^(?P<package>[^.=]+)\.(?P<section>[^.=]+)(?:\.(?P<option>[^=]+))?=(?P<value>.*)$"
)


class ConfigSource(Protocol):
    """Anything that can produce a point-in-time configuration snapshot."""

    async def load(self) -> ConfigSnapshot: ...


class StaticConfigSource:
    """Serves a fixed snapshot; useful for embedding and tests."""

    def __init__(self, snapshot: ConfigSnapshot):
        self.snapshot = snapshot

    async def load(self) -> ConfigSnapshot:
        return self.snapshot


def _unquote(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        return value[1:-1]
    return value


def parse_uci_show(text: str) -> list[tuple[str, str, dict[str, str]]]:
    """Parse ``uci show`` output into ordered sections.

    Returns:
        ``(name, type, options)`` triples in declaration order
    """
    sections: dict[str, tuple[str, dict[str, str]]] = {}
    for line in text.splitlines():
        match = _UCI_LINE.match(line.strip())
        if not match:
            continue
        name = match.group("section")
        value = _unquote(match.group("value"))
        option = match.group("option")
        if option is None:
            sections[name] = (value, sections.get(name, ("", {}))[1])
        else:
            _, options = sections.setdefault(name, ("", {}))
            options[option] = value
    return [(name, stype, options) for name, (stype, options) in sections.items()]


def _is_enabled(options: dict[str, str], option: str, inverted: bool, default: bool) -> bool:
    value = options.get(option)
    if value is None:
        return default
    flag = value in ("1", "true", "yes", "on")
    return not flag if inverted else flag


def build_snapshot(profile: ToolProfile, text: str) -> ConfigSnapshot:
    """Build tunnel definitions from ``uci show`` output using a profile."""
    global_enabled = profile.global_enabled_default
    tunnels: list[TunnelDefinition] = []

    for name, section_type, options in parse_uci_show(text):
        if profile.global_section and (
            name == profile.global_section or section_type == profile.global_section
        ):
            global_enabled = _is_enabled(options, "enabled", False, global_enabled)
            continue
        if section_type not in profile.section_types:
            continue

        if profile.role_option:
            raw_role = options.get(profile.role_option, TunnelRole.CLIENT.value)
        else:
            raw_role = section_type
        role = TunnelRole.SERVER if raw_role == TunnelRole.SERVER.value else TunnelRole.CLIENT

        local = profile.local_endpoints.get(role)
        remote = profile.remote_endpoints.get(role)
        defaults = {**profile.tag_defaults, **profile.role_tag_defaults.get(role, {})}
        tags = {option: options.get(option) or default for option, default in defaults.items()}
        tunnels.append(
            TunnelDefinition(
                id=name,
                alias=options.get("alias") or None,
                role=role,
                enabled=_is_enabled(
                    options, profile.enabled_option, profile.enabled_inverted, True
                ),
                local=local.render(options) if local else "?",
                remote=remote.render(options) if remote else "?",
                tags={k: v for k, v in tags.items() if v},
            )
        )

    return ConfigSnapshot(global_enabled=global_enabled, tunnels=tuple(tunnels))


class UciConfigSource:
    """Reads tunnel definitions with ``uci -q show <package>``."""

    def __init__(
        self, profile: ToolProfile, runner: CommandRunner, uci_path: str = "/sbin/uci"
    ):
        self.profile = profile
        self.runner = runner
        self.uci_path = uci_path

    async def load(self) -> ConfigSnapshot:
        """Load the current configuration.

        Raises:
            QueryError: If uci cannot be run or rejects the package
        """
        package = self.profile.uci_package
        result = await self.runner.run(self.uci_path, ["-q", "show", package])
        if not result.ok:
            raise QueryError(
                f"uci show {package} exited with {result.exit_code}",
                query=f"uci show {package}",
            )
        snapshot = build_snapshot(self.profile, result.stdout)
        logger.debug(
            "Loaded configuration",
            package=package,
            tunnels=len(snapshot.tunnels),
            global_enabled=snapshot.global_enabled,
        )
        return snapshot
