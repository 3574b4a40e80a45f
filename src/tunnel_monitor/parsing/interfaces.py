"""``ip addr show`` output parsing."""

import re
from dataclasses import dataclass, field

from ..models import InterfaceFact, InterfaceState

# "3: tun0: <POINTOPOINT,MULTICAST,NOARP,UP,LOWER_UP> mtu 1500 ..."
_IFACE_LINE = re.compile(r"^\s*\d+:\s+(?P<name>[^:\s]+):(?P<rest>.*)$")
_FLAGS = re.compile(r"<(?P<flags>[^>]*)>")
_STATE_UP = re.compile(r"\bstate\s+UP\b")
_INET = re.compile(r"^\s*inet\s+(?P<addr>[\d.]+/\d+)")
_INET6 = re.compile(r"^\s*inet6\s+(?P<addr>[0-9a-fA-F:]+/\d+)")


@dataclass
class _OpenInterface:
    name: str
    state: InterfaceState
    ipv4: list[str] = field(default_factory=list)
    ipv6: list[str] = field(default_factory=list)

    def freeze(self) -> InterfaceFact:
        return InterfaceFact(
            name=self.name,
            state=self.state,
            ipv4=tuple(self.ipv4),
            ipv6=tuple(self.ipv6),
        )


def _is_up(rest: str) -> bool:
    flags = _FLAGS.search(rest)
    if flags and "UP" in flags.group("flags").split(","):
        return True
    return bool(_STATE_UP.search(rest))


def parse_interfaces(
    text: str | None, name_pattern: str | None = r"tun\d+"
) -> list[InterfaceFact]:
    """Extract virtual interfaces from ``ip addr show`` output.

    Args:
        text: Raw command output
        name_pattern: Regex an interface name must fully match; None accepts all

    Returns:
        One fact per matching interface, in listing order
    """
    if not text:
        return []

    name_re = re.compile(name_pattern) if name_pattern else None
    found: list[_OpenInterface] = []
    current: _OpenInterface | None = None

    for line in text.splitlines():
        header = _IFACE_LINE.match(line)
        if header:
            name = header.group("name").split("@", 1)[0]
            if name_re is not None and not name_re.fullmatch(name):
                current = None
                continue
            state = InterfaceState.UP if _is_up(header.group("rest")) else InterfaceState.DOWN
            current = _OpenInterface(name=name, state=state)
            found.append(current)
            continue

        if current is None:
            continue

        inet = _INET.match(line)
        if inet:
            current.ipv4.append(inet.group("addr"))
            continue
        inet6 = _INET6.match(line)
        if inet6:
            current.ipv6.append(inet6.group("addr"))

    return [iface.freeze() for iface in found]
