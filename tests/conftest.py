"""Shared pytest fixtures for tunnel monitor tests."""

import json
from unittest.mock import AsyncMock

import pytest

from tunnel_monitor.collector import CommandResult, CommandRunner, LiveStateCollector
from tunnel_monitor.config import MonitorConfig
from tunnel_monitor.models import ConfigSnapshot, TunnelDefinition, TunnelRole

IP_ADDR_OUTPUT = """\
1: lo: <LOOPBACK,UP,LOWER_UP> mtu 65536 qdisc noqueue state UNKNOWN
    link/loopback 00:00:00:00:00:00 brd 00:00:00:00:00:00
    inet 127.0.0.1/8 scope host lo
2: eth0: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500 qdisc fq_codel state UP
    inet 10.0.0.2/24 brd 10.0.0.255 scope global eth0
3: tun0: <POINTOPOINT,MULTICAST,NOARP,UP,LOWER_UP> mtu 1500 qdisc fq_codel state UNKNOWN
    link/none
    inet 192.168.200.1/32 scope global tun0
    inet6 fcc8::1/128 scope global
4: tun1: <POINTOPOINT,MULTICAST,NOARP> mtu 1500 qdisc noop state DOWN
"""

IPTABLES_NAT_OUTPUT = """\
Chain PREROUTING (policy ACCEPT 10 packets, 600 bytes)
 pkts bytes target     prot opt in     out     source               destination
    3   180 DNAT       tcp  --  *      *       0.0.0.0/0            0.0.0.0/0            tcp dpt:4567 to:192.168.201.2

Chain POSTROUTING (policy ACCEPT 4 packets, 240 bytes)
 pkts bytes target     prot opt in     out     source               destination
   12   720 MASQUERADE  all  --  *      *       192.168.200.2        0.0.0.0/0
"""

LOGREAD_OUTPUT = """\
Sat Jan 31 12:00:00 2026 daemon.info phantun[812]: client started
Sat Jan 31 12:05:00 2026 daemon.err phantun[812]: connection refused
Sat Jan 31 12:10:00 2026 daemon.debug phantun[812]: keepalive sent
"""


def service_list_reply(service: str, instances: dict) -> str:
    """Render a ``ubus call service list`` JSON reply."""
    return json.dumps({service: {"instances": instances}})


@pytest.fixture
def phantun_config():
    """Monitor configuration for the phantun profile."""
    return MonitorConfig(profile="phantun", command_timeout=1.0)


@pytest.fixture
def udp2raw_config():
    return MonitorConfig(profile="udp2raw", command_timeout=1.0)


@pytest.fixture
def mock_runner():
    """CommandRunner whose run() is an AsyncMock.

    Returns:
        Mock runner; set ``run.side_effect`` or ``run.return_value`` per test
    """
    runner = CommandRunner(timeout=1.0)
    runner.run = AsyncMock(return_value=CommandResult(exit_code=0, stdout=""))
    return runner


@pytest.fixture
def command_table(mock_runner):
    """Route mocked commands by executable name.

    Returns:
        dict mapping executable basename to a CommandResult or exception
    """
    table: dict = {}

    async def fake_run(path, args=(), timeout=None):
        response = table.get(path.rsplit("/", 1)[-1])
        if response is None:
            return CommandResult(exit_code=0, stdout="")
        if isinstance(response, Exception):
            raise response
        return response

    mock_runner.run.side_effect = fake_run
    return table


@pytest.fixture
def phantun_collector(phantun_config, mock_runner):
    return LiveStateCollector(phantun_config, runner=mock_runner)


@pytest.fixture
def phantun_snapshot():
    """Configuration with one server and one client tunnel."""
    return ConfigSnapshot(
        global_enabled=True,
        tunnels=(
            TunnelDefinition(
                id="server_main",
                alias="MainServer",
                role=TunnelRole.SERVER,
                local="0.0.0.0:4567 (TCP)",
                remote="127.0.0.1:51820 (UDP)",
            ),
            TunnelDefinition(
                id="client_main",
                alias="MainClient",
                role=TunnelRole.CLIENT,
                local="127.0.0.1:51820 (UDP)",
                remote="10.10.10.1:5555 (TCP)",
            ),
        ),
    )


@pytest.fixture
def ip_addr_output():
    return IP_ADDR_OUTPUT


@pytest.fixture
def iptables_nat_output():
    return IPTABLES_NAT_OUTPUT


@pytest.fixture
def logread_output():
    return LOGREAD_OUTPUT


@pytest.fixture
def service_reply():
    """Factory for ``ubus call service list`` replies."""
    return service_list_reply
