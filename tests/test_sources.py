"""Tests for configuration sources."""

import pytest

from tunnel_monitor.collector import CommandResult
from tunnel_monitor.common.exceptions import QueryError
from tunnel_monitor.config import PHANTUN, UDP2RAW
from tunnel_monitor.models import ConfigSnapshot, TunnelRole
from tunnel_monitor.sources import (
    StaticConfigSource,
    UciConfigSource,
    build_snapshot,
    parse_uci_show,
)

PHANTUN_UCI = """\
phantun.general=general
phantun.general.enabled='1'
phantun.general.log_level='info'
phantun.server_main=server
phantun.server_main.enabled='1'
phantun.server_main.alias='MainServer'
phantun.server_main.local_port='4567'
phantun.server_main.remote_addr='127.0.0.1'
phantun.server_main.remote_port='51820'
phantun.server_main.tun_local='192.168.201.1'
phantun.server_main.tun_peer='192.168.201.2'
phantun.client_main=client
phantun.client_main.enabled='0'
phantun.client_main.local_addr='127.0.0.1'
phantun.client_main.local_port='51820'
phantun.client_main.remote_addr='10.10.10.1'
phantun.client_main.remote_port='5555'
"""

UDP2RAW_UCI = """\
udp2raw.general=general
udp2raw.general.enabled='1'
udp2raw.cfg0a1b2c=tunnel
udp2raw.cfg0a1b2c.mode='server'
udp2raw.cfg0a1b2c.local_port='4096'
udp2raw.cfg0a1b2c.remote_addr='127.0.0.1'
udp2raw.cfg0a1b2c.remote_port='7777'
udp2raw.cfg0a1b2c.cipher_mode='xor'
udp2raw.cfg1=tunnel
udp2raw.cfg1.disabled='1'
"""


class TestParseUciShow:
    def test_sections_in_order(self):
        """Test sections come back in declaration order"""
        sections = parse_uci_show(PHANTUN_UCI)

        assert [(name, stype) for name, stype, _ in sections] == [
            ("general", "general"),
            ("server_main", "server"),
            ("client_main", "client"),
        ]
        assert sections[1][2]["alias"] == "MainServer"

    def test_ignores_garbage(self):
        assert parse_uci_show("not a uci line\n") == []

    def test_value_quotes_removed(self):
        """Test quoted values keep embedded equals signs"""
        sections = parse_uci_show("p.s=t\np.s.opt=\"a=b\"\n")
        assert sections[0][2] == {"opt": "a=b"}


class TestBuildSnapshot:
    def test_phantun_sections(self):
        """Test phantun server and client sections become definitions"""
        snapshot = build_snapshot(PHANTUN, PHANTUN_UCI)

        assert snapshot.global_enabled is True
        server, client = snapshot.tunnels
        assert server.id == "server_main"
        assert server.role == TunnelRole.SERVER
        assert server.alias == "MainServer"
        assert server.local == "0.0.0.0:4567 (TCP)"
        assert server.remote == "127.0.0.1:51820 (UDP)"
        assert server.tags == {"tun_local": "192.168.201.1", "tun_peer": "192.168.201.2"}
        assert client.enabled is False
        assert client.display_alias == "client_main"
        assert client.remote == "10.10.10.1:5555 (TCP)"
        assert client.tags == {"tun_local": "192.168.200.1", "tun_peer": "192.168.200.2"}

    def test_phantun_tun_addresses_default_by_role(self):
        """Test unset TUN addresses fall back to the per-role defaults"""
        text = (
            "phantun.s1=server\n"
            "phantun.s1.tun_peer='10.9.9.2'\n"
            "phantun.c1=client\n"
        )

        server, client = build_snapshot(PHANTUN, text).tunnels

        assert server.tags == {"tun_local": "192.168.201.1", "tun_peer": "10.9.9.2"}
        assert client.tags == {"tun_local": "192.168.200.1", "tun_peer": "192.168.200.2"}

    def test_udp2raw_sections(self):
        """Test udp2raw tunnels read role from mode and the disabled flag"""
        snapshot = build_snapshot(UDP2RAW, UDP2RAW_UCI)

        assert snapshot.global_enabled is True
        first, second = snapshot.tunnels
        assert first.role == TunnelRole.SERVER
        assert first.enabled is True
        assert first.local == "0.0.0.0:4096"
        assert first.tags == {
            "raw_mode": "faketcp",
            "cipher_mode": "xor",
            "auth_mode": "hmac_sha1",
        }
        assert second.role == TunnelRole.CLIENT
        assert second.enabled is False
        assert second.remote == "?:?"

    def test_udp2raw_global_defaults_to_disabled(self):
        """Test udp2raw is off without a general section"""
        snapshot = build_snapshot(UDP2RAW, "udp2raw.t=tunnel\n")
        assert snapshot.global_enabled is False

    def test_empty_config(self):
        assert build_snapshot(PHANTUN, "") == ConfigSnapshot()


class TestSources:
    @pytest.mark.asyncio
    async def test_static_source(self, phantun_snapshot):
        source = StaticConfigSource(phantun_snapshot)
        assert await source.load() is phantun_snapshot

    @pytest.mark.asyncio
    async def test_uci_source(self, mock_runner):
        """Test the UCI source runs uci show for the profile package"""
        mock_runner.run.return_value = CommandResult(exit_code=0, stdout=PHANTUN_UCI)
        source = UciConfigSource(PHANTUN, mock_runner, "/sbin/uci")

        snapshot = await source.load()

        assert len(snapshot.tunnels) == 2
        mock_runner.run.assert_awaited_once_with("/sbin/uci", ["-q", "show", "phantun"])

    @pytest.mark.asyncio
    async def test_uci_source_failure(self, mock_runner):
        """Test a failing uci call raises QueryError"""
        mock_runner.run.return_value = CommandResult(exit_code=1)
        source = UciConfigSource(PHANTUN, mock_runner)

        with pytest.raises(QueryError):
            await source.load()
