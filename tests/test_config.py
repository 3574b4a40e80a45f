"""Tests for monitor configuration and tool profiles."""

import pytest
from pydantic import ValidationError

from tunnel_monitor.common.exceptions import ConfigurationError
from tunnel_monitor.config import (
    PHANTUN,
    UDP2RAW,
    EndpointLayout,
    MonitorConfig,
    ToolProfile,
    get_profile,
)
from tunnel_monitor.models import LogLevel, TunnelRole


class TestToolProfile:
    def test_get_profile_is_case_insensitive(self):
        assert get_profile("phantun") is PHANTUN
        assert get_profile(" UDP2RAW ") is UDP2RAW

    def test_get_unknown_profile(self):
        with pytest.raises(ConfigurationError, match="Unknown tool profile 'openvpn'"):
            get_profile("openvpn")

    def test_instance_key_requires_id(self):
        with pytest.raises(ValidationError, match="must contain"):
            ToolProfile(
                name="custom",
                service_name="custom",
                log_tag="custom",
                uci_package="custom",
                instance_key="{role}",
            )

    def test_profiles_are_frozen(self):
        with pytest.raises(ValidationError):
            PHANTUN.log_tag = "other"

    def test_instance_keys(self):
        """phantun keys instances by role and id; udp2raw by id alone"""
        assert PHANTUN.instance_key == "{role}.{id}"
        assert UDP2RAW.instance_key == "{id}"

    def test_udp2raw_skips_ipv6_and_interfaces(self):
        assert UDP2RAW.check_ipv6 is False
        assert UDP2RAW.interface_pattern is None
        assert UDP2RAW.nat_table is None


class TestEndpointLayout:
    def test_render_with_options(self):
        layout = EndpointLayout(
            addr_option="remote_addr", port_option="remote_port", suffix=" (TCP)"
        )

        rendered = layout.render({"remote_addr": "10.0.0.1", "remote_port": "443"})

        assert rendered == "10.0.0.1:443 (TCP)"

    def test_render_defaults(self):
        layout = EndpointLayout(addr_option="remote_addr", port_option="remote_port")
        assert layout.render({}) == "?:?"

    def test_fixed_address_ignores_options(self):
        layout = PHANTUN.local_endpoints[TunnelRole.SERVER]
        assert layout.render({"local_addr": "1.2.3.4", "local_port": "9000"}) == (
            "0.0.0.0:9000 (TCP)"
        )

    def test_empty_option_uses_default(self):
        layout = PHANTUN.local_endpoints[TunnelRole.CLIENT]
        assert layout.render({"local_addr": "", "local_port": ""}) == (
            "127.0.0.1:51820 (UDP)"
        )


class TestMonitorConfig:
    def test_defaults(self):
        config = MonitorConfig()

        assert config.profile == PHANTUN
        assert config.status_interval == 5.0
        assert config.log_interval == 5.0
        assert config.command_timeout == 5.0
        assert config.log_max_lines == 150
        assert config.log_min_level == LogLevel.TRACE
        assert config.clear_grace_seconds == 0.0
        assert config.commands.ubus == "/bin/ubus"

    def test_profile_by_name(self):
        config = MonitorConfig(profile="udp2raw")
        assert config.profile == UDP2RAW

    def test_unknown_profile_name(self):
        with pytest.raises(ValidationError, match="Unknown tool profile"):
            MonitorConfig(profile="wireguard")

    def test_log_level_by_name(self):
        assert MonitorConfig(log_min_level="warn").log_min_level == LogLevel.WARN
        assert MonitorConfig(log_min_level="4").log_min_level == LogLevel.INFO

    def test_unknown_log_level(self):
        with pytest.raises(ValidationError, match="Unknown log level"):
            MonitorConfig(log_min_level="chatty")

    @pytest.mark.parametrize(
        "field,value",
        [
            ("status_interval", 0.1),
            ("log_interval", 7200),
            ("command_timeout", 0),
            ("log_max_lines", -1),
            ("clear_grace_seconds", 120),
        ],
    )
    def test_out_of_range_values(self, field, value):
        with pytest.raises(ValidationError):
            MonitorConfig(**{field: value})

    def test_validate_assignment(self):
        config = MonitorConfig()

        with pytest.raises(ValidationError):
            config.status_interval = 0

    def test_extra_fields_forbidden(self):
        with pytest.raises(ValidationError):
            MonitorConfig(poll_interval=5)

    def test_from_dict(self):
        config = MonitorConfig.from_dict(
            {
                "profile": "udp2raw",
                "status_interval": 2,
                "commands": {"logread": "/usr/sbin/logread"},
            }
        )

        assert config.profile == UDP2RAW
        assert config.status_interval == 2.0
        assert config.commands.logread == "/usr/sbin/logread"
        assert config.commands.ip == "/sbin/ip"

    def test_from_dict_wraps_errors(self):
        with pytest.raises(ConfigurationError, match="Invalid monitor configuration"):
            MonitorConfig.from_dict({"command_timeout": "soon"})
