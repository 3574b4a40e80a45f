"""Tests for the procd/ubus supervisor adapter."""

import json

import pytest

from tunnel_monitor.collector import CommandResult, UbusSupervisor, parse_service_list
from tunnel_monitor.common.exceptions import QueryError, SupervisorError
from tunnel_monitor.models import LiveInstance


class TestParseServiceList:
    def test_instances_converted(self):
        """Test procd instances become LiveInstance values"""
        reply = {
            "phantun": {
                "instances": {
                    "server.server_main": {
                        "running": True,
                        "pid": 812,
                        "command": ["/usr/bin/phantun_server", "--local", "4567"],
                        "term_timeout": 5,
                    },
                    "client.client_main": {"running": False},
                }
            }
        }

        instances = parse_service_list(json.dumps(reply), "phantun")

        assert instances == [
            LiveInstance(
                key="server.server_main",
                running=True,
                pid=812,
                command_line="/usr/bin/phantun_server --local 4567",
            ),
            LiveInstance(key="client.client_main", running=False),
        ]

    def test_unknown_service_yields_empty(self):
        """Test a reply without the service means no instances"""
        assert parse_service_list("{}", "phantun") == []
        assert parse_service_list("", "phantun") == []

    def test_service_without_instances(self):
        assert parse_service_list({"udp2raw": {}}, "udp2raw") == []

    def test_malformed_json(self):
        """Test unparsable replies raise SupervisorError"""
        with pytest.raises(SupervisorError):
            parse_service_list("{not json", "phantun")

    def test_wrong_shape(self):
        """Test replies with the wrong structure raise SupervisorError"""
        with pytest.raises(SupervisorError):
            parse_service_list({"phantun": {"instances": []}}, "phantun")

    def test_non_object_reply(self):
        with pytest.raises(SupervisorError):
            parse_service_list("[1, 2]", "phantun")


class TestUbusSupervisor:
    @pytest.mark.asyncio
    async def test_calls_service_list(self, mock_runner):
        """Test the supervisor asks ubus for the named service"""
        mock_runner.run.return_value = CommandResult(
            exit_code=0,
            stdout=json.dumps({"udp2raw": {"instances": {"t1": {"running": True, "pid": 9}}}}),
        )
        supervisor = UbusSupervisor(mock_runner, "/bin/ubus")

        instances = await supervisor.list_instances("udp2raw")

        assert instances == [LiveInstance(key="t1", running=True, pid=9)]
        mock_runner.run.assert_awaited_once_with(
            "/bin/ubus", ["call", "service", "list", '{"name": "udp2raw"}']
        )

    @pytest.mark.asyncio
    async def test_not_found_exit_means_no_instances(self, mock_runner):
        """Test ubus exit 4 is treated as an unknown service"""
        mock_runner.run.return_value = CommandResult(exit_code=4)
        supervisor = UbusSupervisor(mock_runner)

        assert await supervisor.list_instances("phantun") == []

    @pytest.mark.asyncio
    async def test_other_failures_raise(self, mock_runner):
        """Test other non-zero ubus exits raise SupervisorError"""
        mock_runner.run.return_value = CommandResult(
            exit_code=7, stderr="Failed to connect to ubus"
        )
        supervisor = UbusSupervisor(mock_runner)

        with pytest.raises(SupervisorError, match="Failed to connect"):
            await supervisor.list_instances("phantun")

    @pytest.mark.asyncio
    async def test_runner_errors_propagate(self, mock_runner):
        mock_runner.run.side_effect = QueryError("timed out")
        supervisor = UbusSupervisor(mock_runner)

        with pytest.raises(QueryError):
            await supervisor.list_instances("phantun")
