"""Live state collection.

All I/O of a poll cycle happens here. Each query either returns its data or a
``QueryFailure`` sentinel; exceptions from the runner never escape.
"""

import asyncio
import shlex
from collections.abc import Sequence
from typing import Protocol

from pydantic import BaseModel, ConfigDict, Field

from ..common.exceptions import QueryError
from ..common.logging import get_logger
from ..config import MonitorConfig
from ..models import AddressFamily, LiveInstance
from .runner import CommandResult, CommandRunner
from .supervisor import UbusSupervisor

logger = get_logger(__name__)


class QueryFailure(BaseModel):
    """Sentinel returned in place of data when a query failed."""

    model_config = ConfigDict(frozen=True)

    query: str
    reason: str


class Supervisor(Protocol):
    async def list_instances(self, service_name: str) -> list[LiveInstance]: ...


class LiveFacts(BaseModel):
    """Raw results of one status collection pass."""

    model_config = ConfigDict(frozen=True)

    instances: list[LiveInstance] | QueryFailure
    nat: dict[AddressFamily, str | QueryFailure] = Field(default_factory=dict)
    interfaces: str | QueryFailure | None = None


def is_failure(value: object) -> bool:
    return isinstance(value, QueryFailure)


class LiveStateCollector:
    """Issues the read-only queries behind the status and log views."""

    def __init__(
        self,
        config: MonitorConfig,
        runner: CommandRunner | None = None,
        supervisor: Supervisor | None = None,
    ):
        self.config = config
        self.profile = config.profile
        self.commands = config.commands
        self.runner = runner or CommandRunner(timeout=config.command_timeout)
        self.supervisor = supervisor or UbusSupervisor(self.runner, self.commands.ubus)

    async def run(
        self, path: str, args: Sequence[str] = (), allow_empty: bool = False
    ) -> CommandResult | QueryFailure:
        """Execute a read-only command.

        Args:
            path: Executable path
            args: Arguments
            allow_empty: Treat a non-zero exit with no output as "no data"

        Returns:
            The command result, or a failure sentinel
        """
        query = " ".join([path, *args])
        try:
            result = await self.runner.run(path, args)
        except QueryError as e:
            logger.warning("Query failed", query=query, error=str(e))
            return QueryFailure(query=query, reason=str(e))

        if result.ok or result.stdout.strip():
            return result
        if allow_empty:
            logger.debug("Query returned no data", query=query, exit_code=result.exit_code)
            return CommandResult(exit_code=result.exit_code)

        reason = result.stderr.strip() or f"exit code {result.exit_code}"
        logger.warning("Query failed", query=query, error=reason)
        return QueryFailure(query=query, reason=reason)

    async def list_instances(self) -> list[LiveInstance] | QueryFailure:
        service = self.profile.service_name
        try:
            return await self.supervisor.list_instances(service)
        except QueryError as e:
            logger.warning("Supervisor query failed", service=service, error=str(e))
            return QueryFailure(query=f"service list {service}", reason=str(e))

    async def dump_nat(self, family: AddressFamily) -> str | QueryFailure:
        """Dump the profile's firewall table for one address family."""
        path = self.commands.iptables if family == AddressFamily.IPV4 else self.commands.ip6tables
        args: list[str] = []
        if self.profile.nat_table:
            args += ["-t", self.profile.nat_table]
        args += ["-L", "-n", "-v"]
        result = await self.run(path, args, allow_empty=True)
        return result if isinstance(result, QueryFailure) else result.stdout

    async def list_interfaces(self) -> str | QueryFailure:
        result = await self.run(self.commands.ip, ["addr", "show"])
        return result if isinstance(result, QueryFailure) else result.stdout

    async def read_logs(self) -> str | QueryFailure:
        """Read the system log filtered by the profile's tag.

        Falls back to a grep pipeline when ``logread -e`` yields nothing and
        fails, as older logread builds lack ``-e``.
        """
        tag = self.profile.log_tag
        result = await self.run(self.commands.logread, ["-e", tag], allow_empty=True)
        if isinstance(result, CommandResult) and (result.ok or result.stdout):
            return result.stdout

        pipeline = (
            f"{shlex.quote(self.commands.logread)} | grep {shlex.quote(tag)}"
            f" | tail -n {max(self.config.log_max_lines, 1)}"
        )
        fallback = await self.run(self.commands.sh, ["-c", pipeline], allow_empty=True)
        if isinstance(fallback, QueryFailure):
            return result if isinstance(result, QueryFailure) else fallback
        return fallback.stdout

    async def collect(self) -> LiveFacts:
        """Run every status query concurrently."""
        families = [AddressFamily.IPV4]
        if self.profile.check_ipv6:
            families.append(AddressFamily.IPV6)

        tasks = [self.list_instances(), *(self.dump_nat(f) for f in families)]
        if self.profile.interface_pattern:
            tasks.append(self.list_interfaces())

        results = await asyncio.gather(*tasks)
        instances = results[0]
        nat = dict(zip(families, results[1 : 1 + len(families)]))
        interfaces = results[1 + len(families)] if self.profile.interface_pattern else None

        return LiveFacts(instances=instances, nat=nat, interfaces=interfaces)
