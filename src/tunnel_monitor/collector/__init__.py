"""Live state collection: command runner, supervisor access and queries."""

from .collector import LiveFacts, LiveStateCollector, QueryFailure, is_failure
from .runner import CommandResult, CommandRunner
from .supervisor import UbusSupervisor, parse_service_list

__all__ = [
    "CommandResult",
    "CommandRunner",
    "LiveFacts",
    "LiveStateCollector",
    "QueryFailure",
    "UbusSupervisor",
    "is_failure",
    "parse_service_list",
]
