"""procd service supervisor access through ubus."""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..common.exceptions import SupervisorError
from ..common.logging import get_logger
from ..models import LiveInstance
from .runner import CommandRunner

logger = get_logger(__name__)


class _ProcdInstance(BaseModel):
    """Instance entry as procd reports it; unknown keys are ignored."""

    model_config = ConfigDict(extra="ignore")

    running: bool = False
    pid: int | None = None
    command: list[str] = Field(default_factory=list)


class _ProcdService(BaseModel):
    model_config = ConfigDict(extra="ignore")

    instances: dict[str, _ProcdInstance] = Field(default_factory=dict)


def parse_service_list(payload: str | dict[str, Any], service_name: str) -> list[LiveInstance]:
    """Convert a ``service list`` reply into live instances.

    Args:
        payload: JSON text or decoded object from ``ubus call service list``
        service_name: Service whose instances to extract

    Returns:
        Instances in reply order; empty when the service is unknown

    Raises:
        SupervisorError: If the reply is not valid JSON or has the wrong shape
    """
    if isinstance(payload, str):
        if not payload.strip():
            return []
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            raise SupervisorError(f"Malformed service list reply: {e}") from e

    if not isinstance(payload, dict):
        raise SupervisorError("Service list reply is not an object")

    raw_service = payload.get(service_name)
    if raw_service is None:
        return []

    try:
        service = _ProcdService.model_validate(raw_service)
    except ValidationError as e:
        raise SupervisorError(f"Unexpected service list shape: {e}") from e

    instances = []
    for key, inst in service.instances.items():
        instances.append(
            LiveInstance(
                key=key,
                running=inst.running,
                pid=inst.pid if inst.pid and inst.pid > 0 else None,
                command_line=" ".join(inst.command) if inst.command else None,
            )
        )
    return instances


class UbusSupervisor:
    """Reads service instances from procd via the ubus CLI."""

    def __init__(self, runner: CommandRunner, ubus_path: str = "/bin/ubus"):
        self.runner = runner
        self.ubus_path = ubus_path

    async def list_instances(self, service_name: str) -> list[LiveInstance]:
        """List instances of a procd service.

        Raises:
            SupervisorError: If ubus fails or replies with garbage
            QueryError: If ubus cannot be executed or times out
        """
        request = json.dumps({"name": service_name})
        result = await self.runner.run(self.ubus_path, ["call", "service", "list", request])
        if not result.ok:
            # ubus exits 4 (not found) when the service has never been registered
            if result.exit_code == 4 and not result.stdout.strip():
                return []
            raise SupervisorError(
                f"ubus exited with {result.exit_code}: {result.stderr.strip()}",
                query=f"service list {service_name}",
            )
        instances = parse_service_list(result.stdout, service_name)
        logger.debug(
            "Listed service instances", service=service_name, count=len(instances)
        )
        return instances
