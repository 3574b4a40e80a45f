"""Async execution of read-only external commands."""

import asyncio
from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict

from ..common.exceptions import CommandTimeoutError, QueryError
from ..common.logging import get_logger

logger = get_logger(__name__)


class CommandResult(BaseModel):
    """Captured outcome of one command execution."""

    model_config = ConfigDict(frozen=True)

    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class CommandRunner:
    """Runs a command with a bounded timeout and captures its output."""

    def __init__(self, timeout: float = 5.0):
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.timeout = timeout

    async def run(
        self, path: str, args: Sequence[str] = (), timeout: float | None = None
    ) -> CommandResult:
        """Execute ``path`` with ``args``.

        Args:
            path: Absolute path of the executable
            args: Command arguments
            timeout: Override of the default timeout in seconds

        Returns:
            Exit code and decoded output

        Raises:
            CommandTimeoutError: If the command did not finish in time
            QueryError: If the command could not be started
        """
        limit = timeout if timeout is not None else self.timeout
        command = " ".join([path, *args])
        logger.debug("Running command", command=command, timeout=limit)

        try:
            process = await asyncio.create_subprocess_exec(
                path,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise QueryError(f"Failed to start {path}: {e}", query=command) from e

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=limit)
        except TimeoutError:
            process.kill()
            await process.wait()
            raise CommandTimeoutError(
                f"Command timed out after {limit:.1f}s: {command}", query=command
            ) from None

        return CommandResult(
            exit_code=process.returncode if process.returncode is not None else -1,
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
        )
