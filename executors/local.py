import asyncio
import logging
import os
import subprocess
import time
from typing import Optional
from executors.base import CommandExecutor, RemoteSession
from deployment_models import ConnectionSpec, CommandResult
from utils.exceptions import SessionConnectionError

logger = logging.getLogger(__name__)


class LocalSession(RemoteSession):
    """Runs commands on this machine through /bin/sh (development backend)."""

    def __init__(self, spec: ConnectionSpec, command_timeout: float):
        self.spec = spec
        self.command_timeout = command_timeout
        self._closed = False

    def _run(self, command: str, cwd: Optional[str], timeout: float) -> CommandResult:
        start_time = time.time()
        try:
            process = subprocess.run(
                ["/bin/sh", "-c", command],
                capture_output=True,
                text=True,
                cwd=cwd,
                timeout=timeout
            )
            exit_code = process.returncode
            stderr = process.stderr
            stdout = process.stdout
        except subprocess.TimeoutExpired:
            exit_code = 124
            stderr = f"Command timed out after {timeout:g} seconds"
            stdout = ""
        except OSError as e:
            exit_code = 127
            stderr = f"Error executing command: {str(e)}"
            stdout = ""
        return CommandResult(
            exit_code=exit_code,
            stdout=stdout,
            stderr=stderr,
            duration=time.time() - start_time
        )

    async def execute(self, command: str, cwd: Optional[str] = None, timeout: Optional[float] = None) -> CommandResult:
        if self._closed:
            raise SessionConnectionError(f"Session to {self.spec} is closed")
        if cwd:
            cwd = os.path.expanduser(cwd)
        return await asyncio.to_thread(self._run, command, cwd, timeout or self.command_timeout)

    async def close(self) -> None:
        self._closed = True


class LocalExecutor(CommandExecutor):
    def __init__(self, command_timeout: float = 1800.0):
        self.command_timeout = command_timeout

    async def open(self, spec: ConnectionSpec) -> RemoteSession:
        if not os.path.exists("/bin/sh"):
            raise SessionConnectionError("/bin/sh is not available on this machine")
        logger.info(f"Opening local session for {spec}")
        return LocalSession(spec, self.command_timeout)

    @property
    def executor_type(self) -> str:
        return "local"
