import asyncio
import io
import logging
import socket
import time
from typing import Optional
import paramiko
from executors.base import CommandExecutor, RemoteSession, change_directory
from deployment_models import ConnectionSpec, CommandResult
from utils.exceptions import SessionConnectionError

logger = logging.getLogger(__name__)

KEY_CLASSES = (paramiko.Ed25519Key, paramiko.ECDSAKey, paramiko.RSAKey)


def load_private_key(private_key: str) -> paramiko.PKey:
    last_error = None
    for key_class in KEY_CLASSES:
        try:
            return key_class.from_private_key(io.StringIO(private_key))
        except (paramiko.SSHException, ValueError) as e:
            last_error = e
    raise SessionConnectionError(f"Unsupported or invalid private key: {last_error}")


class SSHSession(RemoteSession):
    def __init__(self, client: paramiko.SSHClient, spec: ConnectionSpec, command_timeout: float):
        self.client = client
        self.spec = spec
        self.command_timeout = command_timeout
        self._closed = False

    def _run(self, command: str, timeout: float) -> CommandResult:
        start_time = time.time()
        try:
            _, stdout, stderr = self.client.exec_command(command, timeout=timeout)
            out = stdout.read().decode("utf-8", errors="replace")
            err = stderr.read().decode("utf-8", errors="replace")
            exit_code = stdout.channel.recv_exit_status()
        except socket.timeout:
            exit_code = 124
            out = ""
            err = f"Command timed out after {timeout:g} seconds"
        except paramiko.SSHException as e:
            exit_code = 255
            out = ""
            err = f"SSH channel error: {str(e)}"
        return CommandResult(
            exit_code=exit_code,
            stdout=out,
            stderr=err,
            duration=time.time() - start_time
        )

    async def execute(self, command: str, cwd: Optional[str] = None, timeout: Optional[float] = None) -> CommandResult:
        if self._closed:
            raise SessionConnectionError(f"Session to {self.spec} is closed")
        if cwd:
            command = f"{change_directory(cwd)} && {command}"
        return await asyncio.to_thread(self._run, command, timeout or self.command_timeout)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await asyncio.to_thread(self.client.close)
        logger.info(f"Closed SSH session to {self.spec}")


class SSHExecutor(CommandExecutor):
    def __init__(self, command_timeout: float = 1800.0):
        self.command_timeout = command_timeout

    def _connect(self, spec: ConnectionSpec) -> paramiko.SSHClient:
        pkey = load_private_key(spec.private_key)
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                hostname=spec.host,
                port=spec.port,
                username=spec.username,
                pkey=pkey,
                timeout=spec.connect_timeout,
                banner_timeout=spec.connect_timeout,
                auth_timeout=spec.connect_timeout,
                allow_agent=False,
                look_for_keys=False,
            )
        except paramiko.AuthenticationException as e:
            client.close()
            raise SessionConnectionError(f"Authentication failed for {spec}: {str(e)}") from e
        except (paramiko.SSHException, socket.timeout, TimeoutError) as e:
            client.close()
            raise SessionConnectionError(f"SSH connection to {spec} failed: {str(e)}") from e
        except OSError as e:
            client.close()
            raise SessionConnectionError(f"Host {spec.host} unreachable: {str(e)}") from e
        return client

    async def open(self, spec: ConnectionSpec) -> RemoteSession:
        logger.info(f"Opening SSH session to {spec}")
        client = await asyncio.to_thread(self._connect, spec)
        return SSHSession(client, spec, self.command_timeout)

    @property
    def executor_type(self) -> str:
        return "ssh"
