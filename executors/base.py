import shlex
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional
from deployment_models import ConnectionSpec, CommandResult


def change_directory(cwd: str) -> str:
    """Shell ``cd`` for ``cwd``; a leading ``~/`` stays unquoted so it expands."""
    if cwd == "~":
        return "cd ~"
    if cwd.startswith("~/"):
        return f"cd ~/{shlex.quote(cwd[2:])}"
    return f"cd {shlex.quote(cwd)}"


class RemoteSession(ABC):
    @abstractmethod
    async def execute(self, command: str, cwd: Optional[str] = None, timeout: Optional[float] = None) -> CommandResult:
        """명령을 실행하고 exit code/stdout/stderr 반환 (non-zero exit는 예외가 아님)"""
        pass

    @abstractmethod
    async def close(self) -> None:
        """세션 종료 (여러 번 호출해도 안전해야 함)"""
        pass


class CommandExecutor(ABC):
    @abstractmethod
    async def open(self, spec: ConnectionSpec) -> RemoteSession:
        """인증된 세션을 열고 반환, 실패 시 SessionConnectionError"""
        pass

    @asynccontextmanager
    async def session(self, spec: ConnectionSpec) -> AsyncIterator[RemoteSession]:
        remote = await self.open(spec)
        try:
            yield remote
        finally:
            await remote.close()

    async def cleanup(self) -> None:
        pass

    @property
    @abstractmethod
    def executor_type(self) -> str:
        """executor의 타입(ssh, local) 반환"""
        pass
