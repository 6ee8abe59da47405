from typing import Dict, List
from executors.base import CommandExecutor
from executors.local import LocalExecutor
from executors.ssh import SSHExecutor
from core.config import Settings


class ExecutorManager:
    def __init__(self):
        self.executors: Dict[str, CommandExecutor] = {}

    def register_executor(self, backend: str, executor: CommandExecutor) -> None:
        self.executors[backend] = executor

    def get_executor(self, backend: str) -> CommandExecutor:
        executor = self.executors.get(backend)
        if executor is None:
            raise KeyError(f"No executor available for session backend '{backend}'")
        return executor

    def get_available_backends(self) -> List[str]:
        return list(self.executors.keys())

    async def cleanup(self) -> None:
        for executor in self.executors.values():
            await executor.cleanup()


def build_executor_manager(settings: Settings) -> ExecutorManager:
    manager = ExecutorManager()
    manager.register_executor("ssh", SSHExecutor(command_timeout=settings.command_timeout))
    manager.register_executor("local", LocalExecutor(command_timeout=settings.command_timeout))
    return manager
