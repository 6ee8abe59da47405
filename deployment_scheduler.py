"""Background worker pool for deployment workflows.

Submission never hands a task back to the caller: the outcome of a workflow is
visible only through the Record Store.
"""
import asyncio
import logging
from functools import partial
from typing import Dict, Set
from deployment_models import ConnectionSpec
from orchestrator import DeploymentOrchestrator

logger = logging.getLogger(__name__)


class DeploymentScheduler:
    def __init__(self, orchestrator: DeploymentOrchestrator, max_concurrent: int = 8):
        self.orchestrator = orchestrator
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._tasks: Dict[str, asyncio.Task] = {}
        self._cancel_events: Dict[str, asyncio.Event] = {}
        # orchestrator.run 에 진입한 배포
        self._started: Set[str] = set()

    def submit(self, deployment_id: str, chain_name: str, spec: ConnectionSpec) -> None:
        # 배포당 하나의 워크플로우(=하나의 세션)만 허용
        if deployment_id in self._tasks:
            raise RuntimeError(f"Deployment {deployment_id} is already running")
        cancel_event = asyncio.Event()
        task = asyncio.create_task(
            self._run(deployment_id, chain_name, spec, cancel_event),
            name=f"deployment-{deployment_id}",
        )
        self._tasks[deployment_id] = task
        self._cancel_events[deployment_id] = cancel_event
        task.add_done_callback(partial(self._on_done, deployment_id))
        logger.info(f"Scheduled deployment {deployment_id} ({len(self._tasks)} running)")

    async def _run(self, deployment_id: str, chain_name: str, spec: ConnectionSpec, cancel_event: asyncio.Event):
        async with self._semaphore:
            self._started.add(deployment_id)
            return await self.orchestrator.run(deployment_id, chain_name, spec, cancel_event)

    def _on_done(self, deployment_id: str, task: asyncio.Task) -> None:
        self._tasks.pop(deployment_id, None)
        self._cancel_events.pop(deployment_id, None)
        self._started.discard(deployment_id)
        if task.cancelled():
            logger.warning(f"Deployment task {deployment_id} was cancelled")
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Deployment task {deployment_id} crashed: {exc!r}", exc_info=exc)
        else:
            logger.info(f"Deployment task {deployment_id} finished with {task.result().value}")

    def cancel(self, deployment_id: str) -> bool:
        """Signal cancellation; honored at the next phase boundary."""
        cancel_event = self._cancel_events.get(deployment_id)
        if cancel_event is None:
            return False
        cancel_event.set()
        return True

    def is_running(self, deployment_id: str) -> bool:
        return deployment_id in self._tasks

    @property
    def running_count(self) -> int:
        return len(self._tasks)

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        tasks = dict(self._tasks)
        # 세마포어 대기 중이던 배포는 orchestrator 가 FAILED 처리하지 못함
        waiting = [deployment_id for deployment_id in tasks if deployment_id not in self._started]
        for task in tasks.values():
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks.values(), return_exceptions=True)
        for deployment_id in waiting:
            await self.orchestrator.mark_interrupted(deployment_id)
        logger.info(f"Deployment scheduler stopped ({len(tasks)} task(s) cancelled, {len(waiting)} never started)")
