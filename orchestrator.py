"""Drives one deployment through connect, install, scaffold, build, start and verify.

Each deployment owns exactly one remote session for the whole run. Every status
change is written through the registry and mirrored as a log entry; every
command goes to the log with its output. Any phase error ends the deployment
FAILED and is never retried here.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional
from dependency_installer import DependencyInstaller, PATH_EXPORT
from deployment_models import (
    CommandResult,
    ConnectionSpec,
    DeploymentStatus,
    Endpoints,
    StepTag,
)
from deployment_registry import DeploymentRegistry
from executors.base import CommandExecutor, RemoteSession
from retry_policy import PollingTimeout, RetryPolicy
from core.config import Settings
from utils.exceptions import (
    CommandExecutionError,
    DeploymentCancelled,
    DeploymentError,
    IllegalTransitionError,
    PhaseTimeoutError,
    VerificationError,
)
from utils.security import safe_chain_name

logger = logging.getLogger(__name__)

NOT_READY = "NOT_READY"
READY_MARKER = '"node_info"'
INTERNAL_ERROR_MESSAGE = "Internal error during deployment"
INTERRUPTED_MESSAGE = "Deployment interrupted by service shutdown"


@dataclass
class RunContext:
    deployment_id: str
    chain_name: str
    spec: ConnectionSpec
    cancel_event: Optional[asyncio.Event] = None

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()


def is_chain_ready(result: CommandResult) -> bool:
    return result.ok and NOT_READY not in result.stdout and READY_MARKER in result.stdout


class DeploymentOrchestrator:
    def __init__(
        self,
        registry: DeploymentRegistry,
        executor: CommandExecutor,
        settings: Settings,
        installer_factory: Callable[..., DependencyInstaller] = DependencyInstaller,
    ):
        self.registry = registry
        self.executor = executor
        self.settings = settings
        self.installer_factory = installer_factory

    # --- 공통 헬퍼 ---
    async def _transition(self, ctx: RunContext, status: DeploymentStatus, step: StepTag, message: str) -> None:
        # 취소는 단계 경계에서만 확인
        if ctx.cancelled:
            raise DeploymentCancelled()
        await self.registry.update_status(ctx.deployment_id, status, message)
        await self.registry.append_log(ctx.deployment_id, step, output=f"{status.value}: {message}")

    async def _within_timeout(self, step: StepTag, awaitable: Awaitable):
        try:
            return await asyncio.wait_for(awaitable, timeout=self.settings.phase_timeout)
        except asyncio.TimeoutError:
            raise PhaseTimeoutError(step.value, self.settings.phase_timeout)

    async def _run_command(
        self,
        ctx: RunContext,
        session: RemoteSession,
        step: StepTag,
        command: str,
        cwd: Optional[str] = None,
    ) -> CommandResult:
        result = await session.execute(command, cwd=cwd)
        await self.registry.append_log(
            ctx.deployment_id,
            step,
            command=command if not cwd else f"(cd {cwd}) {command}",
            output=result.stdout,
            error=result.stderr if (result.stderr or not result.ok) else None,
        )
        return result

    @staticmethod
    def _require_success(step: StepTag, result: CommandResult) -> None:
        if not result.ok:
            raise CommandExecutionError(step.value, result.stderr or result.stdout, result.exit_code)

    # --- 단계 ---
    async def _install(self, ctx: RunContext, session: RemoteSession) -> None:
        await self._transition(ctx, DeploymentStatus.INSTALLING, StepTag.INSTALL, "Installing dependencies...")

        async def report(message: str) -> None:
            await self.registry.update_status(ctx.deployment_id, DeploymentStatus.INSTALLING, message)

        async def record(command: str, result: CommandResult) -> None:
            await self.registry.append_log(
                ctx.deployment_id,
                StepTag.INSTALL,
                command=command,
                output=result.stdout,
                error=result.stderr if (result.stderr or not result.ok) else None,
            )

        installer = self.installer_factory(session, reporter=report, recorder=record)
        installed = await self._within_timeout(StepTag.INSTALL, installer.check_and_install())
        if installed:
            logger.info(f"Deployment {ctx.deployment_id}: installed {', '.join(installed)}")

    async def _scaffold(self, ctx: RunContext, session: RemoteSession, name: str) -> None:
        await self._transition(ctx, DeploymentStatus.SCAFFOLDING, StepTag.SCAFFOLD, "Creating blockchain...")
        command = f"{PATH_EXPORT} && cd ~ && rm -rf {name} && ignite scaffold chain {name}"
        result = await self._within_timeout(
            StepTag.SCAFFOLD, self._run_command(ctx, session, StepTag.SCAFFOLD, command)
        )
        self._require_success(StepTag.SCAFFOLD, result)

    async def _build(self, ctx: RunContext, session: RemoteSession, name: str) -> None:
        await self._transition(ctx, DeploymentStatus.BUILDING, StepTag.BUILD, "Building blockchain...")
        command = f"{PATH_EXPORT} && ignite chain build"
        result = await self._within_timeout(
            StepTag.BUILD, self._run_command(ctx, session, StepTag.BUILD, command, cwd=f"~/{name}")
        )
        self._require_success(StepTag.BUILD, result)

    async def _start(self, ctx: RunContext, session: RemoteSession, name: str) -> None:
        await self._transition(ctx, DeploymentStatus.STARTING, StepTag.START, "Starting blockchain services...")
        # [i] 패턴: pkill이 자기 자신의 셸을 죽이지 않도록
        command = (
            f"{PATH_EXPORT} && "
            f"(pkill -f '[i]gnite chain serve' || true) && "
            f"nohup ignite chain serve --verbose > ~/chain-{name}.log 2>&1 < /dev/null &"
        )
        result = await self._within_timeout(
            StepTag.START, self._run_command(ctx, session, StepTag.START, command, cwd=f"~/{name}")
        )
        self._require_success(StepTag.START, result)

        await self.registry.update_status(
            ctx.deployment_id, DeploymentStatus.STARTING, "Waiting for blockchain to start..."
        )
        # 준비 신호가 아닌 고정 대기
        await asyncio.sleep(self.settings.settle_seconds)

    async def _verify(self, ctx: RunContext, session: RemoteSession) -> None:
        await self._transition(ctx, DeploymentStatus.VERIFYING, StepTag.VERIFY, "Verifying blockchain is running...")
        command = f'curl -s http://localhost:{self.settings.rpc_port}/status || echo "{NOT_READY}"'
        policy = RetryPolicy(
            max_retries=max(self.settings.verify_attempts - 1, 0),
            delay=self.settings.verify_interval,
        )
        try:
            await self._within_timeout(
                StepTag.VERIFY,
                policy.poll_until(
                    self._run_command,
                    is_chain_ready,
                    ctx, session, StepTag.VERIFY, command,
                ),
            )
        except PollingTimeout as e:
            raise VerificationError(
                f"Chain failed to start: no running node reported on port {self.settings.rpc_port} "
                f"after {e.attempts} probe(s)"
            )

    async def _complete(self, ctx: RunContext) -> Endpoints:
        if ctx.cancelled:
            raise DeploymentCancelled()
        endpoints = Endpoints.for_host(ctx.spec.host, self.settings.rpc_port, self.settings.api_port)
        await self.registry.update_status(
            ctx.deployment_id,
            DeploymentStatus.COMPLETED,
            "Blockchain deployed successfully!",
            endpoints=endpoints,
        )
        await self.registry.append_log(
            ctx.deployment_id,
            StepTag.COMPLETE,
            output=f"COMPLETED: rpc={endpoints.rpc} api={endpoints.api}",
        )
        return endpoints

    async def _fail(self, deployment_id: str, message: str, step: StepTag = StepTag.FAILED) -> None:
        try:
            await self.registry.append_log(deployment_id, step, error=message)
            await self.registry.update_status(deployment_id, DeploymentStatus.FAILED, message)
        except IllegalTransitionError as e:
            logger.warning(f"Could not mark deployment {deployment_id} FAILED: {e}")

    async def mark_interrupted(self, deployment_id: str) -> None:
        """FAILED for a deployment whose workflow was cancelled before it started."""
        logger.warning(f"Deployment {deployment_id} interrupted before start")
        await self._fail(deployment_id, INTERRUPTED_MESSAGE, step=StepTag.CANCEL)

    # --- 진입점 ---
    async def run(
        self,
        deployment_id: str,
        chain_name: str,
        spec: ConnectionSpec,
        cancel_event: Optional[asyncio.Event] = None,
    ) -> DeploymentStatus:
        ctx = RunContext(deployment_id, chain_name, spec, cancel_event)
        logger.info(f"Starting deployment {deployment_id} for chain '{chain_name}' on {spec}")
        try:
            name = safe_chain_name(chain_name)
        except ValueError as e:
            # 요청 검증을 통과했더라도 명령 조립 전에 다시 확인
            logger.error(f"Deployment {deployment_id} rejected: {e}")
            await self._fail(ctx.deployment_id, f"Invalid chain name: {e}")
            return DeploymentStatus.FAILED
        try:
            await self._transition(ctx, DeploymentStatus.CONNECTING, StepTag.CONNECT, f"Connecting to VPS {spec.host}...")
            async with self.executor.session(spec) as session:
                await self.registry.append_log(deployment_id, StepTag.CONNECT, output=f"Connected to {spec}")
                await self._install(ctx, session)
                await self._scaffold(ctx, session, name)
                await self._build(ctx, session, name)
                await self._start(ctx, session, name)
                await self._verify(ctx, session)
                endpoints = await self._complete(ctx)
        except DeploymentCancelled as e:
            logger.info(f"Deployment {deployment_id} cancelled")
            await self._fail(ctx.deployment_id, str(e), step=StepTag.CANCEL)
            return DeploymentStatus.FAILED
        except DeploymentError as e:
            logger.error(f"Deployment {deployment_id} failed: {e}")
            await self._fail(ctx.deployment_id, str(e))
            return DeploymentStatus.FAILED
        except asyncio.CancelledError:
            logger.warning(f"Deployment {deployment_id} interrupted")
            await self._fail(ctx.deployment_id, INTERRUPTED_MESSAGE, step=StepTag.CANCEL)
            raise
        except Exception:
            logger.exception(f"Unexpected error in deployment {deployment_id}")
            await self._fail(ctx.deployment_id, INTERNAL_ERROR_MESSAGE)
            return DeploymentStatus.FAILED
        logger.info(f"Deployment {deployment_id} completed: rpc={endpoints.rpc} api={endpoints.api}")
        return DeploymentStatus.COMPLETED
