import asyncio
import logging
import traceback
from datetime import datetime, timezone
from typing import List, Optional
from fastapi import FastAPI, Depends, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.future import select
from core.config import Settings, settings as default_settings
from core.db import get_sessionmaker, create_tables
from deployment_models import ConnectionSpec, DeploymentStatus, TERMINAL_STATUSES
from deployment_registry import DeploymentRegistry
from deployment_scheduler import DeploymentScheduler
from executor_manager import ExecutorManager, build_executor_manager
from models.deployment import Deployment
from models.error_log import ErrorLog
from orchestrator import DeploymentOrchestrator
from schemas.deployment import (
    AdminStats,
    CancelResponse,
    DeploymentCreate,
    DeploymentListResponse,
    DeploymentLogRead,
    DeploymentLogsResponse,
    DeploymentStatusResponse,
    DeploymentSubmitted,
    DeploymentSummary,
    Pagination,
)
from schemas.error_log import ErrorLogRead
from utils.exceptions import (
    ChainNameConflictError,
    CustomException,
    DeploymentNotCancellableError,
    DeploymentNotFoundError,
    SubmissionValidationError,
)
from utils.security import redact_secrets

logger = logging.getLogger(__name__)

API_VERSION = "1.0.0"
ESTIMATED_TOTAL = "3-6 minutes"

PROGRESS_MESSAGES = {
    DeploymentStatus.QUEUED: "Deployment queued and starting...",
    DeploymentStatus.CONNECTING: "Connecting to VPS...",
    DeploymentStatus.INSTALLING: "Installing dependencies...",
    DeploymentStatus.SCAFFOLDING: "Creating blockchain...",
    DeploymentStatus.BUILDING: "Building blockchain...",
    DeploymentStatus.STARTING: "Starting blockchain services...",
    DeploymentStatus.VERIFYING: "Verifying blockchain is running...",
}

ESTIMATED_REMAINING = {
    DeploymentStatus.QUEUED: "3-6 minutes",
    DeploymentStatus.CONNECTING: "3-6 minutes",
    DeploymentStatus.INSTALLING: "2-4 minutes",
    DeploymentStatus.SCAFFOLDING: "1-2 minutes",
    DeploymentStatus.BUILDING: "1-2 minutes",
    DeploymentStatus.STARTING: "under 1 minute",
    DeploymentStatus.VERIFYING: "under 1 minute",
}

COMPLETED_NEXT_STEPS = [
    "Access your blockchain via the RPC endpoint",
    "Use the API endpoint for queries",
    "Start building your application",
]

FAILED_NEXT_STEPS = [
    "Check the error message above",
    "Verify VPS access and SSH key",
    "Try deploying again with a different chain name",
]


def build_status_response(deployment: Deployment) -> DeploymentStatusResponse:
    status = DeploymentStatus(deployment.status)
    response = DeploymentStatusResponse(
        deployment_id=deployment.id,
        chain_name=deployment.chain_name,
        status=status.value,
        created_at=deployment.created_at,
        updated_at=deployment.updated_at,
    )
    # 상태별 추가 정보
    if status is DeploymentStatus.COMPLETED:
        response.rpc_endpoint = deployment.rpc_endpoint
        response.api_endpoint = deployment.api_endpoint
        response.message = "Blockchain deployed successfully!"
        response.next_steps = COMPLETED_NEXT_STEPS
    elif status is DeploymentStatus.FAILED:
        response.error_message = deployment.error_message
        response.message = "Deployment failed"
        response.next_steps = FAILED_NEXT_STEPS
    else:
        response.message = deployment.error_message or PROGRESS_MESSAGES[status]
        response.estimated_remaining = ESTIMATED_REMAINING[status]
    return response


def format_success_rate(successful: int, total: int) -> str:
    if total <= 0:
        return "0%"
    return f"{successful / total * 100:.1f}%"


def create_app(
    settings: Optional[Settings] = None,
    executor_manager: Optional[ExecutorManager] = None,
    session_factory: Optional[async_sessionmaker] = None,
) -> FastAPI:
    settings = settings or default_settings
    app = FastAPI(title="Chain Launchpad", description="Remote blockchain provisioning service", version=API_VERSION)

    session_factory = session_factory or get_sessionmaker()
    executor_manager = executor_manager or build_executor_manager(settings)
    registry = DeploymentRegistry(session_factory)
    orchestrator = DeploymentOrchestrator(
        registry,
        executor_manager.get_executor(settings.session_backend),
        settings,
    )
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.executor_manager = executor_manager
    app.state.registry = registry
    app.state.scheduler = DeploymentScheduler(orchestrator, max_concurrent=settings.max_concurrent_deployments)
    # chain_name 중복 검사와 생성 사이의 경쟁 방지
    app.state.submit_lock = asyncio.Lock()

    @app.on_event("startup")
    async def on_startup():
        await create_tables()
        logger.info(f"Chain Launchpad API started (session backend: {settings.session_backend})")

    @app.on_event("shutdown")
    async def on_shutdown():
        await app.state.scheduler.shutdown()
        await app.state.executor_manager.cleanup()
        logger.info("Chain Launchpad API stopped")

    # DI
    def get_registry(request: Request) -> DeploymentRegistry:
        return request.app.state.registry

    def get_scheduler(request: Request) -> DeploymentScheduler:
        return request.app.state.scheduler

    async def record_error(code: str, message: str, dev_message: str, url: str, stack: str) -> None:
        try:
            async with app.state.session_factory() as db:
                db.add(ErrorLog(code=code, message=message, dev_message=dev_message, url=url, stack=stack))
                await db.commit()
        except Exception:
            logger.exception("Failed to write error log")

    async def load_deployment(deployment_id: str, registry: DeploymentRegistry) -> Deployment:
        deployment = await registry.get_by_id(deployment_id)
        if deployment is None:
            raise DeploymentNotFoundError(deployment_id)
        return deployment

    # 라우트
    @app.get("/api/v1/health")
    async def health():
        health_data = {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": API_VERSION,
        }
        try:
            async with app.state.session_factory() as db:
                await db.execute(text("SELECT 1"))
            health_data["database"] = "connected"
        except Exception as e:
            logger.warning(f"Health check could not reach database: {e}")
            health_data["database"] = "disconnected"
        return health_data

    @app.get("/api/v1/db-status")
    async def db_status(registry: DeploymentRegistry = Depends(get_registry)):
        try:
            total = await registry.count()
        except Exception as e:
            logger.error(f"Database status check failed: {e}")
            return JSONResponse(status_code=503, content={"status": "error", "message": "Database not ready"})
        return {"status": "ready", "message": "Database is ready", "total_deployments": total}

    @app.post("/api/v1/deploy", response_model=DeploymentSubmitted, status_code=202)
    async def submit_deployment(
        payload: DeploymentCreate,
        request: Request,
        registry: DeploymentRegistry = Depends(get_registry),
        scheduler: DeploymentScheduler = Depends(get_scheduler),
    ):
        errors = payload.validation_errors()
        if errors:
            raise SubmissionValidationError(errors)
        port = payload.ssh_port or 22
        async with request.app.state.submit_lock:
            if await registry.find_conflicting(payload.chain_name):
                raise ChainNameConflictError(payload.chain_name)
            deployment = await registry.create(
                chain_name=payload.chain_name,
                host=payload.vps_ip,
                ssh_user=payload.ssh_user.strip(),
                ssh_port=port,
                contact_email=payload.contact_email,
            )
        # 키는 DB에 저장하지 않고 워커로만 전달
        spec = ConnectionSpec(
            host=deployment.host,
            username=deployment.ssh_user,
            port=port,
            private_key=payload.ssh_key,
            connect_timeout=settings.ssh_connect_timeout,
        )
        scheduler.submit(deployment.id, deployment.chain_name, spec)
        return DeploymentSubmitted(
            deployment_id=deployment.id,
            status=DeploymentStatus.QUEUED.value,
            message="Deployment started successfully",
            estimated_time=ESTIMATED_TOTAL,
            status_endpoint=f"/api/v1/deployments/{deployment.id}/status",
        )

    @app.get("/api/v1/deployments/{deployment_id}/status", response_model=DeploymentStatusResponse, response_model_exclude_none=True)
    async def get_deployment_status(deployment_id: str, registry: DeploymentRegistry = Depends(get_registry)):
        deployment = await load_deployment(deployment_id, registry)
        return build_status_response(deployment)

    @app.get("/api/v1/deployments/{deployment_id}/logs", response_model=DeploymentLogsResponse)
    async def get_deployment_logs(deployment_id: str, registry: DeploymentRegistry = Depends(get_registry)):
        deployment = await load_deployment(deployment_id, registry)
        logs = await registry.get_logs(deployment_id)
        return DeploymentLogsResponse(
            deployment_id=deployment.id,
            status=deployment.status,
            logs=[DeploymentLogRead.model_validate(entry) for entry in logs],
            has_more=DeploymentStatus(deployment.status) not in TERMINAL_STATUSES,
        )

    @app.post("/api/v1/deployments/{deployment_id}/cancel", response_model=CancelResponse, status_code=202)
    async def cancel_deployment(
        deployment_id: str,
        registry: DeploymentRegistry = Depends(get_registry),
        scheduler: DeploymentScheduler = Depends(get_scheduler),
    ):
        deployment = await load_deployment(deployment_id, registry)
        if DeploymentStatus(deployment.status) in TERMINAL_STATUSES or not scheduler.cancel(deployment_id):
            raise DeploymentNotCancellableError(deployment_id, deployment.status)
        logger.info(f"Cancellation requested for deployment {deployment_id}")
        return CancelResponse(
            deployment_id=deployment_id,
            status=deployment.status,
            message="Cancellation requested; the deployment stops at the next phase boundary",
        )

    @app.get("/api/v1/deployments", response_model=DeploymentListResponse)
    async def list_deployments(
        limit: int = Query(10, ge=1),
        offset: int = Query(0, ge=0),
        registry: DeploymentRegistry = Depends(get_registry),
    ):
        limit = min(limit, 100)
        deployments = await registry.list(limit=limit, offset=offset)
        total = await registry.count()
        return DeploymentListResponse(
            deployments=[DeploymentSummary.model_validate(d) for d in deployments],
            pagination=Pagination(total=total, limit=limit, offset=offset, has_more=offset + limit < total),
        )

    @app.get("/api/v1/admin/stats", response_model=AdminStats)
    async def admin_stats(registry: DeploymentRegistry = Depends(get_registry)):
        stats = await registry.stats()
        return AdminStats(
            **stats,
            success_rate=format_success_rate(stats["successful_deployments"], stats["total_deployments"]),
        )

    @app.get("/api/v1/admin/errors", response_model=List[ErrorLogRead])
    async def admin_errors(limit: int = Query(50, ge=1, le=500)):
        async with app.state.session_factory() as db:
            result = await db.execute(select(ErrorLog).order_by(ErrorLog.id.desc()).limit(limit))
            return result.scalars().all()

    @app.exception_handler(CustomException)
    async def custom_exception_handler(request: Request, exc: CustomException):
        dev_message = redact_secrets(exc.dev_message)
        logger.error(f"[{exc.code}] {dev_message} | {request.url}")
        stack = redact_secrets(''.join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
        await record_error(exc.code, exc.message, dev_message, str(request.url), stack)
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict()
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(p) for p in err.get("loc", ()) if p != "body") or "body",
                "message": err.get("msg", "Invalid value"),
            }
            for err in exc.errors()
        ]
        return await custom_exception_handler(request, SubmissionValidationError(errors))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc} | {request.url}")
        stack = redact_secrets(''.join(traceback.format_exception(type(exc), exc, exc.__traceback__)))
        await record_error("INTERNAL_ERROR", "Internal server error", redact_secrets(str(exc)), str(request.url), stack)
        return JSONResponse(
            status_code=500,
            content={"code": "INTERNAL_ERROR", "message": "Internal server error"}
        )

    return app
