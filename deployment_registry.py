import asyncio
import logging
import uuid
import weakref
from typing import Dict, List, Optional
from sqlalchemy import case, func
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.future import select
from models.deployment import Deployment
from models.deployment_log import DeploymentLog
from deployment_models import (
    ACTIVE_STATUSES,
    CONFLICTING_STATUSES,
    DeploymentStatus,
    Endpoints,
    can_transition,
)
from utils.exceptions import IllegalTransitionError
from utils.security import clip

logger = logging.getLogger(__name__)


class DeploymentRegistry:
    """Record Store for deployments and their log trail.

    Every call opens its own short-lived session so the registry can be shared
    between request handlers and background workflows. Writes for one
    deployment id are serialized with a per-id lock.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory
        # 쓰기 중인 id 의 lock 만 유지됨
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, deployment_id: str) -> asyncio.Lock:
        lock = self._locks.get(deployment_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[deployment_id] = lock
        return lock

    async def create(
        self,
        chain_name: str,
        host: str,
        ssh_user: str,
        contact_email: str,
        ssh_port: int = 22,
    ) -> Deployment:
        deployment = Deployment(
            id=str(uuid.uuid4()),
            chain_name=chain_name,
            host=host,
            ssh_user=ssh_user,
            ssh_port=ssh_port,
            contact_email=contact_email,
            status=DeploymentStatus.QUEUED.value,
        )
        async with self.session_factory() as db:
            db.add(deployment)
            await db.commit()
            await db.refresh(deployment)
        logger.info(f"Created deployment {deployment.id} for chain '{chain_name}'")
        return deployment

    async def get_by_id(self, deployment_id: str) -> Optional[Deployment]:
        async with self.session_factory() as db:
            return await db.get(Deployment, deployment_id)

    async def update_status(
        self,
        deployment_id: str,
        status: DeploymentStatus,
        message: Optional[str] = None,
        endpoints: Optional[Endpoints] = None,
    ) -> Deployment:
        status = DeploymentStatus(status)
        if (status is DeploymentStatus.COMPLETED) != (endpoints is not None):
            raise IllegalTransitionError(
                deployment_id, "?", status.value,
                "endpoints are set if and only if the deployment is COMPLETED",
            )
        async with self._lock_for(deployment_id):
            async with self.session_factory() as db:
                deployment = await db.get(Deployment, deployment_id)
                if deployment is None:
                    raise KeyError(f"Deployment {deployment_id} not found")
                if not can_transition(deployment.status, status):
                    raise IllegalTransitionError(deployment_id, deployment.status, status.value)
                deployment.status = status.value
                deployment.error_message = clip(message)
                if endpoints is not None:
                    deployment.rpc_endpoint = endpoints.rpc
                    deployment.api_endpoint = endpoints.api
                await db.commit()
                await db.refresh(deployment)
        logger.info(f"Updated deployment {deployment_id}: {status.value} - {clip(message, 200)}")
        return deployment

    async def append_log(
        self,
        deployment_id: str,
        step: str,
        command: Optional[str] = None,
        output: Optional[str] = None,
        error: Optional[str] = None,
    ) -> DeploymentLog:
        entry = DeploymentLog(
            deployment_id=deployment_id,
            step=getattr(step, "value", step),
            command=clip(command),
            output=clip(output),
            error=clip(error),
        )
        async with self._lock_for(deployment_id):
            async with self.session_factory() as db:
                db.add(entry)
                await db.commit()
                await db.refresh(entry)
        return entry

    async def get_logs(self, deployment_id: str) -> List[DeploymentLog]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(DeploymentLog)
                .where(DeploymentLog.deployment_id == deployment_id)
                .order_by(DeploymentLog.id)
            )
            return list(result.scalars().all())

    async def list(self, limit: int = 10, offset: int = 0) -> List[Deployment]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(Deployment)
                .order_by(Deployment.created_at.desc(), Deployment.id)
                .limit(limit)
                .offset(offset)
            )
            return list(result.scalars().all())

    async def count(self) -> int:
        async with self.session_factory() as db:
            result = await db.execute(select(func.count(Deployment.id)))
            return result.scalar_one()

    async def find_conflicting(self, chain_name: str) -> Optional[Deployment]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(Deployment).where(
                    Deployment.chain_name == chain_name,
                    Deployment.status.in_([s.value for s in CONFLICTING_STATUSES]),
                )
            )
            return result.scalars().first()

    async def stats(self) -> Dict[str, int]:
        async with self.session_factory() as db:
            result = await db.execute(
                select(
                    func.count(Deployment.id),
                    func.count(case((Deployment.status == DeploymentStatus.COMPLETED.value, 1))),
                    func.count(case((Deployment.status == DeploymentStatus.FAILED.value, 1))),
                    func.count(case((Deployment.status.in_([s.value for s in ACTIVE_STATUSES]), 1))),
                )
            )
            total, successful, failed, pending = result.one()
        return {
            "total_deployments": total,
            "successful_deployments": successful,
            "failed_deployments": failed,
            "pending_deployments": pending,
        }
