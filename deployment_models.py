from enum import Enum
from typing import Dict, FrozenSet, Tuple
from pydantic import BaseModel, Field, StrictStr


class DeploymentStatus(str, Enum):
    QUEUED = "QUEUED"
    CONNECTING = "CONNECTING"
    INSTALLING = "INSTALLING"
    SCAFFOLDING = "SCAFFOLDING"
    BUILDING = "BUILDING"
    STARTING = "STARTING"
    VERIFYING = "VERIFYING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


FORWARD_ORDER: Tuple[DeploymentStatus, ...] = (
    DeploymentStatus.QUEUED,
    DeploymentStatus.CONNECTING,
    DeploymentStatus.INSTALLING,
    DeploymentStatus.SCAFFOLDING,
    DeploymentStatus.BUILDING,
    DeploymentStatus.STARTING,
    DeploymentStatus.VERIFYING,
    DeploymentStatus.COMPLETED,
)

TERMINAL_STATUSES: FrozenSet[DeploymentStatus] = frozenset(
    {DeploymentStatus.COMPLETED, DeploymentStatus.FAILED}
)
ACTIVE_STATUSES: FrozenSet[DeploymentStatus] = frozenset(
    s for s in FORWARD_ORDER if s not in TERMINAL_STATUSES
)
# 같은 chain_name 재배포를 막는 상태 (FAILED만 재사용 가능)
CONFLICTING_STATUSES: FrozenSet[DeploymentStatus] = frozenset(
    s for s in DeploymentStatus if s is not DeploymentStatus.FAILED
)

_NEXT: Dict[DeploymentStatus, DeploymentStatus] = {
    current: nxt for current, nxt in zip(FORWARD_ORDER, FORWARD_ORDER[1:])
}


def can_transition(current: DeploymentStatus, new: DeploymentStatus) -> bool:
    """Check a status write against the fixed transition table.

    Allowed: the next status in FORWARD_ORDER, the same status again (message
    update only) or FAILED, all from a non-terminal status. Terminal records
    never change.
    """
    current = DeploymentStatus(current)
    new = DeploymentStatus(new)
    if current in TERMINAL_STATUSES:
        return False
    if new is current or new is DeploymentStatus.FAILED:
        return True
    return _NEXT.get(current) is new


class ConnectionSpec(BaseModel):
    host: StrictStr
    username: StrictStr
    port: int = 22
    private_key: str = Field(repr=False)
    connect_timeout: float = 30.0

    def __str__(self) -> str:
        return f"{self.username}@{self.host}:{self.port}"


class CommandResult(BaseModel):
    exit_code: int
    stdout: str = ""
    stderr: str = ""
    duration: float = 0.0  # seconds

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class Endpoints(BaseModel):
    rpc: str
    api: str

    @classmethod
    def for_host(cls, host: str, rpc_port: int = 26657, api_port: int = 1317) -> "Endpoints":
        return cls(rpc=f"http://{host}:{rpc_port}", api=f"http://{host}:{api_port}")


class StepTag(str, Enum):
    CONNECT = "connect"
    INSTALL = "install"
    SCAFFOLD = "scaffold"
    BUILD = "build"
    START = "start"
    VERIFY = "verify"
    COMPLETE = "complete"
    FAILED = "failed"
    CANCEL = "cancel"
