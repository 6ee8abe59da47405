import re
from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field
from utils.security import validate_chain_name, validate_private_key

IPV4_PATTERN = re.compile(
    r"^(?:(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)\.){3}(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)$"
)
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class DeploymentCreate(BaseModel):
    chain_name: Optional[str] = None
    vps_ip: Optional[str] = None
    ssh_user: Optional[str] = None
    ssh_port: Optional[int] = 22
    ssh_key: Optional[str] = Field(default=None, repr=False)
    contact_email: Optional[str] = None

    def validation_errors(self) -> List[Dict[str, str]]:
        """Collect every field error instead of stopping at the first one."""
        errors = []

        def add(field: str, message: str):
            errors.append({"field": field, "message": message})

        try:
            validate_chain_name(self.chain_name)
        except ValueError as e:
            add("chain_name", str(e))

        if not self.vps_ip:
            add("vps_ip", "VPS IP address is required")
        elif not IPV4_PATTERN.match(self.vps_ip):
            add("vps_ip", "Invalid IP address format")

        if not self.contact_email:
            add("contact_email", "Contact email is required")
        elif not EMAIL_PATTERN.match(self.contact_email):
            add("contact_email", "Invalid email format")

        try:
            validate_private_key(self.ssh_key)
        except ValueError as e:
            add("ssh_key", str(e))

        if not self.ssh_user or not self.ssh_user.strip():
            add("ssh_user", "SSH username is required")

        port = 22 if self.ssh_port is None else self.ssh_port
        if port < 1 or port > 65535:
            add("ssh_port", "SSH port must be between 1 and 65535")
        return errors


class DeploymentSubmitted(BaseModel):
    deployment_id: str
    status: str
    message: str
    estimated_time: str
    status_endpoint: str


class DeploymentStatusResponse(BaseModel):
    deployment_id: str
    chain_name: str
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    message: Optional[str] = None
    rpc_endpoint: Optional[str] = None
    api_endpoint: Optional[str] = None
    error_message: Optional[str] = None
    estimated_remaining: Optional[str] = None
    next_steps: Optional[List[str]] = None


class DeploymentLogRead(BaseModel):
    id: int
    step: str
    command: Optional[str] = None
    output: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class DeploymentLogsResponse(BaseModel):
    deployment_id: str
    status: str
    logs: List[DeploymentLogRead]
    has_more: bool = False


class DeploymentSummary(BaseModel):
    id: str
    chain_name: str
    host: str
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class Pagination(BaseModel):
    total: int
    limit: int
    offset: int
    has_more: bool


class DeploymentListResponse(BaseModel):
    deployments: List[DeploymentSummary]
    pagination: Pagination


class AdminStats(BaseModel):
    total_deployments: int
    successful_deployments: int
    failed_deployments: int
    pending_deployments: int
    success_rate: str


class CancelResponse(BaseModel):
    deployment_id: str
    status: str
    message: str
