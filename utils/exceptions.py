from typing import Dict, List, Optional
from fastapi import HTTPException


class CustomException(HTTPException):
    def __init__(self, code: str, message: str, dev_message: str = "", status_code: int = 400, detail: str = ""):
        super().__init__(status_code=status_code, detail=message)
        self.code = code
        self.message = message
        self.dev_message = dev_message
        self.detail = detail

    def to_dict(self):
        return {
            "code": self.code,
            "message": self.message,
            "detail": self.detail,
            "dev_message": self.dev_message
        }


class SubmissionValidationError(CustomException):
    def __init__(self, errors: List[Dict[str, str]]):
        super().__init__(
            code="VALIDATION_FAILED",
            message="Validation failed",
            dev_message="; ".join(f"{e['field']}: {e['message']}" for e in errors),
            status_code=400,
        )
        self.errors = errors

    def to_dict(self):
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class ChainNameConflictError(CustomException):
    def __init__(self, chain_name: str):
        super().__init__(
            code="CHAIN_NAME_CONFLICT",
            message="Chain name already exists",
            dev_message=f"chain '{chain_name}' has an active or completed deployment",
            status_code=409,
            detail="Please choose a different chain name",
        )


class DeploymentNotFoundError(CustomException):
    def __init__(self, deployment_id: str):
        super().__init__(
            code="DEPLOYMENT_NOT_FOUND",
            message="Deployment not found",
            dev_message=f"no deployment with id {deployment_id}",
            status_code=404,
            detail=deployment_id,
        )


class DeploymentNotCancellableError(CustomException):
    def __init__(self, deployment_id: str, status: str):
        super().__init__(
            code="DEPLOYMENT_NOT_CANCELLABLE",
            message="Deployment cannot be cancelled",
            dev_message=f"deployment {deployment_id} is {status} and has no running workflow",
            status_code=409,
            detail=status,
        )


class IllegalTransitionError(Exception):
    """Status write rejected by the transition table."""

    def __init__(self, deployment_id: str, current: str, new: str, reason: str = ""):
        self.deployment_id = deployment_id
        self.current = current
        self.new = new
        message = f"Illegal transition {current} -> {new} for deployment {deployment_id}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


# 배포 단계 오류 (모두 해당 배포에 대해 terminal)
class DeploymentError(Exception):
    pass


class SessionConnectionError(DeploymentError):
    pass


class DependencyInstallError(DeploymentError):
    def __init__(self, dependency: str, reason: str):
        self.dependency = dependency
        self.reason = reason
        super().__init__(f"Dependency installation failed: {dependency}: {reason}")


class CommandExecutionError(DeploymentError):
    def __init__(self, step: str, stderr: str, exit_code: Optional[int] = None):
        self.step = step
        self.stderr = stderr
        self.exit_code = exit_code
        super().__init__(f"{step} command failed (exit {exit_code}): {stderr}")


class VerificationError(DeploymentError):
    pass


class PhaseTimeoutError(DeploymentError):
    def __init__(self, step: str, seconds: float):
        self.step = step
        self.seconds = seconds
        super().__init__(f"{step} phase timed out after {seconds:g} seconds")


class DeploymentCancelled(DeploymentError):
    def __init__(self, message: str = "Deployment cancelled"):
        super().__init__(message)
