from .base import Base
from .deployment import Deployment
from .deployment_log import DeploymentLog
from .error_log import ErrorLog

__all__ = ["Base", "Deployment", "DeploymentLog", "ErrorLog"]
