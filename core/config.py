import os
from pydantic import BaseModel
from dotenv import load_dotenv

# .env 파일에서 환경변수 로드
load_dotenv()


class Settings(BaseModel):
    database_url: str = "sqlite+aiosqlite:///./deployments.db"
    session_backend: str = "ssh"  # 'ssh', 'local'
    ssh_connect_timeout: float = 30.0
    command_timeout: float = 1800.0
    phase_timeout: float = 1800.0
    settle_seconds: float = 15.0
    verify_attempts: int = 3
    verify_interval: float = 5.0
    max_concurrent_deployments: int = 8
    rpc_port: int = 26657
    api_port: int = 1317
    log_level: str = "INFO"
    environment: str = "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @classmethod
    def from_env(cls) -> "Settings":
        env = {
            "database_url": os.getenv("DATABASE_URL"),
            "session_backend": os.getenv("SESSION_BACKEND"),
            "ssh_connect_timeout": os.getenv("SSH_CONNECT_TIMEOUT"),
            "command_timeout": os.getenv("COMMAND_TIMEOUT"),
            "phase_timeout": os.getenv("PHASE_TIMEOUT"),
            "settle_seconds": os.getenv("SETTLE_SECONDS"),
            "verify_attempts": os.getenv("VERIFY_ATTEMPTS"),
            "verify_interval": os.getenv("VERIFY_INTERVAL"),
            "max_concurrent_deployments": os.getenv("MAX_CONCURRENT_DEPLOYMENTS"),
            "rpc_port": os.getenv("RPC_PORT"),
            "api_port": os.getenv("API_PORT"),
            "log_level": os.getenv("LOG_LEVEL"),
            "environment": os.getenv("ENVIRONMENT"),
        }
        # 설정되지 않은 값은 기본값 사용
        return cls(**{k: v for k, v in env.items() if v is not None})


settings = Settings.from_env()
