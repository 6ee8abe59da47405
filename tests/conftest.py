import os
import sys
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
import tempfile
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from core.config import Settings
from deployment_registry import DeploymentRegistry
from models import Base


# 테스트마다 임시 SQLite 파일 사용
@pytest.fixture
def temp_db_url():
    db_fd, db_path = tempfile.mkstemp(suffix=".sqlite3")
    os.close(db_fd)
    yield f"sqlite+aiosqlite:///{db_path}"
    os.remove(db_path)


@pytest_asyncio.fixture
async def session_factory(temp_db_url):
    engine = create_async_engine(temp_db_url, future=True, connect_args={"check_same_thread": False})
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def registry(session_factory):
    return DeploymentRegistry(session_factory)


@pytest.fixture
def fast_settings():
    return Settings(
        session_backend="fake",
        settle_seconds=0,
        verify_attempts=3,
        verify_interval=0,
        phase_timeout=5,
    )
