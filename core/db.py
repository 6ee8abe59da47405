from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from core.config import settings

DATABASE_URL = settings.database_url

# 싱글턴 엔진/세션
engine = None
SessionLocal = None


def _connect_args(db_url: str) -> dict:
    if db_url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


def init_engine(db_url=DATABASE_URL):
    global engine, SessionLocal
    if engine is None:
        engine = create_async_engine(
            db_url,
            future=True,
            connect_args=_connect_args(db_url)
        )
        SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    return engine


async def dispose_engine():
    global engine, SessionLocal
    if engine is not None:
        await engine.dispose()
    engine = None
    SessionLocal = None


async def create_tables():
    from models import Base
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


# SQLAlchemy 동기 URL (Alembic용)
def get_sync_db_url(db_url=DATABASE_URL):
    return db_url.replace("+aiosqlite", "") if "+aiosqlite" in db_url else db_url


def get_engine():
    if engine is None:
        init_engine()
    return engine


def get_sessionmaker():
    get_engine()
    return SessionLocal
