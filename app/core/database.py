from typing import AsyncGenerator, Dict, Any
from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker

from app.core.config import settings


def _engine_options(url: str) -> Dict[str, Any]:
    if url.startswith("sqlite"):
        # aiosqlite: wait on the file lock instead of failing a concurrent writer
        return {"connect_args": {"timeout": 15}}
    return {"pool_pre_ping": True, "pool_size": 10, "max_overflow": 20}


# Async SQLModel engine + session; one engine serves both the update log and
# the global model registry
engine = create_async_engine(
    settings.DATABASE_URL, echo=False, future=True, **_engine_options(settings.DATABASE_URL)
)
AsyncSessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db() -> None:
    """Create fl_model_update / fl_global_model with metadata.create_all().
    Production schema is managed by Alembic; this is for local dev when
    CREATE_TABLES_ON_START is enabled and for the simulation script.
    """
    import app.models  # noqa: F401  (register tables on the metadata)

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def dispose_engine() -> None:
    await engine.dispose()


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that yields an AsyncSession per request."""
    async with AsyncSessionLocal() as session:
        yield session
