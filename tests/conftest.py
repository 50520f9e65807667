import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

import app.models  # noqa: F401  (register tables)
from app.core.database import get_session
from app.main import app as fastapi_app
from app.models.fl_model_update import FLModelUpdate
from app.services import fl_registry

DEFAULT_WEIGHTS = [[0.1, 0.2, 0.3], [0.4, 0.5]]
DEFAULT_BIASES = [0.0, 0.1]


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'fl.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest_asyncio.fixture
async def client(session_factory):
    async def _override_session():
        async with session_factory() as s:
            yield s

    fastapi_app.dependency_overrides[get_session] = _override_session
    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as c:
        yield c
    fastapi_app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def fresh_course_locks():
    # asyncio locks must not leak across per-test event loops
    fl_registry._course_locks.clear()
    fl_registry._lock_users.clear()
    yield
    fl_registry._course_locks.clear()
    fl_registry._lock_users.clear()


@pytest.fixture
def make_update():
    def _make(
        course_id="C1",
        student_id="student-1",
        accuracy=0.8,
        weights=None,
        biases=None,
        privacy_budget_used=0.5,
    ) -> FLModelUpdate:
        return FLModelUpdate(
            course_id=course_id,
            student_id=student_id,
            weights=[list(layer) for layer in DEFAULT_WEIGHTS] if weights is None else weights,
            biases=list(DEFAULT_BIASES) if biases is None else biases,
            accuracy=accuracy,
            privacy_budget_used=privacy_budget_used,
        )

    return _make
