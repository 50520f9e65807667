"""
Global Model Registry
---------------------
Append-only, versioned store of aggregated models per course. Readers always
get the highest version.

Version assignment is serialised per course in two layers:
  - an asyncio.Lock per course_id covers publishes inside this process
  - the (course_id, version) unique constraint covers other processes; a
    losing insert is rolled back and retried with a fresh max(version)
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import VersionConflictError
from app.models.fl_global_model import FLGlobalModel
from app.models.fl_model_update import utcnow

logger = logging.getLogger(__name__)

# only courses with a publish in flight hold an entry
_course_locks: Dict[str, asyncio.Lock] = {}
_lock_users: Dict[str, int] = {}


@asynccontextmanager
async def _course_lock(course_id: str) -> AsyncIterator[None]:
    lock = _course_locks.setdefault(course_id, asyncio.Lock())
    _lock_users[course_id] = _lock_users.get(course_id, 0) + 1
    try:
        async with lock:
            yield
    finally:
        _lock_users[course_id] -= 1
        if not _lock_users[course_id]:
            del _lock_users[course_id]
            del _course_locks[course_id]


async def current_version(session: AsyncSession, course_id: str) -> int:
    stmt = select(func.max(FLGlobalModel.version)).where(
        FLGlobalModel.course_id == course_id
    )
    res = await session.execute(stmt)
    return res.scalar() or 0


async def publish(
    session: AsyncSession,
    course_id: str,
    weights: List[List[float]],
    biases: List[float],
    num_contributors: int,
    avg_accuracy: float,
    max_retries: Optional[int] = None
) -> FLGlobalModel:
    attempts = settings.FL_PUBLISH_MAX_RETRIES if max_retries is None else max_retries
    if attempts < 1:
        raise ValueError("max_retries must be at least 1")

    async with _course_lock(course_id):
        for attempt in range(1, attempts + 1):
            version = await current_version(session, course_id) + 1
            model = FLGlobalModel(
                course_id=course_id,
                version=version,
                weights=weights,
                biases=biases,
                num_contributors=num_contributors,
                avg_accuracy=avg_accuracy,
                deployed_at=utcnow()
            )
            session.add(model)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                logger.warning(
                    "Version %s for course %s already claimed (attempt %s/%s)",
                    version, course_id, attempt, attempts
                )
                continue

            await session.refresh(model)
            logger.info(
                "Published global model v%s for course %s from %s contributors",
                model.version, course_id, num_contributors
            )
            return model

    raise VersionConflictError(
        f"could not claim a new version for course {course_id} after {attempts} attempts"
    )


async def latest(session: AsyncSession, course_id: str) -> Optional[FLGlobalModel]:
    stmt = (
        select(FLGlobalModel)
        .where(FLGlobalModel.course_id == course_id)
        .order_by(FLGlobalModel.version.desc())
        .limit(1)
    )
    res = await session.execute(stmt)
    return res.scalars().first()


async def list_versions(
    session: AsyncSession,
    course_id: str,
    limit: int = 20
) -> List[FLGlobalModel]:
    stmt = (
        select(FLGlobalModel)
        .where(FLGlobalModel.course_id == course_id)
        .order_by(FLGlobalModel.version.desc())
        .limit(limit)
    )
    res = await session.execute(stmt)
    return list(res.scalars().all())
