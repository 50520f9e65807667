"""
Append-only log of per-student model updates.

Records are validated, written once with a server-assigned timestamp and
never mutated. Duplicate submissions are stored as independent rows.
"""
import logging
import math
from datetime import timedelta
from typing import Any, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import InvalidUpdateError
from app.models.fl_model_update import FLModelUpdate, utcnow

logger = logging.getLogger(__name__)


def is_finite_number(x: Any) -> bool:
    if isinstance(x, bool) or not isinstance(x, (int, float)):
        return False
    return not (math.isnan(x) or math.isinf(x))


def validate_update(update: FLModelUpdate) -> None:
    """Reject malformed updates before anything is stored.

    Each weights entry is one layer flattened to a row of scalars, so a
    layer must be a non-empty flat list of finite numbers.
    """
    if not update.course_id or not update.student_id:
        raise InvalidUpdateError("courseId and studentId are required")

    if not isinstance(update.weights, (list, tuple)) or not update.weights:
        raise InvalidUpdateError("weights must be a non-empty list of layers")
    for i, layer in enumerate(update.weights):
        if not isinstance(layer, (list, tuple)) or not layer:
            raise InvalidUpdateError(f"weights layer {i} must be a non-empty list of numbers")
        if not all(is_finite_number(v) for v in layer):
            raise InvalidUpdateError(f"weights layer {i} must contain only finite numbers")

    if not isinstance(update.biases, (list, tuple)) or not update.biases:
        raise InvalidUpdateError("biases must be a non-empty list of numbers")
    if not all(is_finite_number(b) for b in update.biases):
        raise InvalidUpdateError("biases must contain only finite numbers")

    if not is_finite_number(update.accuracy) or not 0.0 <= update.accuracy <= 1.0:
        raise InvalidUpdateError("accuracy must be a number in [0, 1]")
    if not is_finite_number(update.privacy_budget_used) or update.privacy_budget_used < 0:
        raise InvalidUpdateError("privacyBudget must be a non-negative number")


async def submit(session: AsyncSession, update: FLModelUpdate) -> FLModelUpdate:
    validate_update(update)
    update.created_at = utcnow()
    session.add(update)
    await session.commit()
    await session.refresh(update)
    logger.debug(
        "Stored update id=%s course=%s round=%s",
        update.id, update.course_id, update.training_round,
    )
    return update


async def recent_updates(
    session: AsyncSession,
    course_id: str,
    window: timedelta,
    max_count: int
) -> List[FLModelUpdate]:
    """Return at most ``max_count`` updates for the course created within
    ``window`` of now, newest first. Empty when there are none."""
    if max_count <= 0:
        return []

    cutoff = utcnow() - window
    stmt = (
        select(FLModelUpdate)
        .where(
            FLModelUpdate.course_id == course_id,
            FLModelUpdate.created_at >= cutoff
        )
        .order_by(FLModelUpdate.created_at.desc(), FLModelUpdate.id.desc())
        .limit(max_count)
    )
    res = await session.execute(stmt)
    return list(res.scalars().all())
