import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Awaitable, List, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ShapeMismatchError, StorageError
from app.models.fl_global_model import FLGlobalModel
from app.models.fl_model_update import FLModelUpdate
from app.services import fl_registry, fl_update_store
from app.services.fl_update_store import validate_update
from app.services.fl_aggregation import federated_average
from app.services.fl_privacy import inject_noise
from app.services.fl_trigger import AggregationState, should_aggregate

logger = logging.getLogger(__name__)

T = TypeVar("T")

# ============================================================
# Utils
# ============================================================

async def _storage_call(coro: Awaitable[T], what: str, timeout: Optional[float] = None) -> T:
    """Await a store/registry call, turning I/O failures into StorageError."""
    try:
        if timeout is None:
            return await coro
        return await asyncio.wait_for(coro, timeout=timeout)
    except asyncio.TimeoutError as exc:
        logger.warning("%s timed out after %ss", what, timeout)
        raise StorageError(f"{what} timed out") from exc
    except SQLAlchemyError as exc:
        logger.exception("%s failed", what)
        raise StorageError(f"{what} failed") from exc

# ============================================================
# Coordinator
# ============================================================

@dataclass
class SubmissionResult:
    accepted: bool
    aggregated: bool
    new_version: Optional[FLGlobalModel] = None
    aggregation_error: Optional[str] = None


async def handle_submission(
    session: AsyncSession,
    update: FLModelUpdate,
    min_batch_size: Optional[int] = None,
    window: Optional[timedelta] = None,
    max_batch_size: Optional[int] = None,
    server_epsilon: Optional[float] = None
) -> SubmissionResult:
    if min_batch_size is None:
        min_batch_size = settings.FL_MIN_BATCH_SIZE
    if window is None:
        window = timedelta(seconds=settings.FL_WINDOW_SECONDS)
    if max_batch_size is None:
        max_batch_size = settings.FL_MAX_BATCH_SIZE
    if server_epsilon is None:
        server_epsilon = settings.FL_SERVER_EPSILON

    # reject before any I/O; submit re-checks for direct callers
    validate_update(update)
    course_id = update.course_id

    # 1. Store (user facing, short timeout)
    async def _store() -> FLModelUpdate:
        update.training_round = await fl_registry.current_version(session, course_id) + 1
        return await fl_update_store.submit(session, update)

    await _storage_call(_store(), "storing update", settings.FL_REQUEST_TIMEOUT_SECONDS)

    # 2. Trigger check on the recent window
    batch = await _storage_call(
        fl_update_store.recent_updates(session, course_id, window, max_batch_size),
        "fetching recent updates"
    )
    if not should_aggregate(batch, min_batch_size):
        logger.debug(
            "course=%s state=%s (%s/%s updates)",
            course_id, AggregationState.AWAITING_BATCH.value, len(batch), min_batch_size
        )
        return SubmissionResult(accepted=True, aggregated=False)

    # 3. FedAvg over the batch in submission order
    logger.info(
        "course=%s state=%s batch=%s",
        course_id, AggregationState.AGGREGATING.value, len(batch)
    )
    ordered = list(reversed(batch))
    try:
        result = federated_average(ordered)
    except ShapeMismatchError as exc:
        logger.error("Aggregation for course %s aborted: %s", course_id, exc)
        return SubmissionResult(accepted=True, aggregated=False, aggregation_error=str(exc))

    # 4. Server-side noise, then publish
    noisy_weights, noisy_biases = inject_noise(result.weights, result.biases, server_epsilon)

    model = await _storage_call(
        fl_registry.publish(
            session,
            course_id=course_id,
            weights=noisy_weights,
            biases=noisy_biases,
            num_contributors=result.num_updates,
            avg_accuracy=result.avg_accuracy,
        ),
        "publishing global model"
    )
    logger.info(
        "course=%s state=%s version=%s",
        course_id, AggregationState.PUBLISHED.value, model.version
    )
    return SubmissionResult(accepted=True, aggregated=True, new_version=model)


async def handle_model_request(
    session: AsyncSession,
    course_id: str
) -> Optional[FLGlobalModel]:
    return await _storage_call(
        fl_registry.latest(session, course_id),
        "reading global model",
        settings.FL_REQUEST_TIMEOUT_SECONDS
    )


async def model_history(
    session: AsyncSession,
    course_id: str,
    limit: int = 20
) -> List[FLGlobalModel]:
    return await _storage_call(
        fl_registry.list_versions(session, course_id, limit),
        "listing global models",
        settings.FL_REQUEST_TIMEOUT_SECONDS
    )
