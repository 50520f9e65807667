from enum import Enum
from typing import Sequence

from app.models.fl_model_update import FLModelUpdate


class AggregationState(str, Enum):
    AWAITING_BATCH = "AWAITING_BATCH"
    AGGREGATING = "AGGREGATING"
    PUBLISHED = "PUBLISHED"


def should_aggregate(batch: Sequence[FLModelUpdate], min_batch_size: int) -> bool:
    """Small batches make individual contributions identifiable from the
    average, so nothing is aggregated below ``min_batch_size``."""
    return len(batch) >= min_batch_size
