from typing import Optional, List
from datetime import datetime, timezone
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, DateTime, JSON
from sqlalchemy.types import TypeDecorator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCTimestamp(TypeDecorator):
    """Timezone-aware UTC datetimes on every backend.

    SQLite drops the offset on read, so results come back tagged as UTC.
    Naive values are taken to be UTC already.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class FLModelUpdate(SQLModel, table=True):
    """One student's contribution for one training round. Never mutated."""

    __tablename__ = "fl_model_update"

    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: str
    course_id: str = Field(index=True)
    training_round: int = Field(default=1)

    weights: List[List[float]] = Field(sa_column=Column(JSON, nullable=False))
    biases: List[float] = Field(sa_column=Column(JSON, nullable=False))

    accuracy: float
    privacy_budget_used: float = Field(default=0.0)

    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(UTCTimestamp(), nullable=False, index=True)
    )
