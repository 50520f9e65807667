from typing import Optional, List
from datetime import datetime
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, JSON, UniqueConstraint

from app.models.fl_model_update import UTCTimestamp, utcnow


class FLGlobalModel(SQLModel, table=True):
    __tablename__ = "fl_global_model"
    __table_args__ = (
        UniqueConstraint("course_id", "version", name="uq_fl_global_model_course_version"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    course_id: str = Field(index=True)
    version: int

    weights: List[List[float]] = Field(sa_column=Column(JSON, nullable=False))
    biases: List[float] = Field(sa_column=Column(JSON, nullable=False))

    num_contributors: int
    avg_accuracy: float

    deployed_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(UTCTimestamp(), nullable=False)
    )
