from typing import Optional, List, Literal
from datetime import datetime
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from app.models.fl_global_model import FLGlobalModel


class CamelModel(BaseModel):
    # camelCase on the wire, snake_case accepted too
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
    )


# -------------------------
# Updates
# -------------------------
class ModelUpdateIn(CamelModel):
    student_id: str
    weights: List[List[float]]
    biases: List[float]
    accuracy: float
    privacy_budget: float = 0.0


class FLActionRequest(CamelModel):
    action: Literal["submit_update", "get_global_model"]
    course_id: str
    model_update: Optional[ModelUpdateIn] = None


# -------------------------
# Global Model
# -------------------------
class GlobalModelRead(CamelModel):
    version: int
    weights: List[List[float]]
    biases: List[float]
    num_contributors: int
    avg_accuracy: float
    deployed_at: datetime

    @classmethod
    def from_record(cls, model: FLGlobalModel) -> "GlobalModelRead":
        return cls(
            version=model.version,
            weights=model.weights,
            biases=model.biases,
            num_contributors=model.num_contributors,
            avg_accuracy=model.avg_accuracy,
            deployed_at=model.deployed_at,
        )


# -------------------------
# Responses
# -------------------------
class SubmitUpdateResponse(CamelModel):
    success: bool = True
    message: str = "Model update received"
    aggregated: bool
    global_model: Optional[GlobalModelRead] = None
    aggregation_error: Optional[str] = None


class GlobalModelResponse(CamelModel):
    success: bool = True
    model: Optional[GlobalModelRead] = None
    message: Optional[str] = None
