# models package for SQLModel models
from .fl_model_update import FLModelUpdate  # noqa: F401  (import for metadata registration)
from .fl_global_model import FLGlobalModel  # noqa: F401
