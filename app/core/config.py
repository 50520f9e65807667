import os
from pydantic_settings import BaseSettings
from typing import List


class Settings(BaseSettings):
    # App
    APP_NAME: str = "edufed-aggregator"
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    CREATE_TABLES_ON_START: bool = False

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./edufed.db"

    # CORS
    CORS_ORIGINS: List[str] = ["*"]

    # Federated aggregation
    FL_MIN_BATCH_SIZE: int = 10
    FL_MAX_BATCH_SIZE: int = 10
    FL_WINDOW_SECONDS: int = 60 * 60  # 1 hour
    FL_CLIENT_EPSILON: float = 0.5
    FL_SERVER_EPSILON: float = 0.1
    FL_PUBLISH_MAX_RETRIES: int = 5
    FL_REQUEST_TIMEOUT_SECONDS: float = 5.0

    class Config:
        case_sensitive = True
        # Load .env ONLY when not production
        env_file = ".env" if os.getenv("ENVIRONMENT") != "production" else None


settings = Settings()
