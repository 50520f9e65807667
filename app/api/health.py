import logging
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_session

logger = logging.getLogger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    status: str = "ok"
    app: str = settings.APP_NAME
    database: bool = True


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(session: AsyncSession = Depends(get_session)):
    """Liveness plus a round trip to the update store / registry database."""
    try:
        await session.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Health check could not reach the database")
        return HealthResponse(status="degraded", database=False)
    return HealthResponse()
