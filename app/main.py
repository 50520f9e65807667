import logging
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings
from app.core.logging import configure_logging
from app.core.exceptions import register_exception_handlers
from app.core.database import dispose_engine, init_db
from app.middleware import CorrelationIdMiddleware

configure_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.APP_NAME)

# Middleware: correlation id
app.add_middleware(CorrelationIdMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

# Route imports
from app.api.health import router as health_router
from app.api.v1 import fl as v1_fl

# Register routers
app.include_router(health_router, prefix="/api", tags=["health"])

# v1 API routes
app.include_router(v1_fl.router, prefix="/api/v1", tags=["federated-learning"])


# Exception handlers
register_exception_handlers(app)


@app.on_event("startup")
async def on_startup():
    logger.info("Starting app", extra={"app": settings.APP_NAME})

    if settings.CREATE_TABLES_ON_START:
        logger.info("CREATE_TABLES_ON_START enabled: creating tables")
        await init_db()


@app.on_event("shutdown")
async def on_shutdown():
    logger.info("Shutting down")
    await dispose_engine()
