import logging
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class FederatedLearningError(Exception):
    """Base class for errors raised by the aggregation pipeline."""


class InvalidUpdateError(FederatedLearningError):
    """A submitted update is malformed and was rejected before storage."""


class ShapeMismatchError(FederatedLearningError):
    """Updates in one aggregation batch do not share the same topology."""


class StorageError(FederatedLearningError):
    """The update store or model registry could not complete a request."""


class VersionConflictError(StorageError):
    """A global model version could not be claimed after retrying."""


def register_exception_handlers(app):
    @app.exception_handler(InvalidUpdateError)
    async def invalid_update_handler(request: Request, exc: InvalidUpdateError):
        logger.info("Rejected model update", extra={"reason": str(exc)})
        return JSONResponse({"success": False, "error": str(exc)}, status_code=400)

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.warning("Storage failure: %s", exc)
        return JSONResponse({"success": False, "error": str(exc)}, status_code=503)

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        logger.info("HTTP exception", extra={"status_code": exc.status_code})
        return JSONResponse({"success": False, "error": exc.detail}, status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.info("Validation error", extra={"errors": exc.errors()})
        return JSONResponse(
            {"success": False, "error": "Validation error", "details": jsonable_encoder(exc.errors(), custom_encoder={Exception: str})},
            status_code=422,
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return JSONResponse({"success": False, "error": "Internal server error"}, status_code=500)
