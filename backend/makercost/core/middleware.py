from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
import logging

from makercost.core.exceptions import ConflictError, MakerCostError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


async def exception_handler(request: Request, call_next):
    """Global exception handler"""
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"Unhandled exception: {str(e)}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "Internal server error",
                "detail": str(e) if request.app.state.ENVIRONMENT == "development" else "An error occurred"
            }
        )


async def domain_error_handler(request: Request, exc: MakerCostError):
    """Map domain errors onto HTTP status codes"""
    content = {"detail": exc.message}
    if isinstance(exc, ValidationError):
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
        content["errors"] = exc.errors
    elif isinstance(exc, NotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, ConflictError):
        status_code = status.HTTP_409_CONFLICT
        content["conflicts"] = [
            conflict.model_dump(mode="json") if hasattr(conflict, "model_dump") else conflict
            for conflict in exc.conflicts
        ]
    else:
        status_code = status.HTTP_400_BAD_REQUEST

    logger.warning(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MakerCostError, domain_error_handler)
