from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError
from makercost.core.config import settings
from makercost.core.database import init_models
from makercost.core.middleware import exception_handler, register_exception_handlers
from makercost.core.workspace import Workspace
from makercost.adapters.sqlalchemy_adapter import SQLAlchemyDatabaseAdapter
from makercost.api.v1.api import api_router
import logging

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if app.state.workspace is None:
        app.state.workspace = Workspace()
    workspace = app.state.workspace

    if isinstance(workspace.adapter, SQLAlchemyDatabaseAdapter):
        try:
            await init_models()
        except (SQLAlchemyError, OSError) as e:
            # Local stores keep working; remote calls will report the failure
            logger.error(f"Database unavailable at startup: {e}")

    yield

    await workspace.wait_idle()
    workspace.close()


def create_app(workspace: Optional[Workspace] = None) -> FastAPI:
    app = FastAPI(
        title="MakerCost API",
        description="Pricing, quotes and cloud sync for makers",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )

    # Store environment and workspace in app state
    app.state.ENVIRONMENT = settings.ENVIRONMENT
    app.state.workspace = workspace

    # Add exception handler middleware
    app.middleware("http")(exception_handler)
    register_exception_handlers(app)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.error(f"Validation error on {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=422,
            content={"detail": jsonable_errors(exc)}
        )

    # Include API router
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @app.get("/")
    async def root():
        return {"message": "MakerCost API", "version": "1.0.0"}

    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app


def jsonable_errors(exc: RequestValidationError):
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]


app = create_app()
