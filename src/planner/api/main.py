"""API service entry point.

FastAPI application factory with all routers and middleware.
"""

import sys
import time
import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import NoReturn

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from planner.common.config import get_settings
from planner.common.database import close_database, init_database
from planner.common.exceptions import PlannerError, field_issues
from planner.common.logging import bind_context, clear_context, get_logger, setup_logging
from planner.common.metrics import API_REQUEST_DURATION, API_REQUESTS, set_app_info

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler.

    Initializes and cleans up resources.
    """
    settings = get_settings()

    setup_logging(settings.logging)
    set_app_info(
        version=settings.app_version,
        environment=settings.environment,
    )

    logger.info(
        "Starting Planner API",
        version=settings.app_version,
        environment=settings.environment,
    )

    await init_database(settings)
    logger.info("Database initialized")

    yield

    logger.info("Shutting down Planner API")
    await close_database()
    logger.info("Database closed")


def create_app() -> FastAPI:
    """Create FastAPI application instance."""
    settings = get_settings()

    app = FastAPI(
        title="Planner API",
        description="Workspace, task, goal and habit planner REST API",
        version=settings.app_version,
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        openapi_url="/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = str(uuid.uuid4())[:8]
        bind_context(request_id=request_id)

        start = time.perf_counter()

        try:
            response = await call_next(request)
            duration = time.perf_counter() - start

            API_REQUESTS.labels(
                method=request.method,
                endpoint=request.url.path,
                status=response.status_code,
            ).inc()
            API_REQUEST_DURATION.labels(
                method=request.method,
                endpoint=request.url.path,
            ).observe(duration)

            logger.info(
                "Request completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2),
            )

            return response

        except Exception as e:
            duration = time.perf_counter() - start
            logger.error(
                "Request failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
                duration_ms=round(duration * 1000, 2),
            )
            raise
        finally:
            clear_context()

    @app.exception_handler(PlannerError)
    async def planner_exception_handler(
        request: Request,
        exc: PlannerError,
    ) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            "Application error",
            error_code=exc.error_code,
            message=exc.message,
            cause=str(exc.cause) if exc.cause else None,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
            headers=exc.headers,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request,
        exc: StarletteHTTPException,
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": str(exc.detail), "code": "HTTP_ERROR"},
            headers=exc.headers,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        details = field_issues(exc.errors(), skip_prefix="body")
        logger.warning("Validation error", errors=details)
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "error": "Request validation failed",
                "code": "VALIDATION_ERROR",
                "details": details,
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        logger.error(
            "Unhandled error",
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "An internal error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    from planner.api.routers import admin, backup, templates

    app.include_router(admin.router)
    app.include_router(backup.router, prefix="/api/v1")
    app.include_router(templates.router, prefix="/api/v1")

    @app.get("/")
    async def root() -> dict:
        return {
            "name": "Planner API",
            "version": settings.app_version,
            "docs": "/docs" if not settings.is_production else None,
        }

    return app


# Create app instance for uvicorn
app = create_app()


def run() -> NoReturn:
    """Run the API server."""
    import uvicorn

    settings = get_settings()

    try:
        uvicorn.run(
            "planner.api.main:app",
            host=settings.api.host,
            port=settings.api.port,
            workers=settings.api.workers if not settings.api.reload else 1,
            reload=settings.api.reload,
            log_level="info",
            access_log=False,  # We use our own logging
        )
        sys.exit(0)
    except KeyboardInterrupt:
        sys.exit(0)
    except Exception as e:
        logger.error("API failed to start", error=str(e))
        sys.exit(1)


if __name__ == "__main__":
    run()
