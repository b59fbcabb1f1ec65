"""
FastAPI Application — Entry Point

Document ingestion API: upload, background extraction + analysis,
search, download, delete and stats.

Architecture:
  - All routes are versioned under /api/v1/
  - Repository, file store and task publisher are built once in the
    lifespan and injected per request (see api/dependencies.py)
  - Structured JSON error responses on all 4xx/5xx

Middleware stack (innermost → outermost):
  1. Gzip — compress responses > 1 KB
  2. CORS — restrict to configured origins
  3. Request ID + request logging — X-Request-ID on every response
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from docshelf.api.dependencies import Repository
from docshelf.api.v1.documents import router as documents_router
from docshelf.api.v1.stats import router as stats_router
from docshelf.core.config import settings
from docshelf.repository.factory import create_repository
from docshelf.schemas.documents import ErrorDetail, ErrorResponse
from docshelf.services.ingestion import (
    CeleryTaskPublisher,
    InProcessTaskPublisher,
    TaskPublisher,
)
from docshelf.services.processor import DocumentProcessor
from docshelf.storage.factory import get_file_store

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


# ---------------------------------------------------------------------------
# Application lifespan: startup / shutdown hooks
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Run on startup: build the backends selected by settings.
    Run on shutdown: let in-flight processing finish, release connections.
    """
    logger.info(
        "Starting docshelf | env=%s repository=%s storage=%s dispatcher=%s",
        settings.app_env, settings.repository_backend,
        settings.storage_backend, settings.task_dispatcher,
    )

    repository = await create_repository(settings)
    file_store = get_file_store(settings)

    publisher: TaskPublisher
    if settings.task_dispatcher == "celery":
        publisher = CeleryTaskPublisher()
    else:
        publisher = InProcessTaskPublisher(DocumentProcessor(repository, file_store))

    app.state.repository = repository
    app.state.file_store = file_store
    app.state.task_publisher = publisher

    logger.info("Upload limit: %d MB", settings.max_upload_mb)

    yield

    logger.info("Shutting down docshelf")
    await publisher.drain()
    await repository.close()


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app() -> FastAPI:
    app = FastAPI(
        title="Docshelf",
        description=(
            "Document ingestion API. Uploads are stored, then text is extracted "
            "and analyzed in the background for search and categorisation."
        ),
        version="1.0.0",
        docs_url="/api/docs" if not settings.is_production else None,
        redoc_url="/api/redoc" if not settings.is_production else None,
        openapi_url="/api/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    # ----------------------------------------------------------------
    # Middleware (applied in reverse order: last added = outermost)
    # ----------------------------------------------------------------

    # GZip compression for responses > 1 KB
    app.add_middleware(GZipMiddleware, minimum_size=1024)

    allowed_origins = ["*"] if settings.app_env == "development" else []
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID", "X-Document-ID", "Location", "Content-Disposition"],
    )

    # ----------------------------------------------------------------
    # Request ID + structured logging middleware
    # ----------------------------------------------------------------

    @app.middleware("http")
    async def request_id_and_logging(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = request_id

        logger.info(
            "HTTP %s %s %d %.1fms | request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request_id,
        )
        return response

    # ----------------------------------------------------------------
    # Exception handlers: uniform structured error responses
    # ----------------------------------------------------------------

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Convert Pydantic/FastAPI validation errors to structured ErrorResponse."""
        details = [
            ErrorDetail(
                field=" → ".join(str(loc) for loc in err["loc"]),
                message=err["msg"],
                code="VALIDATION_ERROR",
            )
            for err in exc.errors()
        ]
        body = ErrorResponse(
            error_code="VALIDATION_ERROR",
            message="Request validation failed.",
            details=details,
            request_id=request.headers.get("X-Request-ID"),
        )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=body.model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Catch-all for unhandled exceptions — never expose stack traces."""
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        logger.exception(
            "Unhandled exception | path=%s request_id=%s",
            request.url.path, request_id,
        )
        body = ErrorResponse(
            error_code="INTERNAL_ERROR",
            message="An unexpected error occurred.",
            request_id=request_id,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=body.model_dump(mode="json"),
            headers={"X-Request-ID": request_id},
        )

    # ----------------------------------------------------------------
    # Routers
    # ----------------------------------------------------------------

    app.include_router(documents_router, prefix="/api/v1")
    app.include_router(stats_router,     prefix="/api/v1")

    # ----------------------------------------------------------------
    # Health & readiness endpoints (used by load balancer)
    # ----------------------------------------------------------------

    @app.get(
        "/health",
        tags=["Operations"],
        summary="Liveness probe",
        description="Returns 200 if the process is alive. No external checks.",
    )
    async def health() -> dict:
        return {"status": "ok", "service": "docshelf-api"}

    @app.get(
        "/ready",
        tags=["Operations"],
        summary="Readiness probe",
        description="Returns 200 only if the document repository is reachable.",
    )
    async def readiness(repository: Repository) -> JSONResponse:
        try:
            reachable = await repository.ping()
        except Exception as exc:
            logger.warning("Readiness check failed | error=%s", exc)
            reachable = False

        if not reachable:
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "not_ready", "repository": settings.repository_backend},
            )
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"status": "ready", "repository": settings.repository_backend},
        )

    return app


# ---------------------------------------------------------------------------
# Application instance (imported by uvicorn)
# ---------------------------------------------------------------------------

app = create_app()


# ---------------------------------------------------------------------------
# Local development entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "docshelf.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.app_env == "development",
        log_level="debug" if settings.debug else "info",
        access_log=True,
    )
