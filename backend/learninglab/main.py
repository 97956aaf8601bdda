"""
FastAPI Application — Entry Point

Learning Lab document service

Architecture:
  - All routes are versioned under /api/v1/
  - Uploads are stored in S3 and handed to Celery workers by document id
  - /generate is guarded by a shared secret (ACCESS_TOKEN_SECRET)
  - Structured JSON error responses on all 4xx/5xx

Middleware stack (innermost → outermost):
  1. CORS — restrict to configured origins
  2. Gzip — compress responses > 1 KB
  3. Request ID + logging — X-Request-ID header and one log line per request
"""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from learninglab.api.v1.documents import router as documents_router
from learninglab.api.v1.generate import router as generate_router
from learninglab.core.config import settings
from learninglab.core.exceptions import ArtifactNotFound, InvalidStatusTransition
from learninglab.db.session import check_db_health
from learninglab.schemas.documents import ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)


# ---------------------------------------------------------------------------
# Application lifespan — startup / shutdown hooks
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: log config summary and probe the database.
    The API still starts when the probe fails; /ready reports it.
    """
    logger.info(
        "Starting Learning Lab | env=%s vector_store=%s bucket=%s",
        settings.app_env, settings.vector_store_backend, settings.s3_bucket,
    )

    db_health = await check_db_health()
    if db_health["status"] != "ok":
        logger.error("Database health check failed at startup: %s", db_health)
    else:
        logger.info("Database: connected")

    yield

    logger.info("Shutting down Learning Lab")
    from learninglab.db.session import engine
    await engine.dispose()


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------

def create_app() -> FastAPI:
    app = FastAPI(
        title="Learning Lab Document Service",
        description=(
            "Document upload, asynchronous text extraction and indexing, "
            "and retrieval-augmented answers over the indexed documents."
        ),
        version="1.0.0",
        docs_url="/api/docs" if not settings.is_production else None,
        redoc_url="/api/redoc" if not settings.is_production else None,
        openapi_url="/api/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    # ----------------------------------------------------------------
    # Middleware (applied in reverse order — last added = outermost)
    # ----------------------------------------------------------------

    app.add_middleware(GZipMiddleware, minimum_size=1024)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID", "X-Document-ID", "Location"],
    )

    @app.middleware("http")
    async def request_id_and_logging(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers.setdefault("X-Request-ID", request_id)

        logger.info(
            "HTTP %s %s %d %.1fms",
            request.method, request.url.path, response.status_code, duration_ms,
        )
        return response

    _register_exception_handlers(app)

    app.include_router(documents_router, prefix="/api/v1")
    app.include_router(generate_router,  prefix="/api/v1")

    # ----------------------------------------------------------------
    # Probes
    # ----------------------------------------------------------------

    @app.get("/health", tags=["Operations"], summary="Liveness probe")
    async def health() -> dict:
        return {"status": "ok", "service": "learninglab-docs"}

    @app.get("/health/ready", tags=["Operations"], summary="Readiness probe (k8s alias)")
    @app.get(
        "/ready",
        tags=["Operations"],
        summary="Readiness probe",
        description="503 until the document database answers.",
    )
    async def readiness() -> JSONResponse:
        db_status = await check_db_health()
        ready = db_status["status"] == "ok"
        return JSONResponse(
            status_code=status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status":       "ready" if ready else "not_ready",
                "database":     db_status,
                "vector_store": settings.vector_store_backend,
            },
        )

    return app


# ---------------------------------------------------------------------------
# Exception handlers: every 4xx/5xx leaves as an ErrorResponse body
# ---------------------------------------------------------------------------

def _error(
    status_code: int,
    error_code:  str,
    message:     str,
    *,
    details:     list[ErrorDetail] | None = None,
    request_id:  str | None = None,
) -> JSONResponse:
    body = ErrorResponse(
        error_code=error_code,
        message=message,
        details=details or [],
        request_id=request_id,
    )
    headers = {"X-Request-ID": request_id} if request_id else None
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"), headers=headers)


def _register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(HTTPException)
    async def http_error(request: Request, exc: HTTPException):
        # services put an ApiErrors payload in `detail`
        if isinstance(exc.detail, dict) and "error_code" in exc.detail:
            return JSONResponse(status_code=exc.status_code, content=exc.detail, headers=exc.headers)
        return _error(exc.status_code, "HTTP_ERROR", str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        details = [
            ErrorDetail(
                field=".".join(str(part) for part in err["loc"]),
                message=err["msg"],
                code="VALIDATION_ERROR",
            )
            for err in exc.errors()
        ]
        return _error(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "VALIDATION_ERROR",
            "Request validation failed.",
            details=details,
            request_id=request.headers.get("X-Request-ID"),
        )

    @app.exception_handler(ArtifactNotFound)
    async def artifact_missing(request: Request, exc: ArtifactNotFound):
        logger.warning("Artifact missing | path=%s key=%s", request.url.path, exc.key)
        return _error(status.HTTP_404_NOT_FOUND, "ARTIFACT_NOT_FOUND", str(exc))

    @app.exception_handler(InvalidStatusTransition)
    async def bad_transition(request: Request, exc: InvalidStatusTransition):
        return _error(status.HTTP_409_CONFLICT, "INVALID_STATUS_TRANSITION", str(exc))

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        logger.exception("Unhandled exception | path=%s request_id=%s", request.url.path, request_id)
        return _error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "INTERNAL_ERROR",
            "An unexpected error occurred.",
            request_id=request_id,
        )


# ---------------------------------------------------------------------------
# Application instance (imported by uvicorn)
# ---------------------------------------------------------------------------

app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "learninglab.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.app_env == "development",
        log_level="debug" if settings.debug else "info",
        access_log=True,
    )
