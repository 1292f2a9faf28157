"""ProofAge FastAPI application entry point."""

from __future__ import annotations

import uuid
from contextlib import asynccontextmanager
from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from proofage import __version__
from proofage.config import get_settings
from proofage.db import close_db, get_async_session, init_db
from proofage.errors import ProofAgeError, ValidationError
from proofage.services.api_key import ApiKeyService
from proofage.services.gc.lifecycle import init_gc_scheduler, shutdown_gc_scheduler

logger = structlog.get_logger()

_LOCATION_CODES = {
    "path": ("INVALID_PARAMS", "Path parameters are invalid"),
    "query": ("INVALID_QUERY", "Query parameters are invalid"),
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events."""
    settings = get_settings()

    # Startup
    logger.info("proofage.startup", version=__version__)
    for name in settings.weak_secret_warnings():
        logger.warning(
            "config.weak_secret",
            setting=name,
            msg="Development default or short secret in use; set a strong value",
        )

    await init_db()

    async with get_async_session() as session:
        await ApiKeyService.bootstrap(session, settings)

    await init_gc_scheduler(settings)

    yield

    # Shutdown
    logger.info("proofage.shutdown")

    await shutdown_gc_scheduler()

    await close_db()


def _validation_error_body(
    request: Request, exc: RequestValidationError
) -> tuple[str, str, list[dict[str, Any]]]:
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    first_location = errors[0]["loc"][0] if errors and errors[0]["loc"] else "body"
    if first_location in _LOCATION_CODES:
        code, message = _LOCATION_CODES[first_location]
    else:
        # Endpoints may declare their own body error via api.schemas.body_error
        error_cls = getattr(request.scope.get("endpoint"), "body_error", ValidationError)
        code, message = error_cls.code, error_cls.message
    return code, message, errors


def create_app() -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title="ProofAge",
        description="Age-over assertion rail for merchants and relying parties",
        version=__version__,
        lifespan=lifespan,
    )

    # Request ID middleware
    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """Add request ID to all requests."""
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        return response

    # Error handlers
    @app.exception_handler(ProofAgeError)
    async def proofage_error_handler(request: Request, exc: ProofAgeError):
        """Handle ProofAge errors with consistent format."""
        request_id = getattr(request.state, "request_id", None)
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(request_id),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        request_id = getattr(request.state, "request_id", None)
        code, message, errors = _validation_error_body(request, exc)
        body: dict[str, Any] = {"code": code, "message": message, "details": {"errors": errors}}
        if request_id:
            body["request_id"] = request_id
        return JSONResponse(status_code=400, content={"error": body})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        request_id = getattr(request.state, "request_id", None)
        logger.exception("request.unhandled_error", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=500, content=ProofAgeError().to_dict(request_id))

    # Health check
    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "proof-api"}

    # Import and register API routers
    from proofage.api.v1 import router as v1_router

    app.include_router(v1_router, prefix="/v1")

    return app


# Create default app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "proofage.main:app",
        host=settings.server.host,
        port=settings.server.port,
    )
