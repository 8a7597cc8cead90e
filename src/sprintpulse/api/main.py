import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from sprintpulse.config import settings
from sprintpulse.exceptions import ConfigError, DataSourceError, TrackerUnavailableError
from sprintpulse.api.middleware import add_request_id, log_requests

# Routers
from sprintpulse.api.routers import analysis, system

# Configure logging
logging.basicConfig(level=getattr(logging, settings.logging.level.upper(), logging.INFO))
logger = logging.getLogger("sprintpulse.api")


def _error_payload(request: Request, error: str, detail: str) -> dict:
    payload = {"error": error, "detail": detail}
    rid = getattr(request.state, "request_id", None)
    if rid:
        payload["request_id"] = rid
    return payload


def create_app() -> FastAPI:
    """
    Factory to build the FastAPI application.
    Tests swap services through app.dependency_overrides.
    """
    app = FastAPI(title="SprintPulse API", version=settings.app.version)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Custom Middleware
    app.middleware("http")(add_request_id)
    if settings.logging.log_requests:
        app.middleware("http")(log_requests)

    app.include_router(system.router)
    app.include_router(analysis.router)

    @app.exception_handler(TrackerUnavailableError)
    async def tracker_unavailable_handler(request: Request, exc: TrackerUnavailableError):
        logger.warning(f"Tracker unavailable: {exc}")
        return JSONResponse(status_code=502, content=_error_payload(request, "tracker_unavailable", str(exc)))

    @app.exception_handler(DataSourceError)
    async def datasource_exception_handler(request: Request, exc: DataSourceError):
        return JSONResponse(status_code=422, content=_error_payload(request, "invalid_source", str(exc)))

    @app.exception_handler(ConfigError)
    async def config_exception_handler(request: Request, exc: ConfigError):
        return JSONResponse(status_code=503, content=_error_payload(request, "not_configured", str(exc)))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        rid = getattr(request.state, "request_id", None)
        logger.exception("Unhandled error", extra={"path": str(request.url), "request_id": rid})
        return JSONResponse(
            status_code=500,
            content=_error_payload(request, "internal_error", "Unexpected server error"),
        )

    return app

# Module-level app for uvicorn entrypoint
app = create_app()
