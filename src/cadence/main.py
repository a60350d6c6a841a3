"""
FastAPI Application Entry Point.

This module creates and configures the FastAPI application instance for
the cadence service. It sets up routing, request tracing, CORS, logging
and the startup voice initialization.

Usage:
    # Run with uvicorn
    uvicorn cadence.main:app --host 0.0.0.0 --port 8000

    # Skip the startup catalog fetch (tests, offline development)
    CADENCE_SKIP_VOICE_INIT=1 uvicorn cadence.main:app
"""

from __future__ import annotations

import time
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from cadence.api.dependencies import get_settings
from cadence.api.routes import init_voices, router
from cadence.core.logging import configure_logging, get_logger, info, set_request_id
from cadence.core.metrics import metrics
from cadence.speech.errors import ErrorCode

_LOG = get_logger("cadence.http")

REQUEST_ID_HEADER = "X-Request-ID"


async def request_context(request: Request, call_next):
    """
    Per-request middleware: request id, access log and HTTP counters.

    The incoming X-Request-ID header is reused when present, so ids can
    be correlated across services; otherwise a new one is generated.
    """
    rid = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())[:12]
    set_request_id(rid)
    t0 = time.perf_counter()

    try:
        response = await call_next(request)
    except Exception:
        metrics.record_http(500)
        raise

    response.headers[REQUEST_ID_HEADER] = rid
    metrics.record_http(response.status_code)
    info(_LOG, "http", method=request.method, path=request.url.path,
         status=response.status_code, seconds=round(time.perf_counter() - t0, 4))
    return response


async def invalid_body(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed JSON bodies are caller errors, answered like other invalid input."""
    return JSONResponse(
        status_code=400,
        content={
            "ok": False,
            "error": ErrorCode.INVALID_INPUT,
            "message": "Invalid request body",
            "details": {"errors": [str(e.get("msg", "")) for e in exc.errors()]},
        },
    )


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    This factory function:
        1. Configures structured logging based on environment settings
        2. Creates a FastAPI instance with the service title
        3. Installs CORS, request tracing and the body-error handler
        4. Registers the speech router
        5. Sets up voice initialization for startup

    Returns:
        FastAPI: Configured application instance ready to serve requests.
    """
    # Initialize structured logging (reads CADENCE_LOG_LEVEL env var)
    configure_logging()

    config = get_settings().get_service_config()

    app = FastAPI(title="cadence")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.allowed_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER, "Content-Disposition"],
    )
    app.middleware("http")(request_context)
    app.add_exception_handler(RequestValidationError, invalid_body)

    app.include_router(router)

    # Load the voice catalog on startup (unless CADENCE_SKIP_VOICE_INIT=1)
    app.add_event_handler("startup", init_voices)

    return app


# Global application instance for ASGI servers (uvicorn, gunicorn, etc.)
app = create_app()
