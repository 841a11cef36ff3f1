"""
Submission Roster - FastAPI Application Entry Point.

This is the main application module that:
1. Sets up structured JSON logging
2. Bootstraps the SQLite store on startup
3. Implements request ID middleware (X-Request-ID header)
4. Turns store failures into a generic 500 response
5. Registers the page, form and ajax routes

Run with: uvicorn roster.main:app
"""

import time
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.exc import SQLAlchemyError

from roster import __version__
from roster.config import Settings
from roster.database import initialize_db, create_session_factory
from roster.errors import StoreError
from roster.logging_config import (
    setup_logging, get_logger, log_with_context,
    request_id_var, generate_request_id
)
from roster.rendering import PageRenderer
from roster.routes import students, ajax

logger = get_logger("http")

SERVER_ERROR = "Sorry, something went wrong while reading the roster."


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the roster application for settings (read from the environment
    when omitted). The store is opened and bootstrapped when the app starts.
    """
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = initialize_db(settings.database)
        app.state.engine = engine
        app.state.session_factory = create_session_factory(engine)
        log_with_context(logger, "INFO", "Roster service started",
                         context={"database": settings.database.database_file})
        try:
            yield
        finally:
            engine.dispose()

    app = FastAPI(
        title="Submission Roster",
        description="Tracks which students have handed in their assignment.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    # Templates are loaded once here; handlers get them via get_renderer()
    app.state.renderer = PageRenderer(settings.templates_path)

    # ──────────────────────────────────────────────────────────
    # Request ID Middleware
    #
    # Generates a UUID per request, makes it available to every log
    # entry, returns it in X-Request-ID and logs the request latency.
    # ──────────────────────────────────────────────────────────
    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        req_id = generate_request_id()
        request_id_var.set(req_id)
        start_time = time.time()

        log_with_context(logger, "DEBUG",
            f"Request started: {request.method} {request.url.path}",
            context={"request_id": req_id},
            extra_data={"ip": request.client.host if request.client else "unknown"})

        response = await call_next(request)

        duration_ms = (time.time() - start_time) * 1000
        response.headers["X-Request-ID"] = req_id

        log_with_context(logger, "INFO",
            f"Request completed: {request.method} {request.url.path} → {response.status_code}",
            context={"request_id": req_id},
            extra_data={
                "duration_ms": round(duration_ms, 2),
                "status_code": response.status_code
            })
        return response

    @app.exception_handler(SQLAlchemyError)
    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: Exception):
        log_with_context(logger, "ERROR",
            "Store failure on {} {}: {}".format(request.method, request.url.path, str(exc)),
            extra_data={"error_type": type(exc).__name__})
        return PlainTextResponse(SERVER_ERROR, status_code=500)

    app.include_router(students.router, tags=["Students"])
    app.include_router(ajax.router, tags=["Ajax"])

    @app.get("/health", tags=["Health"])
    def health_check():
        return {"status": "healthy", "service": "roster", "version": __version__}

    return app


app = create_app()
