"""FastAPI application factory for the read API."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from stockwatch.api import routes


async def _value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Contract violations (malformed symbol, bad dates) become HTTP 422."""
    return JSONResponse(status_code=422, content={"error": str(exc)})


def create_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to inject startup/shutdown logic.

    Returns:
        Configured FastAPI application. Route handlers read their components
        (registry, refresh_engine, intraday_store, daily_store, orchestrator)
        from ``app.state``.
    """
    app = FastAPI(
        title="Stockwatch Quote API",
        lifespan=lifespan,
    )
    app.add_exception_handler(ValueError, _value_error_handler)  # type: ignore[arg-type]
    app.include_router(routes.router, prefix="/api")
    return app
