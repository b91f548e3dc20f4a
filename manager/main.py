"""Fleet Stress - read-only manager API."""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from manager.config import Settings, get_settings
from manager.dependencies import set_data_store
from manager.storage.data_store import DataStore

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def configure_logging(settings: Settings) -> None:
    """Root logging for the manager process."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format=settings.log_format,
        handlers=[logging.StreamHandler(sys.stdout)],
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """Open the run store for the lifetime of the app."""
    settings = get_settings()
    store = DataStore(settings.data_path)
    set_data_store(store)

    runs = await store.get_runs(limit=1)
    latest = runs[0]["id"] if runs else "none"
    logger.info(f"{settings.app_name} v{settings.app_version} serving {store.base_path} (latest run: {latest})")

    try:
        yield
    finally:
        set_data_store(None)
        logger.info("Manager stopped")


def create_app() -> FastAPI:
    """Build the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Run history and collected results of staggered fleet stress runs",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception):
        logger.error(f"{request.method} {request.url.path} failed: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "error": str(exc)},
        )

    from manager.api.routes import results, runs, system

    for name, module in (("system", system), ("runs", runs), ("results", results)):
        app.include_router(module.router, prefix=f"{API_PREFIX}/{name}", tags=[name.capitalize()])

    @app.get("/")
    async def root():
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "api": API_PREFIX,
        }

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    return app


app = create_app()


def main():
    """Serve the API with uvicorn."""
    settings = get_settings()
    configure_logging(settings)

    logger.info(f"Listening on {settings.host}:{settings.port}")
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
