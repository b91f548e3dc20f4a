"""Service status and effective settings."""

from __future__ import annotations

from fastapi import APIRouter

from manager.config import get_settings
from manager.dependencies import get_data_store

router = APIRouter()


@router.get("/health")
async def health_check():
    """Liveness of the API and reachability of the run database."""
    try:
        store = get_data_store()
        database = "healthy" if store.db_path.exists() else "missing"
    except RuntimeError:
        database = "unavailable"

    return {
        "status": "healthy" if database == "healthy" else "degraded",
        "components": {
            "api": "healthy",
            "database": database,
        }
    }


@router.get("/config")
async def get_config():
    """Effective settings, without credentials."""
    settings = get_settings()
    return {
        "app_name": settings.app_name,
        "app_version": settings.app_version,
        "data_path": str(settings.data_path),
        "default_output_root": str(settings.default_output_root),
        "remote_root": settings.remote_root,
        "ssh_user": settings.ssh_user,
        "ssh_port": settings.ssh_port,
        "collect_concurrency": settings.collect_concurrency,
    }


@router.get("/version")
async def get_version():
    settings = get_settings()
    return {
        "name": settings.app_name,
        "version": settings.app_version,
    }
