"""Health check and model registry endpoints."""

import sqlite3

from fastapi import APIRouter

from escribiendo import __version__
from escribiendo.config.app_config import load_app_config
from escribiendo.config.models import list_models
from escribiendo.db.database import get_db
from escribiendo.web.schemas import HealthResponse, ModelInfo, ModelListResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check API and database health."""
    try:
        with get_db() as conn:
            conn.execute("SELECT 1").fetchone()
        database = "ok"
    except sqlite3.Error:
        database = "unavailable"

    return HealthResponse(status="ok", version=__version__, database=database)


@router.get("/api/models", response_model=ModelListResponse, tags=["models"])
async def get_models() -> ModelListResponse:
    """List the selectable chat models."""
    models = [
        ModelInfo(id=m.id, provider=m.provider, model=m.model, display_name=m.display_name)
        for m in list_models()
    ]
    return ModelListResponse(
        models=models,
        default_model=load_app_config().default_model,
        count=len(models),
    )
