"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from smartimage.config import Settings
from smartimage.dependencies import get_settings
from smartimage.models.responses import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(settings: Settings = Depends(get_settings)) -> HealthResponse:
    return HealthResponse(
        status="ok",
        version="0.1.0",
        default_tile_px=settings.default_tile_px,
        default_max_bytes=settings.default_max_bytes,
    )
