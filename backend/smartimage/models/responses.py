"""API response models."""

from __future__ import annotations

from pydantic import BaseModel, Field

from smartimage.models.manifest import Manifest


class HealthResponse(BaseModel):
    status: str = "ok"
    version: str = "0.1.0"
    default_tile_px: int = 0
    default_max_bytes: int = 0


class ProcessResponse(BaseModel):
    manifest: Manifest
    output_dir: str
    manifest_path: str
    summary: str = ""
    processing_time_ms: float = 0.0
    errors: dict[str, str] = Field(default_factory=dict)
