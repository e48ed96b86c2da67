"""API request models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class ProcessRequest(BaseModel):
    svg: str | None = Field(default=None, description="Raw SVG code")
    image_base64: str | None = Field(
        default=None,
        description="Base64-encoded raster (PNG/JPEG/WEBP)",
    )
    out_dir: str | None = Field(default=None, description="Output directory path")
    max_bytes: int | None = Field(default=None, gt=0, description="Maximum size for each image")
    max_long_edge: int | None = Field(default=None, gt=0, description="Maximum long edge of the overview")
    tile_px: int | None = Field(default=None, gt=0, description="Size of each tile")
    overlap_px: int | None = Field(default=None, ge=0, description="Overlap between tiles")
    prefer_format: Literal["webp", "jpeg"] | None = Field(default=None, description="Output codec")
    svg_scale: float | None = Field(default=None, gt=0, description="Render scale for SVG sources")
    include_crops: bool | None = Field(default=None, description="Generate heuristic crops")
    min_crop_size: int | None = Field(default=None, gt=0, description="Minimum crop side in pixels")
