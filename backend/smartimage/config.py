"""Application configuration from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings

from smartimage.engine.config import DEFAULT_MAX_IMAGE_PIXELS


class Settings(BaseSettings):
    smartimage_env: str = "development"
    smartimage_log_level: str = "info"

    # Per-invocation output directories are generated under this root
    smartimage_output_root: str = "output"

    # CORS
    cors_origins: list[str] = ["http://localhost:3000"]

    # Invocation defaults (overridable per request)
    default_max_bytes: int = 4_000_000
    default_max_long_edge: int = 4096
    default_tile_px: int = 1536
    default_overlap_px: int = 96
    default_prefer_format: str = "webp"
    default_svg_scale: float = 2.0
    default_include_crops: bool = False
    default_min_crop_size: int = 768

    # Largest raster input accepted, in pixels (SVG renders are exempt)
    max_image_pixels: int = DEFAULT_MAX_IMAGE_PIXELS

    # Concurrent fit() calls per tile/crop stage
    max_workers: int = 4

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
