"""Engine configuration — fixed search ladders and per-invocation tuning."""

from __future__ import annotations

from dataclasses import dataclass

# Quality ladder: 95 → 20 in steps of 5, tried highest first.
QUALITY_LADDER: tuple[int, ...] = tuple(range(95, 15, -5))

# Scale ladder, applied after the initial long-edge scale fails the budget.
# Each value is combined with the running scale via min(), so the scale
# never grows back.
SCALE_LADDER: tuple[float, ...] = (0.9, 0.8, 0.7, 0.6, 0.5, 0.4, 0.3, 0.25, 0.2)

# Encoder effort for WEBP (0 = fastest, 6 = smallest). 4 is libwebp's default.
WEBP_METHOD = 4

# SVG sources are rendered at 2× their intrinsic size before fitting.
DEFAULT_SVG_SCALE = 2.0

# Unscaled SVG size when neither width/height nor viewBox is usable.
DEFAULT_SVG_SIZE = 1000.0

# Largest decoded raster accepted from untrusted input (16383 x 16383).
DEFAULT_MAX_IMAGE_PIXELS = 16383 * 16383


@dataclass
class PipelineConfig:
    """Controls tiling, cropping and parallelism for one pipeline run."""

    # Tile grid
    tile_px: int = 1536
    overlap_px: int = 96

    # Vector input
    svg_scale: float = DEFAULT_SVG_SCALE

    # Region-of-interest crops (advisory stage, off by default)
    include_crops: bool = False
    min_crop_size: int = 768
    max_crops: int = 4

    # Pixel cap for raster input; None disables it. Rendered SVGs are exempt.
    max_image_pixels: int | None = DEFAULT_MAX_IMAGE_PIXELS

    # Upper bound on concurrent fit() calls inside the tile/crop stages
    max_workers: int = 4
