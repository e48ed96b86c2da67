"""Tile grid — overlap-consistent, row-major, each tile independently fitted.

Along each axis, origins are min(i * step, max(0, dim - tile_px)) for
i = 0, 1, ... until the clamped maximum is reached, with
step = tile_px - overlap_px. The grid is the cross product of the two axes,
enumerated row by row. Neighbouring tiles share exactly overlap_px pixels,
except the last one on an axis, which is pinned to the far edge and may
overlap its predecessor by more.
"""

from __future__ import annotations

import logging
import numbers
from concurrent.futures import ThreadPoolExecutor

from smartimage.engine.context import FitOptions, RasterImage, Rect, TileSpec
from smartimage.engine.encoder import SizeFittingEncoder
from smartimage.engine.errors import ValidationError

logger = logging.getLogger(__name__)


def validate_grid(tile_px: int, overlap_px: int) -> None:
    """Reject impossible grid parameters before any geometry is computed."""
    if isinstance(tile_px, bool) or not isinstance(tile_px, numbers.Integral) or tile_px <= 0:
        raise ValidationError(f"tile_px must be a positive integer, got {tile_px!r}")
    if isinstance(overlap_px, bool) or not isinstance(overlap_px, numbers.Integral) or overlap_px < 0:
        raise ValidationError(f"overlap_px must be a non-negative integer, got {overlap_px!r}")
    if overlap_px >= tile_px:
        raise ValidationError(
            f"overlap_px ({overlap_px}) must be smaller than tile_px ({tile_px})"
        )


def axis_origins(dimension: int, tile_px: int, overlap_px: int) -> list[int]:
    """Ordered, distinct tile origins along one axis."""
    step = tile_px - overlap_px
    last = max(0, dimension - tile_px)
    origins: list[int] = []
    i = 0
    while True:
        origin = min(i * step, last)
        if origins and origin == origins[-1]:
            break
        origins.append(origin)
        if origin == last:
            break
        i += 1
    return origins


def grid_rects(width: int, height: int, tile_px: int, overlap_px: int) -> list[tuple[int, int, Rect]]:
    """(row, col, rect) for every tile, row-major."""
    validate_grid(tile_px, overlap_px)
    xs = axis_origins(width, tile_px, overlap_px)
    ys = axis_origins(height, tile_px, overlap_px)
    return [
        (row, col, Rect(x, y, min(tile_px, width - x), min(tile_px, height - y)))
        for row, y in enumerate(ys)
        for col, x in enumerate(xs)
    ]


class TileGridGenerator:
    """Crops the grid out of a raster and fits every tile through the encoder."""

    def __init__(
        self,
        encoder: SizeFittingEncoder | None = None,
        max_workers: int = 4,
    ) -> None:
        self.encoder = encoder or SizeFittingEncoder()
        self.max_workers = max(1, max_workers)

    def tile(
        self,
        image: RasterImage,
        tile_px: int,
        overlap_px: int,
        options: FitOptions,
    ) -> list[TileSpec]:
        cells = grid_rects(image.width, image.height, tile_px, overlap_px)
        logger.info(
            "Tiling %dx%d into %d tile(s) of %dpx (overlap %dpx)",
            image.width, image.height, len(cells), tile_px, overlap_px,
        )

        def _fit_cell(cell: tuple[int, int, Rect]) -> TileSpec:
            row, col, rect = cell
            artifact = self.encoder.fit(image.crop(rect), options)
            return TileSpec(row=row, col=col, rect=rect, artifact=artifact)

        if len(cells) == 1 or self.max_workers == 1:
            return [_fit_cell(c) for c in cells]

        # map() yields in submission order, so the result stays row-major
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(cells))) as pool:
            return list(pool.map(_fit_cell, cells))
