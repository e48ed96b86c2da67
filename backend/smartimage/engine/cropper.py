"""Region-of-interest crops — advisory, heuristic, replaceable.

The proposer is the only swappable part: anything with
``propose(image, min_size) -> list[Proposal]`` will do. The default one scores
a coarse grid of cells (and merges of adjacent cells) by Sobel edge density,
then greedily keeps the best non-overlapping regions.

Nothing downstream depends on the scoring. What callers rely on: each crop is
named, lies inside the image, is at least min_size on both sides, and a failure
anywhere here never takes the overview or tiles down with it (the pipeline
catches it).
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Protocol

import numpy as np
from numpy.typing import NDArray
from PIL import Image
from skimage.filters import sobel

from smartimage.engine.context import CropSpec, FitOptions, RasterImage, Rect, flatten_alpha
from smartimage.engine.encoder import SizeFittingEncoder
from smartimage.engine.errors import ValidationError

logger = logging.getLogger(__name__)

# Salience is computed on a downsampled copy; this caps its long edge.
_ANALYSIS_LONG_EDGE = 1024

# Cell merges considered, in (rows, cols).
_BLOCK_SHAPES: tuple[tuple[int, int], ...] = ((1, 1), (1, 2), (2, 1), (2, 2))

# A merged block's mean density is multiplied by n_cells ** this, so two
# neighbouring busy cells beat either one alone.
_MERGE_BONUS_EXP = 0.25

# Mean Sobel magnitude below this is a blank region (flat fill).
_MIN_SCORE = 1e-3


@dataclass(frozen=True)
class Proposal:
    rect: Rect
    score: float


class RegionProposer(Protocol):
    def propose(self, image: RasterImage, min_size: int) -> list[Proposal]:
        ...


def _integral(arr: NDArray[np.float64]) -> NDArray[np.float64]:
    """Summed-area table padded with a zero row/column."""
    table = np.zeros((arr.shape[0] + 1, arr.shape[1] + 1), dtype=np.float64)
    table[1:, 1:] = arr.cumsum(axis=0).cumsum(axis=1)
    return table


def _edges(length: int, cells: int) -> list[int]:
    """Integer cell boundaries splitting [0, length) into `cells` near-equal parts."""
    return [(i * length) // cells for i in range(cells + 1)]


def position_label(rect: Rect, width: int, height: int) -> str:
    """Thirds-grid position of a rect's centre, e.g. 'top-left' or 'center'."""
    cx = (rect.x + rect.width / 2) / width
    cy = (rect.y + rect.height / 2) / height
    horizontal = "left" if cx < 1 / 3 else "right" if cx > 2 / 3 else "center"
    vertical = "top" if cy < 1 / 3 else "bottom" if cy > 2 / 3 else "middle"
    if vertical == "middle":
        return horizontal
    if horizontal == "center":
        return vertical
    return f"{vertical}-{horizontal}"


class EdgeDensityProposer:
    """Grid-cell edge density with greedy non-overlapping selection."""

    def __init__(self, max_regions: int = 4) -> None:
        self.max_regions = max_regions

    def salience_map(self, image: RasterImage) -> tuple[NDArray[np.float64], float]:
        """Sobel magnitude of a downsampled grayscale copy, plus its scale."""
        scale = min(1.0, _ANALYSIS_LONG_EDGE / image.long_edge)
        gray = flatten_alpha(image.image).convert("L")
        if scale < 1.0:
            size = (max(1, round(image.width * scale)), max(1, round(image.height * scale)))
            gray = gray.resize(size, Image.Resampling.BILINEAR)
        arr = np.asarray(gray, dtype=np.float64) / 255.0
        return sobel(arr), scale

    def propose(self, image: RasterImage, min_size: int) -> list[Proposal]:
        if image.width < min_size or image.height < min_size:
            return []

        salience, scale = self.salience_map(image)
        table = _integral(salience)
        sh, sw = salience.shape

        cols = image.width // min_size
        rows = image.height // min_size
        xs = _edges(image.width, cols)
        ys = _edges(image.height, rows)

        def mean_density(rect: Rect) -> float:
            x0 = min(sw - 1, int(rect.x * scale))
            y0 = min(sh - 1, int(rect.y * scale))
            x1 = max(x0 + 1, min(sw, int(round(rect.right * scale))))
            y1 = max(y0 + 1, min(sh, int(round(rect.bottom * scale))))
            total = table[y1, x1] - table[y0, x1] - table[y1, x0] + table[y0, x0]
            return float(total) / ((x1 - x0) * (y1 - y0))

        candidates: list[Proposal] = []
        for block_rows, block_cols in _BLOCK_SHAPES:
            for r in range(rows - block_rows + 1):
                for c in range(cols - block_cols + 1):
                    rect = Rect(
                        xs[c],
                        ys[r],
                        xs[c + block_cols] - xs[c],
                        ys[r + block_rows] - ys[r],
                    )
                    density = mean_density(rect)
                    score = density * (block_rows * block_cols) ** _MERGE_BONUS_EXP
                    candidates.append(Proposal(rect=rect, score=score))

        candidates.sort(key=lambda p: (-p.score, -p.rect.area, p.rect.y, p.rect.x))

        chosen: list[Proposal] = []
        for cand in candidates:
            if len(chosen) >= self.max_regions:
                break
            if cand.score < _MIN_SCORE:
                break
            if any(cand.rect.intersects(p.rect) for p in chosen):
                continue
            chosen.append(cand)
        return chosen


class RegionOfInterestCropper:
    """Fits each proposed region through the encoder, preserving score order."""

    def __init__(
        self,
        encoder: SizeFittingEncoder | None = None,
        proposer: RegionProposer | None = None,
        max_workers: int = 4,
    ) -> None:
        self.encoder = encoder or SizeFittingEncoder()
        self.proposer = proposer or EdgeDensityProposer()
        self.max_workers = max(1, max_workers)

    def crop(self, image: RasterImage, min_crop_size: int, options: FitOptions) -> list[CropSpec]:
        if min_crop_size <= 0:
            raise ValidationError(f"min_crop_size must be positive, got {min_crop_size}")

        proposals = [
            p for p in self.proposer.propose(image, min_crop_size)
            if p.rect.width >= min_crop_size and p.rect.height >= min_crop_size
        ]
        logger.info("Proposed %d crop region(s) of at least %dpx", len(proposals), min_crop_size)
        if not proposals:
            return []

        def _fit(indexed: tuple[int, Proposal]) -> CropSpec:
            i, proposal = indexed
            rect = proposal.rect
            name = f"crop-{i}-{position_label(rect, image.width, image.height)}"
            artifact = self.encoder.fit(image.crop(rect), options)
            return CropSpec(name=name, rect=rect, score=proposal.score, artifact=artifact)

        indexed = list(enumerate(proposals, start=1))
        if len(indexed) == 1 or self.max_workers == 1:
            return [_fit(item) for item in indexed]
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(indexed))) as pool:
            return list(pool.map(_fit, indexed))
