"""Shared test fixtures."""

from __future__ import annotations

import io

import numpy as np
import pytest
from PIL import Image

from smartimage.engine.context import ImageFormat, RasterImage


# Sample SVGs

CIRCLE_SVG = '''<svg xmlns="http://www.w3.org/2000/svg" width="24" height="24" viewBox="0 0 24 24" fill="none" stroke="currentColor" stroke-width="2" stroke-linecap="round" stroke-linejoin="round">
  <circle cx="12" cy="12" r="10"/>
</svg>'''

# viewBox only: intrinsic size comes from the viewBox
FILLED_RECT_SVG = '''<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 100 80">
  <rect x="10" y="10" width="80" height="60" fill="#4ECDC4"/>
  <circle cx="50" cy="40" r="20" fill="#FF6B6B"/>
</svg>'''

# No width/height and no viewBox, falls back to 1000×1000
UNSIZED_SVG = '''<svg xmlns="http://www.w3.org/2000/svg">
  <rect x="100" y="100" width="800" height="800" fill="#45B7D1"/>
</svg>'''

# A wide "canvas" design: two cards on a background
CANVAS_SVG = '''<svg xmlns="http://www.w3.org/2000/svg" width="400px" height="250px" viewBox="0 0 400 250">
  <rect width="400" height="250" fill="#F7F7F7"/>
  <rect x="20" y="20" width="160" height="210" rx="8" fill="#FFFFFF" stroke="#333" stroke-width="2"/>
  <rect x="220" y="20" width="160" height="210" rx="8" fill="#FFEAA7"/>
  <circle cx="100" cy="80" r="30" fill="#FF6B6B"/>
</svg>'''


def noise_array(width: int, height: int, seed: int = 0, channels: int = 3) -> np.ndarray:
    """Incompressible RGB(A) noise; forces the encoder down its ladders."""
    rng = np.random.default_rng(seed)
    return rng.integers(0, 256, size=(height, width, channels), dtype=np.uint8)


def noise_raster(width: int, height: int, seed: int = 0) -> RasterImage:
    return RasterImage.from_array(noise_array(width, height, seed))


def png_bytes(arr: np.ndarray) -> bytes:
    buf = io.BytesIO()
    Image.fromarray(arr).save(buf, format="PNG")
    return buf.getvalue()


def size_codec(raster: RasterImage, fmt: ImageFormat, quality: int) -> bytes:
    """Fake codec: output length = pixels × quality / 100. Fully predictable."""
    return b"\0" * (raster.width * raster.height * quality // 100)


class RecordingCodec:
    """Wraps a codec, records every (width, height, quality) it is asked for."""

    def __init__(self, inner=size_codec, fail_when=None) -> None:
        self.inner = inner
        self.fail_when = fail_when or (lambda w, h, q: False)
        self.calls: list[tuple[int, int, int]] = []

    def __call__(self, raster: RasterImage, fmt: ImageFormat, quality: int) -> bytes:
        self.calls.append((raster.width, raster.height, quality))
        if self.fail_when(raster.width, raster.height, quality):
            raise OSError("encoder exploded")
        return self.inner(raster, fmt, quality)


@pytest.fixture
def circle_svg() -> str:
    return CIRCLE_SVG


@pytest.fixture
def canvas_svg() -> str:
    return CANVAS_SVG


@pytest.fixture
def noise_png() -> bytes:
    return png_bytes(noise_array(300, 200, seed=7))
