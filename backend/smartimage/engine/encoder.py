"""Size-fitting encoder — quality first, then resolution, until the budget fits.

Search order (fixed, so the same input always lands on the same artifact):

    s0 = min(1, max_long_edge / long_edge)
    for scale in [s0, min(s0, 0.9), min(.., 0.8), ... min(.., 0.2)]:
        for quality in 95, 90, ..., 20:
            encode; remember as best-so-far; stop everything if it fits

A codec error aborts the remaining qualities at the current scale only and the
search moves on to the next scale. If nothing fits, the last artifact produced
(lowest quality, smallest scale reached) is returned over budget; callers must
be prepared for that. EncodingFailure is raised only when no attempt produced
anything at all.
"""

from __future__ import annotations

import io
import logging
from collections.abc import Callable, Iterator

from PIL import Image

from smartimage.engine.config import QUALITY_LADDER, SCALE_LADDER, WEBP_METHOD
from smartimage.engine.context import (
    EncodedArtifact,
    FitOptions,
    ImageFormat,
    RasterImage,
    flatten_alpha,
)
from smartimage.engine.errors import EncodingFailure
from smartimage.engine.rasterizer import round_half_up

logger = logging.getLogger(__name__)

# (raster, format, quality) -> encoded bytes
Codec = Callable[[RasterImage, ImageFormat, int], bytes]

# Errors Pillow raises for encoder/IO trouble. Anything else is a bug.
_CODEC_ERRORS = (OSError, ValueError)

def _prepare_for_webp(img: Image.Image) -> Image.Image:
    if img.mode in ("RGB", "RGBA"):
        return img
    has_alpha = img.mode in ("LA", "PA") or "transparency" in img.info
    return img.convert("RGBA" if has_alpha else "RGB")


def encode_image(raster: RasterImage, fmt: ImageFormat, quality: int) -> bytes:
    """Encode with the format-specific Pillow settings."""
    buf = io.BytesIO()
    if fmt is ImageFormat.WEBP:
        _prepare_for_webp(raster.image).save(
            buf, format="WEBP", quality=quality, method=WEBP_METHOD
        )
    elif fmt is ImageFormat.JPEG:
        # JPEG has no alpha channel
        flatten_alpha(raster.image).save(
            buf, format="JPEG", quality=quality, optimize=True, progressive=True
        )
    else:
        raise ValueError(f"Unsupported output format: {fmt!r}")
    return buf.getvalue()


def initial_scale(width: int, height: int, max_long_edge: int) -> float:
    long_edge = max(width, height)
    return max_long_edge / long_edge if long_edge > max_long_edge else 1.0


def scaled_size(width: int, height: int, scale: float) -> tuple[int, int]:
    """Nearest-integer target size; never collapses an axis to zero."""
    if scale >= 1:
        return width, height
    return (
        max(1, round_half_up(width * scale)),
        max(1, round_half_up(height * scale)),
    )


def scale_schedule(s0: float) -> Iterator[float]:
    """s0, then each SCALE_LADDER step clamped by min() against the running scale.

    Consecutive duplicates are dropped: with a deterministic codec they would
    repeat the exact same attempts.
    """
    scale = s0
    yield scale
    for step in SCALE_LADDER:
        next_scale = min(scale, step)
        if next_scale == scale:
            continue
        scale = next_scale
        yield scale


class SizeFittingEncoder:
    """Searches (quality, scale) for the first encoding that fits a byte budget."""

    def __init__(self, codec: Codec | None = None) -> None:
        self.codec = codec or encode_image

    def fit(self, image: RasterImage, options: FitOptions) -> EncodedArtifact:
        fmt = options.preferred_format
        s0 = initial_scale(image.width, image.height, options.max_long_edge)

        best: EncodedArtifact | None = None
        attempts = 0

        for scale in scale_schedule(s0):
            target_w, target_h = scaled_size(image.width, image.height, scale)
            scaled = image.resized(target_w, target_h)

            # Caught at the scale boundary on purpose: one codec error skips
            # every remaining quality at this scale.
            try:
                for quality in QUALITY_LADDER:
                    data = self.codec(scaled, fmt, quality)
                    attempts += 1
                    best = EncodedArtifact(
                        data=data,
                        width=target_w,
                        height=target_h,
                        format=fmt,
                        quality=quality,
                        scale_factor=scale,
                    )
                    logger.debug(
                        "  attempt %d: %dx%d q=%d → %d bytes",
                        attempts, target_w, target_h, quality, best.byte_size,
                    )
                    if best.fits(options.max_bytes):
                        logger.debug(
                            "Fit %dx%d %s within %d bytes (q=%d, scale=%.3f)",
                            target_w, target_h, fmt.value, options.max_bytes, quality, scale,
                        )
                        return best
            except _CODEC_ERRORS as e:
                logger.warning(
                    "Codec error at scale %.3f (%dx%d): %s; moving to next scale",
                    scale, target_w, target_h, e,
                )

        if best is None:
            raise EncodingFailure(
                f"Failed to encode {image.width}x{image.height} image as {fmt.value}: "
                "every attempt raised a codec error"
            )

        logger.info(
            "Budget of %d bytes not reachable for %dx%d; returning %d bytes (q=%d, scale=%.3f)",
            options.max_bytes, image.width, image.height,
            best.byte_size, best.quality, best.scale_factor,
        )
        return best


def fit(image: RasterImage, options: FitOptions) -> EncodedArtifact:
    """Module-level convenience wrapper around the default encoder."""
    return SizeFittingEncoder().fit(image, options)
