"""SVG → raster normalization.

Only the output dimensions are decided here; pixel rendering is delegated to
CairoSVG, which is asked to render at exactly those dimensions.

Size inference, first match wins:
1. width + height on the root <svg> element (unit suffix stripped)
2. viewBox="minx miny w h" on the root element
3. DEFAULT_SVG_SIZE × DEFAULT_SVG_SIZE
"""

from __future__ import annotations

import logging
import math
import re

import cairosvg

from smartimage.engine.config import DEFAULT_SVG_SCALE, DEFAULT_SVG_SIZE
from smartimage.engine.context import RasterImage
from smartimage.engine.errors import EncodingFailure, ValidationError

logger = logging.getLogger(__name__)

# Opening tag of the root element. DOTALL: attributes may span lines.
_SVG_ROOT_RE = re.compile(r"<svg\b[^>]*>", re.IGNORECASE | re.DOTALL)

# Lookbehind keeps stroke-width / data-width from matching.
_LENGTH_UNITS = r"(?:px|pt|pc|mm|cm|in|em|ex|rem)?"
_WIDTH_RE = re.compile(
    r"(?<![\w:-])width\s*=\s*[\"']\s*([+]?\d*\.?\d+(?:[eE][+-]?\d+)?)\s*" + _LENGTH_UNITS + r"\s*[\"']"
)
_HEIGHT_RE = re.compile(
    r"(?<![\w:-])height\s*=\s*[\"']\s*([+]?\d*\.?\d+(?:[eE][+-]?\d+)?)\s*" + _LENGTH_UNITS + r"\s*[\"']"
)
_VIEWBOX_RE = re.compile(r"(?<![\w:-])viewBox\s*=\s*[\"']([^\"']+)[\"']")
_VIEWBOX_SPLIT_RE = re.compile(r"[\s,]+")


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (round() is banker's)."""
    return int(math.floor(value + 0.5))


def _root_tag(svg_text: str) -> str:
    match = _SVG_ROOT_RE.search(svg_text)
    return match.group(0) if match else ""


def _parse_length(pattern: re.Pattern[str], tag: str) -> float | None:
    match = pattern.search(tag)
    if not match:
        return None
    try:
        value = float(match.group(1))
    except ValueError:
        return None
    return value if value > 0 else None


def _parse_viewbox(tag: str) -> tuple[float, float] | None:
    match = _VIEWBOX_RE.search(tag)
    if not match:
        return None
    parts = [p for p in _VIEWBOX_SPLIT_RE.split(match.group(1).strip()) if p]
    if len(parts) < 4:
        return None
    size: list[float] = []
    for raw in parts[2:4]:
        try:
            value = float(raw)
        except ValueError:
            value = 0.0
        # A zero/garbage component falls back on its own axis only
        size.append(value if value > 0 and math.isfinite(value) else DEFAULT_SVG_SIZE)
    return size[0], size[1]


def infer_svg_size(svg_text: str) -> tuple[float, float]:
    """Unscaled (width, height) of an SVG document. Never fails."""
    tag = _root_tag(svg_text)

    width = _parse_length(_WIDTH_RE, tag)
    height = _parse_length(_HEIGHT_RE, tag)
    if width is not None and height is not None:
        return width, height

    viewbox = _parse_viewbox(tag)
    if viewbox is not None:
        return viewbox

    logger.debug("SVG has no usable width/height or viewBox, using %.0f²", DEFAULT_SVG_SIZE)
    return DEFAULT_SVG_SIZE, DEFAULT_SVG_SIZE


def target_size(svg_text: str, scale: float = DEFAULT_SVG_SCALE) -> tuple[int, int]:
    """Pixel dimensions the SVG will be rendered at for the given scale."""
    if not scale > 0 or not math.isfinite(scale):
        raise ValidationError(f"SVG scale must be a positive number, got {scale}")
    width, height = infer_svg_size(svg_text)
    return (
        max(1, round_half_up(width * scale)),
        max(1, round_half_up(height * scale)),
    )


def rasterize(svg_text: str, scale: float = DEFAULT_SVG_SCALE) -> RasterImage:
    """Render SVG text to a RasterImage at round(intrinsic size × scale)."""
    out_w, out_h = target_size(svg_text, scale)
    base_w, base_h = infer_svg_size(svg_text)
    raw = svg_text.encode("utf-8") if isinstance(svg_text, str) else svg_text

    try:
        # The parent viewport gives percent/absent root sizes something to
        # resolve against, so the drawing scales with the output size.
        png_data = cairosvg.svg2png(
            bytestring=raw,
            parent_width=base_w,
            parent_height=base_h,
            output_width=out_w,
            output_height=out_h,
        )
    except Exception as e:
        # CairoSVG surfaces XML, cairo and value errors without a common base
        logger.warning("Failed to render SVG to PNG: %s", e)
        raise EncodingFailure(f"Failed to convert SVG to PNG: {e}") from e

    # Trusted render at a size chosen above; no pixel cap
    raster = RasterImage.from_bytes(png_data, max_pixels=None)
    if (raster.width, raster.height) != (out_w, out_h):
        raster = raster.resized(out_w, out_h)
    logger.debug("Rasterized SVG at scale %.2f → %dx%d", scale, out_w, out_h)
    return raster
