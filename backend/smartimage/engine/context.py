"""Value objects flowing through the engine.

Every object here is immutable once produced. Stages read a RasterImage and
derive new ones; nothing is mutated in place across stages.
"""

from __future__ import annotations

import enum
import io
import numbers
import threading
from dataclasses import dataclass, field

import numpy as np
from numpy.typing import NDArray
from PIL import Image

from smartimage.engine.config import DEFAULT_MAX_IMAGE_PIXELS
from smartimage.engine.errors import EncodingFailure, ValidationError

# Image.open() consults the global bomb limit; swap it only under this lock
_OPEN_LOCK = threading.Lock()


def _open_unchecked(data: bytes) -> Image.Image:
    """Image.open() with Pillow's own pixel limit lifted (header read only)."""
    with _OPEN_LOCK:
        saved = Image.MAX_IMAGE_PIXELS
        Image.MAX_IMAGE_PIXELS = None
        try:
            return Image.open(io.BytesIO(data))
        finally:
            Image.MAX_IMAGE_PIXELS = saved


# Background used wherever alpha has to be dropped (JPEG, salience analysis).
WHITE_MATTE = (255, 255, 255)


def flatten_alpha(img: Image.Image, matte: tuple[int, int, int] = WHITE_MATTE) -> Image.Image:
    """Composite any transparency onto an opaque matte, returning RGB or L."""
    if img.mode in ("RGB", "L"):
        return img
    if img.mode in ("P", "LA", "PA") or "transparency" in img.info:
        img = img.convert("RGBA")
    if img.mode == "RGBA":
        flat = Image.new("RGB", img.size, matte)
        flat.paste(img, mask=img.getchannel("A"))
        return flat
    return img.convert("RGB")


class ImageFormat(str, enum.Enum):
    """Output codecs. Closed set; encoder dispatch is a plain if/else."""

    WEBP = "webp"
    JPEG = "jpeg"

    @property
    def extension(self) -> str:
        return "webp" if self is ImageFormat.WEBP else "jpg"

    @property
    def media_type(self) -> str:
        return f"image/{self.value}"

    @property
    def pil_format(self) -> str:
        return self.value.upper()


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in source-pixel coordinates."""

    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def area(self) -> int:
        return self.width * self.height

    @property
    def box(self) -> tuple[int, int, int, int]:
        """PIL crop box: (left, upper, right, lower)."""
        return (self.x, self.y, self.right, self.bottom)

    def intersects(self, other: Rect) -> bool:
        return (
            self.x < other.right
            and other.x < self.right
            and self.y < other.bottom
            and other.y < self.bottom
        )


@dataclass(frozen=True)
class RasterImage:
    """Decoded pixel buffer. Wraps a PIL image that is never mutated."""

    image: Image.Image = field(repr=False)

    def __post_init__(self) -> None:
        if self.image.width <= 0 or self.image.height <= 0:
            raise EncodingFailure(
                f"Raster has no pixels ({self.image.width}x{self.image.height})"
            )

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def mode(self) -> str:
        """Source color/alpha model (PIL mode string, e.g. RGBA)."""
        return self.image.mode

    @property
    def has_alpha(self) -> bool:
        return self.image.mode in ("RGBA", "LA", "PA") or "transparency" in self.image.info

    @property
    def long_edge(self) -> int:
        return max(self.width, self.height)

    @property
    def bounds(self) -> Rect:
        return Rect(0, 0, self.width, self.height)

    @classmethod
    def from_bytes(
        cls,
        data: bytes,
        max_pixels: int | None = DEFAULT_MAX_IMAGE_PIXELS,
    ) -> RasterImage:
        """Decode PNG/JPEG/WEBP bytes. Invalid or empty data is an EncodingFailure.

        ``max_pixels`` replaces Pillow's global decompression-bomb limit for
        this decode; pass None for trusted data such as our own renders.
        """
        if not data:
            raise EncodingFailure("Raster input is empty")
        try:
            img = _open_unchecked(data)
            if max_pixels is not None and img.width * img.height > max_pixels:
                raise EncodingFailure(
                    f"Raster input is {img.width}x{img.height}, "
                    f"over the {max_pixels} pixel limit"
                )
            img.load()
        except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
            raise EncodingFailure(f"Raster input could not be decoded: {e}") from e
        return cls(img)

    @classmethod
    def from_array(cls, arr: NDArray) -> RasterImage:
        """Wrap an HxW (grayscale), HxWx3 (RGB) or HxWx4 (RGBA) uint8 array."""
        return cls(Image.fromarray(np.ascontiguousarray(arr, dtype=np.uint8)))

    def crop(self, rect: Rect) -> RasterImage:
        if rect.x < 0 or rect.y < 0 or rect.right > self.width or rect.bottom > self.height:
            raise ValidationError(
                f"Crop {rect} falls outside the {self.width}x{self.height} raster"
            )
        return RasterImage(self.image.crop(rect.box))

    def resized(self, width: int, height: int) -> RasterImage:
        if (width, height) == (self.width, self.height):
            return self
        return RasterImage(self.image.resize((width, height), Image.Resampling.LANCZOS))

    def to_array(self) -> NDArray[np.uint8]:
        return np.asarray(self.image)

    def to_png_bytes(self) -> bytes:
        buf = io.BytesIO()
        self.image.save(buf, format="PNG")
        return buf.getvalue()


@dataclass(frozen=True)
class FitOptions:
    """Byte budget + long-edge cap + codec preference for one fit() call."""

    max_bytes: int
    max_long_edge: int
    preferred_format: ImageFormat = ImageFormat.WEBP

    def __post_init__(self) -> None:
        for name in ("max_bytes", "max_long_edge"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Integral) or value <= 0:
                raise ValidationError(f"{name} must be a positive integer, got {value!r}")
        # Accept the plain string value ("webp"/"jpeg") as well as the enum
        if not isinstance(self.preferred_format, ImageFormat):
            try:
                fmt = ImageFormat(str(self.preferred_format).lower())
            except ValueError as e:
                raise ValidationError(f"Unsupported format: {self.preferred_format!r}") from e
            object.__setattr__(self, "preferred_format", fmt)


@dataclass(frozen=True)
class EncodedArtifact:
    """One encoded image produced by SizeFittingEncoder.fit()."""

    data: bytes = field(repr=False)
    width: int
    height: int
    format: ImageFormat
    quality: int
    scale_factor: float

    @property
    def byte_size(self) -> int:
        return len(self.data)

    def fits(self, max_bytes: int) -> bool:
        return self.byte_size <= max_bytes


@dataclass(frozen=True)
class TileSpec:
    """One grid cell: where it sits in the source, and its fitted encoding."""

    row: int
    col: int
    rect: Rect
    artifact: EncodedArtifact


@dataclass(frozen=True)
class CropSpec:
    """One region of interest, in score order."""

    name: str
    rect: Rect
    score: float
    artifact: EncodedArtifact


@dataclass
class PipelineResult:
    """Everything one pipeline invocation produced, ready for persistence."""

    source_format: str  # "svg" or "png"
    source: bytes = field(repr=False)
    raster: RasterImage
    overview: EncodedArtifact
    tiles: list[TileSpec] = field(default_factory=list)
    crops: list[CropSpec] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)
    timings_ms: dict[str, float] = field(default_factory=dict)
