"""Pipeline orchestrator — normalize → overview → tiles → crops.

Stages run in dependency order on one invocation's raster. Only the crop stage
is allowed to fail: its error is recorded in ``result.errors["crops"]`` and the
run finishes with zero crops. ValidationError and EncodingFailure from any
other stage propagate to the caller.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Generator
from dataclasses import dataclass, field
from typing import Any

from smartimage.engine.config import PipelineConfig
from smartimage.engine.context import (
    CropSpec,
    EncodedArtifact,
    FitOptions,
    PipelineResult,
    RasterImage,
    TileSpec,
)
from smartimage.engine.cropper import EdgeDensityProposer, RegionOfInterestCropper, RegionProposer
from smartimage.engine.encoder import SizeFittingEncoder
from smartimage.engine.errors import ValidationError
from smartimage.engine.rasterizer import rasterize
from smartimage.engine.tiler import TileGridGenerator, validate_grid

logger = logging.getLogger(__name__)

SOURCE_SVG = "svg"
SOURCE_PNG = "png"

_RASTER_MAGIC = (
    b"\x89PNG\r\n\x1a\n",
    b"\xff\xd8\xff",        # JPEG
    b"RIFF",                # WEBP container
    b"GIF8",
)

# Crops are advisory; failures here are downgraded, never raised.
_OPTIONAL_STAGES = frozenset({"crops"})


def detect_source_format(source: str | bytes) -> str:
    """'svg' for vector documents, 'png' for anything Pillow should decode."""
    if isinstance(source, str):
        return SOURCE_SVG
    head = source[:16]
    if any(head.startswith(magic) for magic in _RASTER_MAGIC):
        return SOURCE_PNG
    text_head = source[:2048].decode("utf-8", errors="ignore").lower()
    if "<svg" in text_head:
        return SOURCE_SVG
    return SOURCE_PNG


@dataclass
class _RunState:
    source: str | bytes
    source_format: str
    options: FitOptions
    raster: RasterImage | None = None
    overview: EncodedArtifact | None = None
    tiles: list[TileSpec] = field(default_factory=list)
    crops: list[CropSpec] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)
    timings_ms: dict[str, float] = field(default_factory=dict)

    def to_result(self) -> PipelineResult:
        assert self.raster is not None and self.overview is not None
        source = self.source.encode("utf-8") if isinstance(self.source, str) else self.source
        return PipelineResult(
            source_format=self.source_format,
            source=source,
            raster=self.raster,
            overview=self.overview,
            tiles=self.tiles,
            crops=self.crops,
            errors=self.errors,
            timings_ms=self.timings_ms,
        )


class Pipeline:
    """Runs the four stages for one source image."""

    def __init__(
        self,
        config: PipelineConfig | None = None,
        encoder: SizeFittingEncoder | None = None,
        proposer: RegionProposer | None = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.encoder = encoder or SizeFittingEncoder()
        self.tiler = TileGridGenerator(self.encoder, max_workers=self.config.max_workers)
        self.cropper = RegionOfInterestCropper(
            self.encoder,
            proposer=proposer or EdgeDensityProposer(max_regions=self.config.max_crops),
            max_workers=self.config.max_workers,
        )

    def run(
        self,
        source: str | bytes,
        options: FitOptions,
        source_format: str | None = None,
    ) -> PipelineResult:
        """Run all stages and return the finished result."""
        start = time.perf_counter()
        state = self._prepare(source, options, source_format)

        for name, stage in self._stages():
            self._run_stage(name, stage, state)

        result = state.to_result()
        logger.info(
            "Pipeline complete: %s %dx%d → overview %d bytes, %d tile(s), %d crop(s) in %.0fms",
            result.source_format,
            result.raster.width,
            result.raster.height,
            result.overview.byte_size,
            len(result.tiles),
            len(result.crops),
            (time.perf_counter() - start) * 1000,
        )
        return result

    def run_streaming(
        self,
        source: str | bytes,
        options: FitOptions,
        source_format: str | None = None,
    ) -> Generator[dict[str, Any], None, PipelineResult]:
        """Run the pipeline, yielding a progress dict around each stage.

        The final event has ``status == "done"`` and carries the result; the
        result is also the generator's return value.
        """
        state = self._prepare(source, options, source_format)
        stages = self._stages()
        total = len(stages)

        for i, (name, stage) in enumerate(stages):
            yield {
                "stage": name, "index": i, "total": total,
                "status": "running", "elapsed_ms": 0.0, "error": "",
            }
            try:
                self._run_stage(name, stage, state)
            except Exception as e:
                yield {
                    "stage": name, "index": i, "total": total,
                    "status": "error", "elapsed_ms": state.timings_ms.get(name, 0.0),
                    "error": str(e),
                }
                raise
            error = state.errors.get(name, "")
            yield {
                "stage": name, "index": i, "total": total,
                "status": "error" if error else "ok",
                "elapsed_ms": state.timings_ms.get(name, 0.0),
                "error": error,
            }

        result = state.to_result()
        yield {"stage": "done", "index": total, "total": total, "status": "done", "result": result}
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _prepare(
        self,
        source: str | bytes,
        options: FitOptions,
        source_format: str | None,
    ) -> _RunState:
        # Fail fast, before any pixels are touched
        validate_grid(self.config.tile_px, self.config.overlap_px)
        fmt = (source_format or detect_source_format(source)).lower()
        if fmt not in (SOURCE_SVG, SOURCE_PNG):
            raise ValidationError(f"Unknown source format: {source_format!r}")
        return _RunState(source=source, source_format=fmt, options=options)

    def _stages(self) -> list[tuple[str, Callable[[_RunState], None]]]:
        stages: list[tuple[str, Callable[[_RunState], None]]] = [
            ("normalize", self._normalize),
            ("overview", self._overview),
            ("tiles", self._tiles),
        ]
        if self.config.include_crops:
            stages.append(("crops", self._crops))
        return stages

    def _run_stage(self, name: str, stage: Callable[[_RunState], None], state: _RunState) -> None:
        t0 = time.perf_counter()
        try:
            stage(state)
        except Exception as e:
            if name not in _OPTIONAL_STAGES:
                raise
            state.errors[name] = str(e)
            logger.warning("  %s FAILED (continuing without it): %s", name, e)
        finally:
            state.timings_ms[name] = round((time.perf_counter() - t0) * 1000, 1)
        logger.debug("  %s completed in %.1fms", name, state.timings_ms[name])

    def _normalize(self, state: _RunState) -> None:
        if state.source_format == SOURCE_SVG:
            svg = (
                state.source if isinstance(state.source, str)
                else state.source.decode("utf-8", errors="replace")
            )
            state.raster = rasterize(svg, self.config.svg_scale)
        else:
            data = state.source.encode("utf-8") if isinstance(state.source, str) else state.source
            state.raster = RasterImage.from_bytes(data, max_pixels=self.config.max_image_pixels)

    def _overview(self, state: _RunState) -> None:
        assert state.raster is not None
        state.overview = self.encoder.fit(state.raster, state.options)

    def _tiles(self, state: _RunState) -> None:
        assert state.raster is not None
        state.tiles = self.tiler.tile(
            state.raster, self.config.tile_px, self.config.overlap_px, state.options
        )

    def _crops(self, state: _RunState) -> None:
        assert state.raster is not None
        state.crops = self.cropper.crop(state.raster, self.config.min_crop_size, state.options)


def create_pipeline(
    config: PipelineConfig | None = None,
    encoder: SizeFittingEncoder | None = None,
) -> Pipeline:
    """Factory function for creating a pipeline instance."""
    return Pipeline(config=config, encoder=encoder)
