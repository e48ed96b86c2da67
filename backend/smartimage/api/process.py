"""POST /api/process — overview + tiles (+ crops) for one design."""

from __future__ import annotations

import asyncio
import base64
import binascii
import logging
import time
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException

from smartimage.config import Settings
from smartimage.dependencies import get_settings
from smartimage.engine.config import PipelineConfig
from smartimage.engine.context import FitOptions
from smartimage.engine.errors import EncodingFailure, ValidationError
from smartimage.engine.pipeline import SOURCE_PNG, SOURCE_SVG, create_pipeline
from smartimage.models.requests import ProcessRequest
from smartimage.models.responses import ProcessResponse
from smartimage.storage.output import MANIFEST_NAME, generate_output_dir, write_artifacts
from smartimage.summary import format_summary

logger = logging.getLogger(__name__)

router = APIRouter()


def _pick(value, default):
    return default if value is None else value


def _decode_source(req: ProcessRequest) -> tuple[str | bytes, str]:
    if (req.svg is None) == (req.image_base64 is None):
        raise HTTPException(status_code=400, detail="Provide exactly one of 'svg' or 'image_base64'")
    if req.svg is not None:
        return req.svg, SOURCE_SVG
    try:
        return base64.b64decode(req.image_base64, validate=True), SOURCE_PNG
    except (binascii.Error, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"image_base64 is not valid base64: {e}") from e


def _resolve_out_dir(requested: str | None, output_root: str) -> Path:
    """Requested directories are taken relative to the output root and must stay inside it."""
    if not requested:
        return generate_output_dir(output_root)
    root = Path(output_root).resolve()
    out_dir = (root / requested).resolve()
    if not out_dir.is_relative_to(root):
        raise HTTPException(
            status_code=400,
            detail=f"out_dir must stay inside the output root: {requested!r}",
        )
    return out_dir


@router.post("/process", response_model=ProcessResponse, response_model_exclude_none=True)
async def process(
    req: ProcessRequest,
    settings: Settings = Depends(get_settings),
) -> ProcessResponse:
    start = time.perf_counter()
    source, source_format = _decode_source(req)

    config = PipelineConfig(
        tile_px=_pick(req.tile_px, settings.default_tile_px),
        overlap_px=_pick(req.overlap_px, settings.default_overlap_px),
        svg_scale=_pick(req.svg_scale, settings.default_svg_scale),
        include_crops=_pick(req.include_crops, settings.default_include_crops),
        min_crop_size=_pick(req.min_crop_size, settings.default_min_crop_size),
        max_workers=settings.max_workers,
        max_image_pixels=settings.max_image_pixels,
    )
    out_dir = _resolve_out_dir(req.out_dir, settings.smartimage_output_root)

    def _run():
        options = FitOptions(
            max_bytes=_pick(req.max_bytes, settings.default_max_bytes),
            max_long_edge=_pick(req.max_long_edge, settings.default_max_long_edge),
            preferred_format=_pick(req.prefer_format, settings.default_prefer_format),
        )
        result = create_pipeline(config).run(source, options, source_format=source_format)
        return result, write_artifacts(result, out_dir)

    # Codec work is CPU-bound; keep the event loop free
    loop = asyncio.get_running_loop()
    try:
        result, manifest = await loop.run_in_executor(None, _run)
    except ValidationError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except EncodingFailure as e:
        logger.warning("Processing failed: %s", e)
        raise HTTPException(status_code=422, detail=str(e)) from e

    return ProcessResponse(
        manifest=manifest,
        output_dir=str(out_dir),
        manifest_path=str(out_dir / MANIFEST_NAME),
        summary=format_summary(manifest, out_dir),
        processing_time_ms=round((time.perf_counter() - start) * 1000, 1),
        errors=result.errors,
    )
