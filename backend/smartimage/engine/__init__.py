"""Adaptive image fitting & tiling engine."""

from smartimage.engine.context import (
    CropSpec,
    EncodedArtifact,
    FitOptions,
    ImageFormat,
    PipelineResult,
    RasterImage,
    Rect,
    TileSpec,
)
from smartimage.engine.errors import EncodingFailure, EngineError, ValidationError
from smartimage.engine.pipeline import Pipeline, create_pipeline

__all__ = [
    "CropSpec",
    "EncodedArtifact",
    "FitOptions",
    "ImageFormat",
    "PipelineResult",
    "RasterImage",
    "Rect",
    "TileSpec",
    "EncodingFailure",
    "EngineError",
    "ValidationError",
    "Pipeline",
    "create_pipeline",
]
