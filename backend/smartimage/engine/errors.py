"""Engine error taxonomy.

ValidationError:  malformed parameters, raised before any computation.
EncodingFailure:  no viable artifact could be produced at all.

Crop-stage failures are never raised to the caller; the pipeline records them
and continues with zero crops.
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for every error raised by the image engine."""


class ValidationError(EngineError, ValueError):
    """Input parameters are malformed (e.g. overlap_px >= tile_px)."""


class EncodingFailure(EngineError):
    """Nothing could be encoded: unreadable raster or every codec attempt failed."""
