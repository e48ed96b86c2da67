"""Output directory layout + manifest persistence.

    <out_dir>/
        source.svg | source.png
        source_overview.<ext>
        tiles/tile_<row>_<col>.<ext>
        crops/<name>.<ext>
        manifest.json
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from pathlib import Path

from smartimage.engine.context import PipelineResult
from smartimage.engine.pipeline import SOURCE_SVG
from smartimage.models.manifest import Manifest, build_manifest

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"
_BYTE_UNITS = ("B", "KB", "MB", "GB")
_SOURCE_EXTENSIONS = {"jpeg": "jpg", "mpo": "jpg"}


def generate_output_dir(root: str | Path) -> Path:
    """Fresh, unique directory name under root (not created yet)."""
    stamp = time.strftime("%Y%m%d-%H%M%S")
    return Path(root) / f"smartimage-{stamp}-{uuid.uuid4().hex[:8]}"


def format_bytes(n: int) -> str:
    """Human-readable size, e.g. 1536 → '1.50 KB'."""
    if n < 1024:
        return f"{n} B"
    size = float(n)
    unit = _BYTE_UNITS[0]
    for unit in _BYTE_UNITS[1:]:
        size /= 1024
        if size < 1024:
            break
    return f"{size:.2f} {unit}"


def display_path(path: str | Path) -> str:
    """Path relative to the working directory when inside it, else absolute."""
    p = Path(path).resolve()
    cwd = Path.cwd()
    return str(p.relative_to(cwd)) if p.is_relative_to(cwd) else str(p)


def _source_extension(result: PipelineResult) -> str:
    """On-disk extension for the input bytes; raster inputs keep their decoded format."""
    if result.source_format == SOURCE_SVG:
        return "svg"
    decoded = (result.raster.image.format or result.source_format).lower()
    return _SOURCE_EXTENSIONS.get(decoded, decoded)


def write_manifest(path: str | Path, manifest: Manifest) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(manifest.to_json_dict(), f, indent=2)
        f.write("\n")
    return path


def write_artifacts(result: PipelineResult, out_dir: str | Path) -> Manifest:
    """Write every artifact of a result under out_dir and return its manifest."""
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    source_path = out_dir / f"source.{_source_extension(result)}"
    source_path.write_bytes(result.source)

    ext = result.overview.format.extension
    overview_path = out_dir / f"source_overview.{ext}"
    overview_path.write_bytes(result.overview.data)

    tile_paths: list[str] = []
    if result.tiles:
        tiles_dir = out_dir / "tiles"
        tiles_dir.mkdir(exist_ok=True)
        for tile in result.tiles:
            path = tiles_dir / f"tile_{tile.row}_{tile.col}.{tile.artifact.format.extension}"
            path.write_bytes(tile.artifact.data)
            tile_paths.append(str(path))

    crop_paths: list[str] = []
    if result.crops:
        crops_dir = out_dir / "crops"
        crops_dir.mkdir(exist_ok=True)
        for crop in result.crops:
            path = crops_dir / f"{crop.name}.{crop.artifact.format.extension}"
            path.write_bytes(crop.artifact.data)
            crop_paths.append(str(path))

    manifest = build_manifest(
        result,
        original_path=str(source_path),
        overview_path=str(overview_path),
        tile_paths=tile_paths,
        crop_paths=crop_paths,
    )
    manifest_path = write_manifest(out_dir / MANIFEST_NAME, manifest)
    logger.info(
        "Wrote %d tile(s), %d crop(s) and manifest to %s",
        len(tile_paths), len(crop_paths), manifest_path,
    )
    return manifest
