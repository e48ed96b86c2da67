"""Plain-text report of one processed design, for the invoking caller."""

from __future__ import annotations

from pathlib import Path

from smartimage.models.manifest import Manifest
from smartimage.storage.output import MANIFEST_NAME, display_path, format_bytes


def format_summary(manifest: Manifest, out_dir: str | Path) -> str:
    overview = manifest.overview
    lines = [
        "Successfully processed design",
        "",
        f"Export format: {manifest.selected.source_format_used}",
        "",
        f"Output directory: {display_path(out_dir)}",
        "",
        "Overview:",
    ]
    if overview.path:
        lines.append(f"  Path: {display_path(overview.path)}")
    lines += [
        f"  Size: {overview.width}x{overview.height}",
        f"  Bytes: {format_bytes(overview.bytes)}",
        f"  Format: {overview.format} (quality: {overview.quality})",
        "",
        f"Tiles: {len(manifest.tiles)}",
    ]
    for tile in manifest.tiles:
        where = display_path(tile.path) if tile.path else "tile"
        lines.append(
            f"  {where}: {tile.width}x{tile.height} at ({tile.x},{tile.y}) - {format_bytes(tile.bytes)}"
        )

    if manifest.crops:
        lines += ["", f"Crops: {len(manifest.crops)}"]
        for crop in manifest.crops:
            where = display_path(crop.path) if crop.path else crop.name
            lines.append(
                f"  {where}: {crop.name} - {crop.width}x{crop.height} - {format_bytes(crop.bytes)}"
            )

    lines += ["", f"Manifest: {display_path(Path(out_dir) / MANIFEST_NAME)}"]
    return "\n".join(lines) + "\n"
