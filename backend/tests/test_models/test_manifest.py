"""Tests for the manifest record."""

from __future__ import annotations

from smartimage.engine.context import (
    CropSpec,
    EncodedArtifact,
    ImageFormat,
    PipelineResult,
    Rect,
    TileSpec,
)
from smartimage.models.manifest import MANIFEST_VERSION, build_manifest
from tests.conftest import noise_raster


def _artifact(width: int, height: int, size: int = 100) -> EncodedArtifact:
    return EncodedArtifact(
        data=b"x" * size,
        width=width,
        height=height,
        format=ImageFormat.WEBP,
        quality=80,
        scale_factor=0.5,
    )


def _result(with_crops: bool = False) -> PipelineResult:
    tiles = [
        TileSpec(0, 0, Rect(0, 0, 64, 64), _artifact(64, 64, 10)),
        TileSpec(0, 1, Rect(48, 0, 64, 64), _artifact(32, 32, 20)),
    ]
    crops = [CropSpec("crop-1-top-left", Rect(0, 0, 50, 50), 0.4, _artifact(50, 50, 30))]
    return PipelineResult(
        source_format="svg",
        source=b"<svg/>",
        raster=noise_raster(112, 64),
        overview=_artifact(56, 32, 500),
        tiles=tiles,
        crops=crops if with_crops else [],
    )


def test_wire_format():
    data = build_manifest(_result()).to_json_dict()

    assert data["version"] == MANIFEST_VERSION
    assert isinstance(data["timestamp"], int)
    assert data["selected"] == {"sourceFormatUsed": "svg"}
    assert data["overview"] == {
        "width": 56,
        "height": 32,
        "format": "webp",
        "quality": 80,
        "scaleFactor": 0.5,
        "bytes": 500,
    }
    assert data["tiles"][1] == {"x": 48, "y": 0, "w": 64, "h": 64, "bytes": 20, "width": 32, "height": 32}
    assert "crops" not in data


def test_crops_listed_when_present():
    data = build_manifest(_result(with_crops=True)).to_json_dict()
    assert data["crops"] == [
        {"name": "crop-1-top-left", "x": 0, "y": 0, "w": 50, "h": 50, "bytes": 30, "width": 50, "height": 50}
    ]


def test_paths_attached():
    manifest = build_manifest(
        _result(),
        original_path="out/source.svg",
        overview_path="out/source_overview.webp",
        tile_paths=["out/tiles/tile_0_0.webp", "out/tiles/tile_0_1.webp"],
    )
    data = manifest.to_json_dict()
    assert data["selected"]["originalPath"] == "out/source.svg"
    assert data["overview"]["path"] == "out/source_overview.webp"
    assert [t["path"] for t in data["tiles"]] == ["out/tiles/tile_0_0.webp", "out/tiles/tile_0_1.webp"]
