"""Manifest — the one record handed to the persistence layer per invocation.

Wire names are camelCase where the record has always used them
(``sourceFormatUsed``, ``scaleFactor``, ``originalPath``); dump with
``by_alias=True, exclude_none=True``.
"""

from __future__ import annotations

import time
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from smartimage.engine.context import CropSpec, PipelineResult, TileSpec

MANIFEST_VERSION = "1.0.0"


class SelectedSource(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    source_format_used: Literal["svg", "png"] = Field(alias="sourceFormatUsed")
    original_path: str | None = Field(default=None, alias="originalPath")


class OverviewEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    path: str | None = None
    width: int
    height: int
    format: Literal["webp", "jpeg"]
    quality: int
    scale_factor: float = Field(alias="scaleFactor")
    bytes: int


class TileEntry(BaseModel):
    path: str | None = None
    x: int
    y: int
    w: int  # source extent, before fitting
    h: int
    bytes: int
    width: int  # encoded size, after fitting
    height: int


class CropEntry(BaseModel):
    path: str | None = None
    name: str
    x: int
    y: int
    w: int
    h: int
    bytes: int
    width: int
    height: int


class Manifest(BaseModel):
    version: str = MANIFEST_VERSION
    timestamp: int = Field(default_factory=lambda: int(time.time() * 1000))
    selected: SelectedSource
    overview: OverviewEntry
    tiles: list[TileEntry] = Field(default_factory=list)  # row-major
    crops: list[CropEntry] | None = None

    def to_json_dict(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


def _tile_entry(tile: TileSpec, path: str | None) -> TileEntry:
    return TileEntry(
        path=path,
        x=tile.rect.x,
        y=tile.rect.y,
        w=tile.rect.width,
        h=tile.rect.height,
        bytes=tile.artifact.byte_size,
        width=tile.artifact.width,
        height=tile.artifact.height,
    )


def _crop_entry(crop: CropSpec, path: str | None) -> CropEntry:
    return CropEntry(
        path=path,
        name=crop.name,
        x=crop.rect.x,
        y=crop.rect.y,
        w=crop.rect.width,
        h=crop.rect.height,
        bytes=crop.artifact.byte_size,
        width=crop.artifact.width,
        height=crop.artifact.height,
    )


def build_manifest(
    result: PipelineResult,
    *,
    original_path: str | None = None,
    overview_path: str | None = None,
    tile_paths: list[str] | None = None,
    crop_paths: list[str] | None = None,
) -> Manifest:
    """Project a PipelineResult onto the manifest record. Paths are optional."""
    tile_paths = tile_paths or [None] * len(result.tiles)
    crop_paths = crop_paths or [None] * len(result.crops)
    overview = result.overview

    return Manifest(
        selected=SelectedSource(
            source_format_used=result.source_format,
            original_path=original_path,
        ),
        overview=OverviewEntry(
            path=overview_path,
            width=overview.width,
            height=overview.height,
            format=overview.format.value,
            quality=overview.quality,
            scale_factor=overview.scale_factor,
            bytes=overview.byte_size,
        ),
        tiles=[_tile_entry(t, p) for t, p in zip(result.tiles, tile_paths)],
        crops=[_crop_entry(c, p) for c, p in zip(result.crops, crop_paths)] or None,
    )
