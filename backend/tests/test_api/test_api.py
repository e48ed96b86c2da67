"""Tests for API endpoints."""

from __future__ import annotations

import base64
import json
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from smartimage.config import Settings
from smartimage.dependencies import get_settings
from smartimage.main import app
from tests.conftest import CANVAS_SVG, noise_array, png_bytes


client = TestClient(app)


@pytest.fixture
def output_root(tmp_path):
    """Route every request's output under tmp_path."""
    app.dependency_overrides[get_settings] = lambda: Settings(smartimage_output_root=str(tmp_path))
    yield tmp_path
    app.dependency_overrides.pop(get_settings, None)


def test_health():
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["default_tile_px"] == 1536


def test_process_svg(output_root):
    response = client.post("/api/process", json={
        "svg": CANVAS_SVG,
        "out_dir": "run",
        "tile_px": 512,
        "overlap_px": 32,
    })
    assert response.status_code == 200
    data = response.json()

    manifest = data["manifest"]
    assert manifest["selected"]["sourceFormatUsed"] == "svg"
    assert manifest["overview"]["format"] == "webp"
    assert "scaleFactor" in manifest["overview"]
    assert len(manifest["tiles"]) == 2
    assert "crops" not in manifest
    assert data["errors"] == {}
    assert Path(data["output_dir"]) == (output_root / "run").resolve()
    assert Path(data["manifest_path"]).exists()
    assert "Successfully processed design" in data["summary"]

    on_disk = json.loads(Path(data["manifest_path"]).read_text(encoding="utf-8"))
    assert on_disk["tiles"] == manifest["tiles"]


def test_process_png_jpeg_with_crops(output_root):
    raw = png_bytes(noise_array(320, 240, seed=8))
    response = client.post("/api/process", json={
        "image_base64": base64.b64encode(raw).decode("ascii"),
        "out_dir": "run",
        "prefer_format": "jpeg",
        "include_crops": True,
        "min_crop_size": 100,
        "max_bytes": 20_000,
    })
    assert response.status_code == 200
    manifest = response.json()["manifest"]
    assert manifest["selected"]["sourceFormatUsed"] == "png"
    assert manifest["overview"]["format"] == "jpeg"
    assert manifest["overview"]["path"].endswith(".jpg")
    assert len(manifest["crops"]) >= 1


def test_process_requires_exactly_one_source():
    assert client.post("/api/process", json={}).status_code == 400
    both = {"svg": CANVAS_SVG, "image_base64": "AAAA"}
    assert client.post("/api/process", json=both).status_code == 400


def test_process_rejects_bad_grid(output_root):
    response = client.post("/api/process", json={
        "svg": CANVAS_SVG,
        "out_dir": "run",
        "tile_px": 256,
        "overlap_px": 256,
    })
    assert response.status_code == 400
    assert "overlap_px" in response.json()["detail"]


def test_process_undecodable_image(output_root):
    response = client.post("/api/process", json={
        "image_base64": base64.b64encode(b"definitely not an image").decode("ascii"),
        "out_dir": "run",
    })
    assert response.status_code == 422


def test_process_rejects_non_positive_budget():
    response = client.post("/api/process", json={"svg": CANVAS_SVG, "max_bytes": 0})
    assert response.status_code == 422


@pytest.mark.parametrize("out_dir", ["../escaped", "run/../../escaped", "/tmp/elsewhere"])
def test_process_rejects_out_dir_outside_root(output_root, out_dir):
    response = client.post("/api/process", json={"svg": CANVAS_SVG, "out_dir": out_dir})
    assert response.status_code == 400
    assert "output root" in response.json()["detail"]
    assert not (output_root.parent / "escaped").exists()


def test_process_nested_out_dir_inside_root(output_root):
    response = client.post("/api/process", json={"svg": CANVAS_SVG, "out_dir": "a/../b"})
    assert response.status_code == 200
    assert Path(response.json()["output_dir"]) == (output_root / "b").resolve()


def test_process_raster_over_pixel_limit(tmp_path):
    app.dependency_overrides[get_settings] = lambda: Settings(
        smartimage_output_root=str(tmp_path), max_image_pixels=1_000,
    )
    try:
        raw = png_bytes(noise_array(40, 30, seed=2))
        response = client.post("/api/process", json={
            "image_base64": base64.b64encode(raw).decode("ascii"),
        })
    finally:
        app.dependency_overrides.pop(get_settings, None)
    assert response.status_code == 422
    assert "pixel limit" in response.json()["detail"]
