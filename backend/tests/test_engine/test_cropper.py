"""Tests for region-of-interest crops."""

from __future__ import annotations

import numpy as np
import pytest

from smartimage.engine.context import FitOptions, RasterImage, Rect
from smartimage.engine.cropper import (
    EdgeDensityProposer,
    Proposal,
    RegionOfInterestCropper,
    position_label,
)
from smartimage.engine.encoder import SizeFittingEncoder
from smartimage.engine.errors import ValidationError
from tests.conftest import noise_array, size_codec


OPTS = FitOptions(max_bytes=10**9, max_long_edge=10_000)


def _busy_corner(width: int = 400, height: int = 300, patch: int = 100) -> RasterImage:
    """White canvas with a noisy square in the top-left corner."""
    arr = np.full((height, width, 3), 255, dtype=np.uint8)
    arr[:patch, :patch] = noise_array(patch, patch, seed=11)
    return RasterImage.from_array(arr)


def _cropper(**kwargs) -> RegionOfInterestCropper:
    return RegionOfInterestCropper(SizeFittingEncoder(size_codec), **kwargs)


class TestEdgeDensityProposer:
    def test_picks_busiest_region_first(self):
        proposals = EdgeDensityProposer().propose(_busy_corner(), 100)
        assert proposals
        assert proposals[0].rect == Rect(0, 0, 100, 100)

    def test_regions_are_bounded_sized_and_disjoint(self):
        img = RasterImage.from_array(noise_array(500, 350, seed=4))
        proposals = EdgeDensityProposer(max_regions=4).propose(img, 120)
        assert 0 < len(proposals) <= 4
        for p in proposals:
            assert p.rect.width >= 120 and p.rect.height >= 120
            assert p.rect.right <= 500 and p.rect.bottom <= 350
        for i, a in enumerate(proposals):
            for b in proposals[i + 1:]:
                assert not a.rect.intersects(b.rect)

    def test_sorted_by_score(self):
        img = RasterImage.from_array(noise_array(400, 400, seed=9))
        scores = [p.score for p in EdgeDensityProposer().propose(img, 100)]
        assert scores == sorted(scores, reverse=True)

    def test_blank_image_has_no_regions(self):
        blank = RasterImage.from_array(np.full((300, 300, 3), 200, dtype=np.uint8))
        assert EdgeDensityProposer().propose(blank, 100) == []

    def test_image_smaller_than_min_size(self):
        assert EdgeDensityProposer().propose(_busy_corner(), 768) == []

    def test_large_image_is_analysed_downsampled(self):
        img = RasterImage.from_array(noise_array(2048, 600, seed=2))
        salience, scale = EdgeDensityProposer().salience_map(img)
        assert scale == 0.5
        assert salience.shape == (300, 1024)


class TestPositionLabel:
    @pytest.mark.parametrize(
        "rect,label",
        [
            (Rect(0, 0, 100, 100), "top-left"),
            (Rect(250, 0, 100, 100), "top-right"),
            (Rect(100, 0, 100, 100), "top"),
            (Rect(0, 100, 100, 100), "left"),
            (Rect(100, 100, 100, 100), "center"),
            (Rect(100, 200, 100, 100), "bottom"),
            (Rect(200, 200, 100, 100), "bottom-right"),
        ],
    )
    def test_thirds(self, rect, label):
        assert position_label(rect, 300, 300) == label


class TestRegionOfInterestCropper:
    def test_crops_are_named_and_fitted(self):
        crops = _cropper().crop(_busy_corner(), 100, OPTS)
        assert crops[0].name == "crop-1-top-left"
        assert crops[0].rect == Rect(0, 0, 100, 100)
        assert [c.name.split("-")[1] for c in crops] == [str(i) for i in range(1, len(crops) + 1)]
        for c in crops:
            assert (c.artifact.width, c.artifact.height) == (c.rect.width, c.rect.height)

    def test_swappable_proposer(self):
        class Fixed:
            def propose(self, image, min_size):
                return [
                    Proposal(Rect(10, 10, 60, 60), 2.0),
                    Proposal(Rect(0, 0, 20, 20), 1.0),  # too small, dropped
                ]

        crops = _cropper(proposer=Fixed()).crop(_busy_corner(), 50, OPTS)
        assert [c.rect for c in crops] == [Rect(10, 10, 60, 60)]
        assert crops[0].score == 2.0

    def test_empty_when_nothing_proposed(self):
        class Nothing:
            def propose(self, image, min_size):
                return []

        assert _cropper(proposer=Nothing()).crop(_busy_corner(), 50, OPTS) == []

    def test_rejects_non_positive_min_size(self):
        with pytest.raises(ValidationError):
            _cropper().crop(_busy_corner(), 0, OPTS)
