"""Shared fixtures for palette tests."""

import numpy as np
import pytest

from cosine_palette import coeffs_to_hex
from palette_similarity import PaletteWithCoeffs, StagedPalette
from seed_codec import serialize_coeffs


RAINBOW = np.array([
    [0.5, 0.5, 0.5, 1],
    [0.5, 0.5, 0.5, 1],
    [1.0, 1.0, 1.0, 1],
    [0.0, 0.33, 0.67, 1],
])

# Euclidean distance to RAINBOW is about 1.21
OTHER = np.array([
    [0.8, 0.5, 0.4, 1],
    [0.2, 0.4, 0.2, 1],
    [2.0, 1.0, 1.0, 1],
    [0.0, 0.25, 0.25, 1],
])


@pytest.fixture
def rainbow():
    return RAINBOW.copy()


@pytest.fixture
def other():
    return OTHER.copy()


@pytest.fixture
def make_staged():
    """Build a StagedPalette whose seed and colors come from coefficients."""
    def _make(id, coeffs, themes=None, tag='test'):
        return StagedPalette(
            id=id,
            seed=serialize_coeffs(coeffs),
            colors=coeffs_to_hex(coeffs),
            themes=list(themes or []),
            tag=tag,
        )
    return _make


@pytest.fixture
def make_shifted():
    """PaletteWithCoeffs offset from RAINBOW along the red offset only."""
    def _make(id, shift, themes=None):
        coeffs = RAINBOW.copy()
        coeffs[0, 0] += shift
        staged = StagedPalette(id=id, seed='', colors=[], themes=list(themes or []))
        return PaletteWithCoeffs.from_staged(staged, coeffs)
    return _make
