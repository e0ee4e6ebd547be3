#!/usr/bin/env python3
"""
Cosine gradient palette model.

A palette is a 4x4 coefficient matrix: rows are offset (a), amplitude (b),
frequency (c) and phase (d); columns are R, G, B and a constant alpha of 1.

    color(t) = a + b * cos(2π * (c*t + d))
"""

import math

import numpy as np


TAU = math.pi * 2

DEFAULT_STEPS = 7
COEFF_PRECISION = 3

# [exposure, contrast, frequency, phase]
DEFAULT_GLOBALS = (0.0, 1.0, 1.0, 0.0)


# =============================================================================
# Rendering
# =============================================================================

def as_coeffs(coeffs) -> np.ndarray:
    """Coerce a nested sequence to a float (4, 4) coefficient matrix."""
    matrix = np.asarray(coeffs, dtype=np.float64)
    if matrix.shape != (4, 4):
        raise ValueError(f"Expected 4x4 coefficients, got shape {matrix.shape}")
    return matrix


def cosine_gradient(num_stops: int, coeffs) -> np.ndarray:
    """
    Sample a cosine palette at evenly spaced stops.

    Args:
        num_stops: Number of colors to produce
        coeffs: 4x4 coefficient matrix

    Returns:
        numpy array of shape (num_stops, 3) with RGB in [0, 1]
    """
    if num_stops <= 0:
        return np.zeros((0, 3))

    coeffs = as_coeffs(coeffs)
    if num_stops > 1:
        t = np.arange(num_stops) / (num_stops - 1)
    else:
        t = np.zeros(1)

    a, b, c, d = (coeffs[i, :3] for i in range(4))
    rgb = a + b * np.cos(TAU * (np.outer(t, c) + d))
    return np.clip(rgb, 0, 1)


def apply_globals(coeffs, globals_) -> np.ndarray:
    """Fold global modifiers into the coefficients (alpha untouched)."""
    out = as_coeffs(coeffs).copy()
    exposure, contrast, frequency, phase = globals_
    out[0, :3] += exposure
    out[1, :3] *= contrast
    out[2, :3] *= frequency
    out[3, :3] += phase
    return out


# =============================================================================
# Hex Conversion
# =============================================================================

def rgb_to_hex(r: float, g: float, b: float) -> str:
    """Convert unit RGB floats to a #rrggbb string."""
    return "#" + "".join(f"{int(round(v * 255)):02x}" for v in (r, g, b))


def hex_to_rgb(hex_color: str) -> tuple:
    """
    Parse #rgb or #rrggbb into an (r, g, b) tuple of 0-255 ints.

    Raises:
        ValueError: If the string is not a hex color
    """
    if not isinstance(hex_color, str):
        raise ValueError(f"Not a hex color: {hex_color!r}")

    clean = hex_color.strip().lstrip('#').lower()
    if len(clean) == 3:
        clean = ''.join(ch * 2 for ch in clean)
    if len(clean) != 6:
        raise ValueError(f"Not a hex color: {hex_color!r}")

    # int() accepts '+' / '-' / '_' which are not hex digits
    if any(ch not in '0123456789abcdef' for ch in clean):
        raise ValueError(f"Not a hex color: {hex_color!r}")

    return (int(clean[0:2], 16), int(clean[2:4], 16), int(clean[4:6], 16))


def coeffs_to_hex(coeffs, steps: int = DEFAULT_STEPS) -> list[str]:
    """Render coefficients to a list of hex colors."""
    return [rgb_to_hex(*rgb) for rgb in cosine_gradient(steps, coeffs)]


# =============================================================================
# Color Metrics
# =============================================================================

# sRGB luminance weights (D65)
LUMINANCE_WEIGHTS = np.array([0.2126729, 0.7151522, 0.0721750])

CIE_EPSILON = 216 / 24389
CIE_KAPPA = 24389 / 27


def rgb_to_lightness(rgb: np.ndarray) -> np.ndarray:
    """CIE L* (0-100) for an (n, 3) array of 0-255 RGB values."""
    linear = rgb.astype(np.float64) / 255.0
    linear = np.where(linear > 0.04045, ((linear + 0.055) / 1.055) ** 2.4, linear / 12.92)

    # Relative luminance is Y / Yn with Yn = 1
    y = linear @ LUMINANCE_WEIGHTS
    return np.where(y > CIE_EPSILON, 116 * np.cbrt(y) - 16, CIE_KAPPA * y)


def calculate_average_brightness(hex_colors: list[str]) -> float:
    """Average BT.601 luma of hex colors, 0 (dark) to 1 (bright)."""
    if not hex_colors:
        return 0.5

    rgb = np.array([hex_to_rgb(h) for h in hex_colors], dtype=np.float64)
    luma = rgb @ np.array([0.299, 0.587, 0.114]) / 255
    return float(luma.mean())


def calculate_contrast(hex_colors: list[str]) -> float:
    """
    Tonal spread of a palette: LAB lightness range scaled to 0-1.

    Raises:
        ValueError: If any color is not valid hex
    """
    if len(hex_colors) < 2:
        return 0.0

    rgb = np.array([hex_to_rgb(h) for h in hex_colors])
    L = rgb_to_lightness(rgb)
    return float((L.max() - L.min()) / 100)


def calculate_average_frequency(coeffs) -> float:
    """Mean absolute frequency over the R, G, B channels."""
    return float(np.abs(as_coeffs(coeffs)[2, :3]).mean())
