#!/usr/bin/env python3
"""
Seed serialization for cosine palettes.

A seed is the LZ-string (URI-safe) compression of a comma-separated list of
12 or 16 numbers: the R, G, B entries of the four coefficient rows, followed
by the four global modifiers when they differ from the defaults.
"""

import math

import numpy as np
from lzstring import LZString

from cosine_palette import COEFF_PRECISION, DEFAULT_GLOBALS, as_coeffs


COEFF_VALUES = 12
COEFF_AND_GLOBAL_VALUES = 16

# Old seeds stored the phase modifier in -π..π instead of -1..1
LEGACY_PHASE_LIMIT = 1.001

_lz = LZString()


class SeedError(ValueError):
    """Raised when a seed cannot be decoded into coefficients."""


# =============================================================================
# Number Formatting
# =============================================================================

def format_number(num: float) -> str:
    """Fixed precision with the leading zero dropped: 0.5 -> '.5'."""
    if num == 0:
        return '0'

    text = f"{num:.{COEFF_PRECISION}f}"
    if -1 < num < 1:
        if text.startswith('-0.'):
            return '-' + text[2:]
        if text.startswith('0.'):
            return text[1:]
    return text


def parse_number(text: str) -> float:
    """Inverse of format_number; also accepts ordinary float text."""
    text = text.strip()
    if text.startswith('.'):
        text = '0' + text
    elif text.startswith('-.'):
        text = '-0' + text[1:]
    return float(text)


# =============================================================================
# Encode / Decode
# =============================================================================

def serialize_coeffs(coeffs, globals_=DEFAULT_GLOBALS) -> str:
    """Encode coefficients (and non-default globals) as a seed string."""
    coeffs = np.round(as_coeffs(coeffs), COEFF_PRECISION)
    globals_ = [round(float(g), COEFF_PRECISION) for g in globals_]
    if len(globals_) != 4:
        raise ValueError(f"Expected 4 global modifiers, got {len(globals_)}")

    epsilon = 10 ** -COEFF_PRECISION
    default_globals = all(
        abs(value - default) < epsilon
        for value, default in zip(globals_, DEFAULT_GLOBALS)
    )

    data = [float(v) for v in coeffs[:, :3].reshape(-1)]
    if not default_globals:
        data.extend(globals_)

    packed = ','.join(format_number(v) for v in data)
    return _lz.compressToEncodedURIComponent(packed)


def deserialize_coeffs(seed: str) -> tuple[np.ndarray, tuple]:
    """
    Decode a seed string.

    Returns:
        Tuple of (coeffs, globals) where coeffs is a (4, 4) array with the
        alpha column set to 1 and globals is a 4-tuple of floats.

    Raises:
        SeedError: If the seed is empty, corrupted or has the wrong shape
    """
    if not isinstance(seed, str) or not seed:
        raise SeedError("Invalid seed: empty")

    try:
        decompressed = _lz.decompressFromEncodedURIComponent(seed)
    except Exception as e:
        raise SeedError(f"Invalid seed: failed to decompress ({e})")

    if not decompressed:
        raise SeedError("Invalid seed: failed to decompress or empty result")

    try:
        numbers = [parse_number(part) for part in decompressed.split(',')]
    except ValueError as e:
        raise SeedError(f"Invalid seed: {e}")

    if len(numbers) not in (COEFF_VALUES, COEFF_AND_GLOBAL_VALUES):
        raise SeedError(
            f"Invalid seed format: expected {COEFF_VALUES} or "
            f"{COEFF_AND_GLOBAL_VALUES} values, got {len(numbers)}"
        )

    if not all(math.isfinite(n) for n in numbers):
        raise SeedError("Invalid seed: non-finite value")

    if len(numbers) == COEFF_AND_GLOBAL_VALUES:
        globals_ = list(numbers[COEFF_VALUES:])
        if abs(globals_[3]) > LEGACY_PHASE_LIMIT:
            globals_[3] = globals_[3] / math.pi
    else:
        globals_ = list(DEFAULT_GLOBALS)

    coeffs = np.ones((4, 4))
    coeffs[:, :3] = np.array(numbers[:COEFF_VALUES]).reshape(4, 3)

    return coeffs, tuple(globals_)


def is_valid_seed(seed: str) -> bool:
    """True if the seed decodes cleanly."""
    try:
        deserialize_coeffs(seed)
    except SeedError:
        return False
    return True
