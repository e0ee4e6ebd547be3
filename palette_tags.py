#!/usr/bin/env python3
"""
Palette tagging.

Derives categorical tags (dominant colors, texture, warmth, journey,
contrast) from cosine coefficients, maps them to emoji, and assembles the
token stream used as embedding-model input. Also hosts the validity gates
that keep corrupted palettes out of similarity analysis.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from cosine_palette import (
    apply_globals, calculate_average_brightness, cosine_gradient, hex_to_rgb,
)
from seed_codec import SeedError, deserialize_coeffs

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

SAMPLE_STOPS = 9  # t = 0, 0.125, ..., 1
VALIDATION_STOPS = 5
MIN_COLOR_BRIGHTNESS = 5 / 255  # Average luma below this renders blank

NAMED_SATURATION = 0.08  # Below this a sample is too gray to name
SECOND_COLOR_SCORE = 0.3  # Relative to the first color's score
THIRD_COLOR_SCORE = 0.5  # Relative to the second color's score
MIN_COLOR_SHARE = 0.15  # Fraction of named samples a color must cover

TEXTURE_THRESHOLDS = [
    (0.05, 'monochrome'),
    (0.15, 'subtle'),
    (0.28, 'soft'),
    (0.42, 'rich'),
    (0.55, 'bold'),
    (0.7, 'vivid'),
]
CONTRAST_THRESHOLDS = [
    (0.15, 'gentle'),
    (0.28, 'smooth'),
    (0.42, 'dynamic'),
]
WARMTH_LIMIT = 0.1
JOURNEY_LIMIT = 0.15

# Reference colors for dominant color naming (0-255 RGB)
BASIC_COLORS = [
    ('black', (0, 0, 0)),
    ('white', (255, 255, 255)),
    ('red', (255, 0, 0)),
    ('green', (0, 128, 0)),
    ('blue', (0, 0, 255)),
    ('yellow', (255, 255, 0)),
    ('cyan', (0, 255, 255)),
    ('magenta', (255, 0, 255)),
    ('orange', (255, 165, 0)),
    ('pink', (255, 192, 203)),
    ('purple', (128, 0, 128)),
    ('brown', (165, 42, 42)),
    ('gray', (128, 128, 128)),
    ('gold', (255, 215, 0)),
    ('teal', (0, 128, 128)),
    ('navy', (0, 0, 128)),
    ('maroon', (128, 0, 0)),
    ('olive', (128, 128, 0)),
    ('turquoise', (64, 224, 208)),
    ('indigo', (75, 0, 130)),
    ('violet', (238, 130, 238)),
    ('beige', (245, 245, 220)),
    ('tan', (210, 180, 140)),
    ('coral', (255, 127, 80)),
    ('salmon', (250, 128, 114)),
    ('khaki', (240, 230, 140)),
    ('lavender', (230, 230, 250)),
    ('peach', (255, 218, 185)),
    ('mint', (189, 252, 201)),
    ('lime', (0, 255, 0)),
    ('aqua', (0, 255, 255)),
    ('silver', (192, 192, 192)),
    ('crimson', (220, 20, 60)),
    ('chocolate', (210, 105, 30)),
    ('ivory', (255, 255, 240)),
    ('azure', (240, 255, 255)),
    ('plum', (221, 160, 221)),
    ('orchid', (218, 112, 214)),
    ('rose', (255, 0, 127)),
    ('slate', (112, 128, 144)),
    ('charcoal', (54, 69, 79)),
]
_BASIC_NAMES = [name for name, _ in BASIC_COLORS]
_BASIC_RGB = np.array([rgb for _, rgb in BASIC_COLORS], dtype=np.float64)

# Tag value -> emoji. Checked in tags_to_array order.
TAG_EMOJIS = {
    # dominant colors
    'blue': '🌊', 'navy': '🌊', 'azure': '🌊', 'aqua': '🌊', 'cyan': '🌊',
    'teal': '🌊', 'turquoise': '🌴',
    'green': '🌲', 'olive': '🌲', 'lime': '🍃', 'mint': '🍃',
    'red': '🌹', 'crimson': '🌹', 'rose': '🌹', 'maroon': '🍇',
    'pink': '🌸', 'orchid': '🌸', 'plum': '🌸', 'salmon': '🌸',
    'magenta': '🍬', 'violet': '🍬',
    'purple': '🍇', 'indigo': '🌌',
    'orange': '🍊', 'coral': '🍊', 'peach': '🍊',
    'yellow': '🌻', 'gold': '☀️',
    'brown': '🍂', 'chocolate': '🍂', 'tan': '🍂', 'khaki': '🍂', 'beige': '🍂',
    'black': '🌙', 'charcoal': '🌙', 'slate': '🌙',
    'white': '☁️', 'ivory': '☁️', 'silver': '☁️', 'gray': '☁️',
    'lavender': '✨',
    # texture
    'vivid': '🌈', 'electric': '🔥', 'rich': '💎',
    # warmth
    'cool': '❄️',
    # journey
    'warming': '🌅', 'cooling': '🌙',
}


# =============================================================================
# Tag Analysis
# =============================================================================

@dataclass
class PaletteTags:
    """Categorical descriptors derived from a coefficient matrix."""
    dominant_colors: list = field(default_factory=list)  # highest weight first
    texture: str = 'soft'
    warmth: str = 'neutral'
    journey: str = 'stable'
    contrast: str = 'smooth'


@dataclass
class PaletteAnalysis:
    """Everything the inspector shows for one palette."""
    tags: PaletteTags
    tag_values: list
    emojis: list
    embed_text: str


def closest_color_name(rgb: np.ndarray) -> str:
    """Nearest basic color name for a unit-range RGB triple."""
    dist = ((_BASIC_RGB - np.asarray(rgb) * 255) ** 2).sum(axis=1)
    return _BASIC_NAMES[int(np.argmin(dist))]


def _bucket(value: float, thresholds: list, top: str) -> str:
    for limit, name in thresholds:
        if value < limit:
            return name
    return top


def analyze_coefficients(coeffs) -> PaletteTags:
    """Derive palette tags by sampling the gradient at nine points."""
    coeffs = np.asarray(coeffs, dtype=np.float64)
    samples = [tuple(float(v) for v in s) for s in cosine_gradient(SAMPLE_STOPS, coeffs)]

    temps = [r - b for r, g, b in samples]
    saturations = [max(s) - min(s) for s in samples]
    names = [
        closest_color_name(s) if sat > NAMED_SATURATION else None
        for s, sat in zip(samples, saturations)
    ]

    tags = PaletteTags()

    # Dominant colors: score = occurrences * mean saturation
    stats = {}
    for name, sat in zip(names, saturations):
        if name is None:
            continue
        count, total = stats.get(name, (0, 0.0))
        stats[name] = (count + 1, total + sat)

    ranked = sorted(
        ((name, count, total) for name, (count, total) in stats.items()),
        key=lambda item: -item[2],  # count * (total / count) == total
    )
    named_total = sum(count for _, count, _ in ranked)

    if ranked:
        tags.dominant_colors.append(ranked[0][0])
        if len(ranked) > 1:
            second = ranked[1]
            if (second[1] >= named_total * MIN_COLOR_SHARE
                    and second[2] >= ranked[0][2] * SECOND_COLOR_SCORE):
                tags.dominant_colors.append(second[0])
                if len(ranked) > 2:
                    third = ranked[2]
                    if (third[1] >= named_total * MIN_COLOR_SHARE
                            and third[2] >= second[2] * THIRD_COLOR_SCORE):
                        tags.dominant_colors.append(third[0])
    else:
        # Too gray to name anything: fall back to the midpoint
        tags.dominant_colors.append(closest_color_name(samples[len(samples) // 2]))

    tags.texture = _bucket(float(np.mean(saturations)), TEXTURE_THRESHOLDS, 'electric')

    avg_temp = float(np.mean(temps))
    if avg_temp > WARMTH_LIMIT:
        tags.warmth = 'warm'
    elif avg_temp < -WARMTH_LIMIT:
        tags.warmth = 'cool'

    temp_delta = temps[-1] - temps[0]
    if temp_delta > JOURNEY_LIMIT:
        tags.journey = 'warming'
    elif temp_delta < -JOURNEY_LIMIT:
        tags.journey = 'cooling'

    avg_amplitude = float(np.abs(coeffs[1, :3]).mean())
    tags.contrast = _bucket(avg_amplitude, CONTRAST_THRESHOLDS, 'dramatic')

    return tags


def tags_to_array(tags: PaletteTags) -> list[str]:
    """All tag values, dominant colors first."""
    return [*tags.dominant_colors, tags.texture, tags.warmth, tags.journey, tags.contrast]


def tags_to_string(tags: PaletteTags) -> str:
    """Short description that skips default descriptors, e.g. 'coral warm'."""
    parts = list(tags.dominant_colors)
    if tags.warmth != 'neutral':
        parts.append(tags.warmth)
    if tags.texture != 'soft':
        parts.append(tags.texture)
    if tags.contrast != 'smooth':
        parts.append(tags.contrast)
    if tags.journey != 'stable':
        parts.append(tags.journey)
    return ' '.join(parts)


def palette_emojis(tags: PaletteTags) -> list[str]:
    """Emoji for the palette's tags, first occurrence only."""
    emojis = []
    for value in tags_to_array(tags):
        emoji = TAG_EMOJIS.get(value)
        if emoji and emoji not in emojis:
            emojis.append(emoji)
    return emojis


# =============================================================================
# Embedding Text
# =============================================================================

def assemble_embed_text(emojis, tag_values, themes) -> str:
    """
    Join emoji, tag values and themes into one space-separated stream.

    Exact duplicates are dropped, keeping the first occurrence.
    """
    tokens = dict.fromkeys([*emojis, *tag_values, *themes])
    return ' '.join(tokens)


def build_embed_text(tags: PaletteTags, themes=()) -> str:
    """Embedding input for a palette: emoji ++ tags ++ themes."""
    return assemble_embed_text(palette_emojis(tags), tags_to_array(tags), themes)


def analyze_seed(seed: str, themes=()) -> Optional[PaletteAnalysis]:
    """
    Full tag analysis for a seed, or None if the seed does not decode.

    Tags describe the palette as rendered, with its global modifiers applied.
    """
    try:
        coeffs, globals_ = deserialize_coeffs(seed)
    except SeedError as e:
        logger.debug(f"No tags for seed {seed!r}: {e}")
        return None

    tags = analyze_coefficients(apply_globals(coeffs, globals_))
    emojis = palette_emojis(tags)
    tag_values = tags_to_array(tags)
    return PaletteAnalysis(
        tags=tags,
        tag_values=tag_values,
        emojis=emojis,
        embed_text=assemble_embed_text(emojis, tag_values, themes),
    )


# =============================================================================
# Palette Validation
# =============================================================================

def is_valid_palette_colors(colors: list[str]) -> bool:
    """
    Check that a palette's rendered colors look like a real gradient.

    Rejects an empty list, malformed hex, near-black palettes and palettes
    where every color is the same.
    """
    if not colors:
        return False

    try:
        rgb = np.array([hex_to_rgb(c) for c in colors], dtype=np.float64)
    except ValueError:
        return False

    if calculate_average_brightness(colors) < MIN_COLOR_BRIGHTNESS:
        return False

    if len(rgb) > 1 and np.all(np.abs(rgb - rgb[0]) < 3):
        return False

    return True


def is_valid_palette_coeffs(coeffs) -> bool:
    """
    Check that a coefficient matrix is a finite 4x4 and renders visibly.
    """
    try:
        matrix = np.asarray(coeffs, dtype=np.float64)
    except (TypeError, ValueError):
        return False

    if matrix.shape != (4, 4) or not np.all(np.isfinite(matrix)):
        return False

    samples = cosine_gradient(VALIDATION_STOPS, matrix)
    avg_brightness = samples.mean()
    if avg_brightness < 0.02:
        return False

    # Flat and dark
    flat = np.all(np.abs(samples - samples[0]) < 0.02)
    if flat and avg_brightness < 0.1:
        return False

    return True
