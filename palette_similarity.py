#!/usr/bin/env python3
"""
Palette similarity and near-duplicate merging.

Palettes are compared by the Euclidean distance between their flattened
coefficients (R, G, B of each of the four rows; alpha is ignored). Merging
is a greedy single pass: each palette joins the first earlier representative
closer than the threshold, otherwise it becomes a representative itself.
Membership depends on input order and is not transitive.
"""

from dataclasses import dataclass, field, fields
from typing import Optional

import numpy as np


FLAT_LENGTH = 12


# =============================================================================
# Data Model
# =============================================================================

@dataclass(eq=False)
class StagedPalette:
    """A palette awaiting curation."""
    id: str
    seed: str
    colors: list = field(default_factory=list)  # hex strings
    themes: list = field(default_factory=list)  # order-significant
    tag: str = ''


@dataclass(eq=False)
class PaletteWithCoeffs(StagedPalette):
    """A staged palette with its decoded coefficients."""
    coeffs: Optional[np.ndarray] = None  # (4, 4)
    flat_coeffs: Optional[np.ndarray] = None  # (12,)

    @classmethod
    def from_staged(cls, palette: StagedPalette, coeffs) -> 'PaletteWithCoeffs':
        coeffs = np.asarray(coeffs, dtype=np.float64)
        return cls(
            id=palette.id,
            seed=palette.seed,
            colors=palette.colors,
            themes=palette.themes,
            tag=palette.tag,
            coeffs=coeffs,
            flat_coeffs=flatten_coeffs(coeffs),
        )


@dataclass(eq=False)
class PaletteWithDupes(PaletteWithCoeffs):
    """A cluster representative and the palettes merged into it."""
    duplicates: list = field(default_factory=list)  # PaletteWithCoeffs

    @classmethod
    def from_palette(cls, palette: PaletteWithCoeffs) -> 'PaletteWithDupes':
        """Start a cluster; themes are copied so merges leave the input alone."""
        values = {f.name: getattr(palette, f.name) for f in fields(PaletteWithCoeffs)}
        values['themes'] = list(palette.themes)
        return cls(**values, duplicates=[])


def as_list(value) -> list:
    """A JSON list field as a list; a bare string counts as one item."""
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


@dataclass
class DedupResult:
    """Output of a deduplication pass."""
    unique: list  # PaletteWithDupes, in first-seen order
    duplicate_count: int


# =============================================================================
# Distance
# =============================================================================

def flatten_coeffs(coeffs) -> np.ndarray:
    """R, G, B of each coefficient row in row-major order (12 values)."""
    return np.asarray(coeffs, dtype=np.float64)[:, :3].reshape(-1)


def coeff_distance(a: np.ndarray, b: np.ndarray) -> float:
    """Euclidean distance between two flattened coefficient vectors."""
    return float(np.linalg.norm(np.asarray(a) - np.asarray(b)))


# =============================================================================
# Deduplication
# =============================================================================

def merge_themes(target: list, themes: list) -> None:
    """Append themes not already in target, keeping target's order."""
    for theme in themes:
        if theme not in target:
            target.append(theme)


def deduplicate_palettes(palettes: list, threshold: float) -> DedupResult:
    """
    Merge near-duplicate palettes in a single greedy pass.

    Args:
        palettes: PaletteWithCoeffs in processing order
        threshold: Merge when distance is strictly below this value
            (identical vectors always merge)

    Returns:
        DedupResult with representatives in first-seen order
    """
    if threshold < 0:
        raise ValueError(f"Threshold must be non-negative, got {threshold}")

    unique = []
    duplicate_count = 0

    for palette in palettes:
        match = None
        # Earliest representative wins, not the closest
        for rep in unique:
            dist = coeff_distance(palette.flat_coeffs, rep.flat_coeffs)
            # Identical vectors merge even at threshold 0
            if dist < threshold or dist == 0:
                match = rep
                break

        if match is not None:
            merge_themes(match.themes, palette.themes)
            match.duplicates.append(palette)
            duplicate_count += 1
        else:
            unique.append(PaletteWithDupes.from_palette(palette))

    return DedupResult(unique=unique, duplicate_count=duplicate_count)


def without_deduplication(palettes: list) -> DedupResult:
    """Every palette is its own representative; no comparisons are made."""
    return DedupResult(
        unique=[PaletteWithDupes.from_palette(p) for p in palettes],
        duplicate_count=0,
    )


def sort_by_dupes(unique: list) -> list:
    """Representatives with the most duplicates first (stable)."""
    return sorted(unique, key=lambda rep: -len(rep.duplicates))
