#!/usr/bin/env python3
"""
Stage generated palettes for curation.

Filters raw generated palettes for quality, then merges near-duplicates
with the same first-match rule as the refine view. In incremental mode new
palettes are first matched against already staged ones, whose themes are
extended instead of creating a new record.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from cosine_palette import calculate_average_frequency, calculate_contrast
from palette_similarity import as_list, coeff_distance, flatten_coeffs, merge_themes
from seed_codec import SeedError, deserialize_coeffs

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

DEFAULT_MIN_CONTRAST = 0.05
DEFAULT_MAX_FREQUENCY = 1.5
DEFAULT_SIMILARITY_THRESHOLD = 0.25
DOMINATED_RATIO = 0.9  # Share of identical colors that makes a palette flat


# =============================================================================
# Data Model
# =============================================================================

@dataclass
class GeneratedPalette:
    """A palette as produced by a generation cycle."""
    id: str
    cycle: int = 0
    tag: str = ''
    theme: Optional[str] = None
    seed: Optional[str] = None
    colors: list = field(default_factory=list)
    style: Optional[str] = None
    steps: Optional[int] = None
    angle: Optional[float] = None
    model_key: Optional[str] = None


@dataclass(eq=False)
class StagedRecord:
    """A staged palette ready to insert."""
    source_id: str
    cycle: int
    tag: str
    seed: str
    colors: list
    themes: list
    flat_coeffs: np.ndarray
    style: Optional[str] = None
    steps: Optional[int] = None
    angle: Optional[float] = None
    model_key: Optional[str] = None


@dataclass(eq=False)
class ExistingStaged:
    """An already staged palette used for incremental matching."""
    id: str
    seed: str
    themes: list
    flat_coeffs: np.ndarray


@dataclass
class FilterStats:
    """Why generated palettes were kept or dropped."""
    total: int = 0
    no_seed: int = 0
    invalid_seed: int = 0
    dominated: int = 0  # 90%+ same color
    low_contrast: int = 0
    high_frequency: int = 0
    duplicates: int = 0
    existing_matches: int = 0
    passed: int = 0


@dataclass
class StagingResult:
    """Output of a staging pass."""
    staged: list  # StagedRecord
    theme_updates: dict  # existing id -> full theme list
    stats: FilterStats


# =============================================================================
# Filters
# =============================================================================

def is_dominated_palette(colors: list[str]) -> bool:
    """True if one color (case-insensitive) makes up over 90% of the list."""
    if not colors:
        return True

    normalized = [c.lower() for c in colors]
    same = sum(1 for c in normalized if c == normalized[0])
    return same / len(colors) > DOMINATED_RATIO


def find_similar(flat_coeffs: np.ndarray, candidates: list, threshold: float) -> int:
    """Index of the first candidate closer than threshold, or -1."""
    for i, candidate in enumerate(candidates):
        if coeff_distance(flat_coeffs, candidate.flat_coeffs) < threshold:
            return i
    return -1


def load_existing(records: list) -> list[ExistingStaged]:
    """Decode existing staged palettes, skipping unusable seeds."""
    existing = []
    for record in records:
        record_id = record.get('id') or record.get('_id')
        if not record_id:
            logger.debug(f"Ignoring staged record without id: {record!r}")
            continue

        seed = record.get('seed')
        try:
            coeffs, _ = deserialize_coeffs(seed)
        except SeedError as e:
            logger.debug(f"Ignoring staged {record_id}: {e}")
            continue
        existing.append(ExistingStaged(
            id=str(record_id),
            seed=seed,
            themes=as_list(record.get('themes')),
            flat_coeffs=flatten_coeffs(coeffs),
        ))
    return existing


# =============================================================================
# Pipeline
# =============================================================================

def stage_palettes(generated: list, existing: Optional[list] = None,
                   min_contrast: float = DEFAULT_MIN_CONTRAST,
                   max_frequency: float = DEFAULT_MAX_FREQUENCY,
                   similarity_threshold: float = DEFAULT_SIMILARITY_THRESHOLD) -> StagingResult:
    """
    Filter and deduplicate generated palettes.

    Args:
        generated: GeneratedPalette records in processing order
        existing: Already staged records ({'id', 'seed', 'themes'}) for
            incremental mode, or None for a full rebuild
        min_contrast: Drop palettes with a smaller lightness spread
        max_frequency: Drop palettes with a higher mean frequency
        similarity_threshold: Euclidean cutoff for duplicates

    Returns:
        StagingResult with new records, theme updates and filter stats
    """
    incremental = existing is not None
    existing_palettes = load_existing(existing) if incremental else []
    theme_updates = {}

    stats = FilterStats(total=len(generated))
    staged = []

    for palette in generated:
        if not palette.seed:
            stats.no_seed += 1
            continue

        try:
            coeffs, _ = deserialize_coeffs(palette.seed)
        except SeedError:
            stats.invalid_seed += 1
            continue
        flat = flatten_coeffs(coeffs)

        if is_dominated_palette(palette.colors):
            stats.dominated += 1
            continue

        try:
            contrast = calculate_contrast(palette.colors)
        except ValueError:
            # Unreadable colors have no measurable contrast
            contrast = 0.0
        if contrast < min_contrast:
            stats.low_contrast += 1
            continue

        if calculate_average_frequency(coeffs) > max_frequency:
            stats.high_frequency += 1
            continue

        if incremental:
            match = find_similar(flat, existing_palettes, similarity_threshold)
            if match >= 0:
                stats.existing_matches += 1
                if palette.theme:
                    target = existing_palettes[match]
                    themes = theme_updates.setdefault(target.id, list(target.themes))
                    merge_themes(themes, [palette.theme])
                continue

        match = find_similar(flat, staged, similarity_threshold)
        if match >= 0:
            stats.duplicates += 1
            if palette.theme:
                merge_themes(staged[match].themes, [palette.theme])
            continue

        staged.append(StagedRecord(
            source_id=palette.id,
            cycle=palette.cycle,
            tag=palette.tag,
            seed=palette.seed,
            colors=palette.colors,
            themes=[palette.theme] if palette.theme else [],
            flat_coeffs=flat,
            style=palette.style,
            steps=palette.steps,
            angle=palette.angle,
            model_key=palette.model_key,
        ))
        stats.passed += 1

    logger.info(f"Staging stats: {stats}")
    return StagingResult(staged=staged, theme_updates=theme_updates, stats=stats)


# =============================================================================
# JSON
# =============================================================================

def generated_from_dict(record: dict) -> GeneratedPalette:
    """Build a GeneratedPalette from a JSON record."""
    return GeneratedPalette(
        id=str(record.get('id') or record.get('_id', '')),
        cycle=int(record.get('cycle') or 0),
        tag=record.get('tag') or '',
        theme=record.get('theme'),
        seed=record.get('seed'),
        colors=as_list(record.get('colors')),
        style=record.get('style'),
        steps=record.get('steps'),
        angle=record.get('angle'),
        model_key=record.get('modelKey'),
    )


def staged_to_dict(record: StagedRecord) -> dict:
    """JSON-ready form of a staged record."""
    return {
        'id': record.source_id,
        'sourceId': record.source_id,
        'cycle': record.cycle,
        'tag': record.tag,
        'seed': record.seed,
        'colors': record.colors,
        'themes': record.themes,
        'style': record.style,
        'steps': record.steps,
        'angle': record.angle,
        'modelKey': record.model_key,
        'flatCoeffs': [float(v) for v in record.flat_coeffs],
    }


# =============================================================================
# CLI
# =============================================================================

def main():
    import argparse
    import json
    import sys
    from dataclasses import asdict
    from pathlib import Path

    parser = argparse.ArgumentParser(
        description='Filter and deduplicate generated palettes into a staged set.'
    )
    parser.add_argument(
        '--input', '-i',
        required=True,
        help='JSON file with generated palettes'
    )
    parser.add_argument(
        '--output', '-o',
        required=True,
        help='JSON file for the staged palettes'
    )
    parser.add_argument(
        '--existing', '-e',
        help='Already staged palettes (JSON); enables incremental mode'
    )
    parser.add_argument(
        '--min-contrast',
        type=float,
        default=DEFAULT_MIN_CONTRAST,
        help=f'Minimum lightness spread (default {DEFAULT_MIN_CONTRAST})'
    )
    parser.add_argument(
        '--max-frequency',
        type=float,
        default=DEFAULT_MAX_FREQUENCY,
        help=f'Maximum mean frequency (default {DEFAULT_MAX_FREQUENCY})'
    )
    parser.add_argument(
        '--similarity-threshold',
        type=float,
        default=DEFAULT_SIMILARITY_THRESHOLD,
        help=f'Duplicate distance cutoff (default {DEFAULT_SIMILARITY_THRESHOLD})'
    )
    parser.add_argument(
        '--verbose', '-v',
        action='store_true',
        help='Log skipped palettes'
    )

    args = parser.parse_args()
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(levelname)s %(name)s: %(message)s')

    input_path = Path(args.input)
    if not input_path.is_file():
        print(f"Error: Input file not found: {input_path}", file=sys.stderr)
        sys.exit(2)

    existing_path = Path(args.existing) if args.existing else None
    if existing_path is not None and not existing_path.is_file():
        print(f"Error: Existing file not found: {existing_path}", file=sys.stderr)
        sys.exit(2)

    try:
        existing = json.loads(existing_path.read_text()) if existing_path else None
        generated = [generated_from_dict(r) for r in json.loads(input_path.read_text())]
        result = stage_palettes(
            generated,
            existing=existing,
            min_contrast=args.min_contrast,
            max_frequency=args.max_frequency,
            similarity_threshold=args.similarity_threshold,
        )
    except (ValueError, TypeError, KeyError, AttributeError) as e:
        print(f"Error: {type(e).__name__}: {e}", file=sys.stderr)
        sys.exit(1)

    print(f"Mode: {'incremental' if existing is not None else 'full'}")
    for name, value in asdict(result.stats).items():
        print(f"  {name}: {value}")
    print(f"New staged palettes: {len(result.staged)}")
    if existing is not None:
        print(f"Existing palettes with new themes: {len(result.theme_updates)}")

    payload = {
        'staged': [staged_to_dict(r) for r in result.staged],
        'themeUpdates': result.theme_updates,
        'stats': asdict(result.stats),
    }
    output_path = Path(args.output)
    try:
        output_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False))
    except OSError as e:
        print(f"Error writing output: {e}", file=sys.stderr)
        sys.exit(1)
    print(f"Wrote: {output_path}")


if __name__ == '__main__':
    main()
