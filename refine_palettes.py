#!/usr/bin/env python3
"""
Refine view for staged palettes.

Decodes each palette's seed, drops corrupted palettes, then merges
near-duplicates (or not) and optionally orders clusters by size.
Three stages: Decode & Validate → Deduplicate → Present
"""

import logging
from dataclasses import dataclass

from palette_similarity import (
    PaletteWithCoeffs, StagedPalette,
    as_list, deduplicate_palettes, sort_by_dupes, without_deduplication,
)
from palette_tags import (
    analyze_seed, is_valid_palette_coeffs, is_valid_palette_colors, tags_to_string,
)
from seed_codec import SeedError, deserialize_coeffs

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

DEFAULT_THRESHOLD = 0.7
MIN_THRESHOLD = 0.05  # Operator-facing range; other values are still accepted
MAX_THRESHOLD = 2.0


@dataclass
class RefineResult:
    """Output of the refine view."""
    unique: list  # PaletteWithDupes
    duplicate_count: int
    corrupted_count: int
    total: int


# =============================================================================
# Stage 1: Decode & Validate
# =============================================================================

def decode_palettes(palettes: list) -> tuple[list, int]:
    """
    Attach coefficients to each palette, skipping corrupted ones.

    Returns:
        Tuple of (valid PaletteWithCoeffs in input order, corrupted count)
    """
    valid = []
    corrupted = 0

    for palette in palettes:
        try:
            coeffs, _ = deserialize_coeffs(palette.seed)
        except SeedError as e:
            logger.debug(f"Skipping {palette.id}: {e}")
            corrupted += 1
            continue

        if not is_valid_palette_colors(palette.colors) or not is_valid_palette_coeffs(coeffs):
            logger.debug(f"Skipping {palette.id}: corrupted colors or coefficients")
            corrupted += 1
            continue

        valid.append(PaletteWithCoeffs.from_staged(palette, coeffs))

    return valid, corrupted


# =============================================================================
# Pipeline
# =============================================================================

def refine_palettes(palettes: list, threshold: float = DEFAULT_THRESHOLD,
                    enable_dedup: bool = True, sort_dupes: bool = False) -> RefineResult:
    """
    Run the refine view over a page of staged palettes.

    Args:
        palettes: StagedPalette records in display order
        threshold: Similarity cutoff for merging
        enable_dedup: When False every valid palette is shown on its own
        sort_dupes: Order clusters by duplicate count, largest first

    Returns:
        RefineResult with clusters and counts for the operator
    """
    valid, corrupted = decode_palettes(palettes)

    if enable_dedup:
        result = deduplicate_palettes(valid, threshold)
    else:
        result = without_deduplication(valid)

    unique = sort_by_dupes(result.unique) if sort_dupes else result.unique

    logger.info(
        f"Refined {len(palettes)} palettes: {len(unique)} unique, "
        f"{result.duplicate_count} duplicates, {corrupted} corrupted"
    )

    return RefineResult(
        unique=unique,
        duplicate_count=result.duplicate_count,
        corrupted_count=corrupted,
        total=len(palettes),
    )


# =============================================================================
# Render
# =============================================================================

def render(result: RefineResult) -> str:
    """Prose summary of a refine pass."""
    lines = [
        f"Palettes: {result.total}",
        f"Unique: {len(result.unique)}",
        f"Duplicates merged: {result.duplicate_count}",
        f"Corrupted: {result.corrupted_count}",
    ]

    for rep in result.unique:
        themes = ', '.join(rep.themes) if rep.themes else rep.tag
        lines.append("")
        lines.append(f"{rep.id} [{themes}]")

        analysis = analyze_seed(rep.seed, rep.themes)
        if analysis is None:
            lines.append("  tags: unavailable")
        else:
            lines.append(f"  tags: {tags_to_string(analysis.tags)}")
            lines.append(f"  embed: {analysis.embed_text}")

        for dupe in rep.duplicates:
            lines.append(f"  + {dupe.id}")

    return '\n'.join(lines)


def result_to_dict(result: RefineResult) -> dict:
    """JSON-ready form of a refine pass."""
    return {
        'total': result.total,
        'duplicateCount': result.duplicate_count,
        'corruptedCount': result.corrupted_count,
        'unique': [
            {
                'id': rep.id,
                'seed': rep.seed,
                'colors': rep.colors,
                'themes': rep.themes,
                'tag': rep.tag,
                'duplicates': [dupe.id for dupe in rep.duplicates],
            }
            for rep in result.unique
        ],
    }


def palette_from_dict(record: dict) -> StagedPalette:
    """Build a StagedPalette from a JSON record."""
    return StagedPalette(
        id=str(record.get('id') or record.get('_id', '')),
        seed=record.get('seed') or '',
        colors=as_list(record.get('colors')),
        themes=as_list(record.get('themes')),
        tag=record.get('tag') or '',
    )


# =============================================================================
# CLI
# =============================================================================

def main():
    import argparse
    import json
    import sys
    from pathlib import Path

    parser = argparse.ArgumentParser(
        description='Group near-duplicate staged palettes for review.'
    )
    parser.add_argument(
        '--input', '-i',
        required=True,
        help='JSON file with a list of staged palettes'
    )
    parser.add_argument(
        '--threshold', '-t',
        type=float,
        default=DEFAULT_THRESHOLD,
        help=f'Similarity cutoff ({MIN_THRESHOLD}-{MAX_THRESHOLD}, default {DEFAULT_THRESHOLD})'
    )
    parser.add_argument(
        '--no-dedup',
        action='store_true',
        help='Show every valid palette without merging'
    )
    parser.add_argument(
        '--sort-by-dupes',
        action='store_true',
        help='List clusters with the most duplicates first'
    )
    parser.add_argument(
        '--output', '-o',
        help='Write the grouping as JSON'
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

    try:
        records = json.loads(input_path.read_text())
        palettes = [palette_from_dict(r) for r in records]
        result = refine_palettes(
            palettes,
            threshold=args.threshold,
            enable_dedup=not args.no_dedup,
            sort_dupes=args.sort_by_dupes,
        )
    except (ValueError, TypeError, AttributeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print(render(result))

    if args.output:
        output_path = Path(args.output)
        try:
            output_path.write_text(json.dumps(result_to_dict(result), indent=2, ensure_ascii=False))
            print(f"\nWrote: {output_path}")
        except OSError as e:
            print(f"Error writing output: {e}", file=sys.stderr)
            sys.exit(1)


if __name__ == '__main__':
    main()
