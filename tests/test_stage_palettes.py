"""Tests for the staging pipeline."""

import json
import sys

import pytest

from cosine_palette import coeffs_to_hex
from seed_codec import serialize_coeffs
from stage_palettes import (
    GeneratedPalette,
    find_similar,
    generated_from_dict,
    is_dominated_palette,
    load_existing,
    main,
    stage_palettes,
    staged_to_dict,
)


@pytest.fixture
def make_generated():
    def _make(id, coeffs, theme=None, colors=None):
        return GeneratedPalette(
            id=id,
            cycle=1,
            tag='cycle-1',
            theme=theme,
            seed=serialize_coeffs(coeffs),
            colors=coeffs_to_hex(coeffs) if colors is None else colors,
        )
    return _make


class TestFilters:

    def test_each_filter_counts_once(self, make_generated, rainbow, other):
        fast = rainbow.copy()
        fast[2, :3] = 2.0
        rainbow_colors = coeffs_to_hex(rainbow)

        generated = [
            GeneratedPalette(id='g0', seed=None, colors=rainbow_colors),
            GeneratedPalette(id='g1', seed='not a seed!!', colors=rainbow_colors),
            make_generated('g2', rainbow, colors=['#ffffff'] * 10),
            make_generated('g3', rainbow, colors=['#808080', '#818181', '#828282']),
            make_generated('g4', fast, colors=rainbow_colors),
            make_generated('g5', rainbow, theme='sunset'),
            make_generated('g6', rainbow, theme='beach'),
            make_generated('g7', other),
        ]

        result = stage_palettes(generated)
        stats = result.stats

        assert stats.total == 8
        assert stats.no_seed == 1
        assert stats.invalid_seed == 1
        assert stats.dominated == 1
        assert stats.low_contrast == 1
        assert stats.high_frequency == 1
        assert stats.duplicates == 1
        assert stats.passed == 2
        assert stats.existing_matches == 0

        assert [r.source_id for r in result.staged] == ['g5', 'g7']
        assert result.staged[0].themes == ['sunset', 'beach']
        assert result.staged[1].themes == []
        assert result.theme_updates == {}

    def test_unreadable_colors_are_low_contrast(self, make_generated, rainbow):
        result = stage_palettes([make_generated('g', rainbow, colors=['#000000', 'nope'])])
        assert result.stats.low_contrast == 1

    def test_thresholds_are_configurable(self, make_generated, rainbow):
        generated = [make_generated('g', rainbow)]
        assert stage_palettes(generated, min_contrast=1.5).stats.low_contrast == 1
        assert stage_palettes(generated, max_frequency=0.5).stats.high_frequency == 1

    @pytest.mark.parametrize('colors, dominated', [
        ([], True),
        (['#ABCDEF', '#abcdef'], True),
        (['#111111'] * 9 + ['#222222'], False),
        (['#111111'] * 10 + ['#222222'], True),
        (['#111111', '#222222', '#111111'], False),
    ])
    def test_is_dominated_palette(self, colors, dominated):
        assert is_dominated_palette(colors) is dominated

    def test_find_similar(self, make_generated, rainbow, other):
        staged = stage_palettes([make_generated('r', rainbow), make_generated('o', other)]).staged
        target = staged[1].flat_coeffs
        assert find_similar(target, staged, 0.25) == 1
        assert find_similar(target, staged, 5.0) == 0
        assert find_similar(target, [], 5.0) == -1


class TestIncremental:

    def test_existing_matches_extend_themes(self, make_generated, rainbow, other):
        existing = [
            {'id': 's1', 'seed': serialize_coeffs(rainbow), 'themes': ['ocean']},
            {'id': 's2', 'seed': 'broken!!', 'themes': []},
        ]
        generated = [
            make_generated('g1', rainbow, theme='sunset'),
            make_generated('g2', rainbow, theme='ocean'),
            make_generated('g3', other, theme='forest'),
        ]

        result = stage_palettes(generated, existing=existing)

        assert result.stats.existing_matches == 2
        assert result.theme_updates == {'s1': ['ocean', 'sunset']}
        assert [r.source_id for r in result.staged] == ['g3']
        assert result.staged[0].themes == ['forest']
        assert result.stats.passed == 1
        # Existing records are not mutated
        assert existing[0]['themes'] == ['ocean']

    def test_existing_records_missing_fields_are_skipped(self, make_generated, rainbow):
        existing = [
            {'id': 'x1', 'themes': []},
            {'seed': serialize_coeffs(rainbow), 'themes': ['lost']},
            {'id': 'x2', 'seed': serialize_coeffs(rainbow), 'themes': ['old']},
        ]
        result = stage_palettes([make_generated('g', rainbow, theme='dawn')], existing=existing)

        assert result.theme_updates == {'x2': ['old', 'dawn']}
        assert result.stats.existing_matches == 1
        assert result.staged == []

    def test_load_existing_skips_bad_seeds(self, rainbow):
        loaded = load_existing([
            {'id': 's1', 'seed': serialize_coeffs(rainbow), 'themes': ['ocean']},
            {'id': 's2', 'seed': '', 'themes': []},
        ])
        assert [e.id for e in loaded] == ['s1']
        assert loaded[0].flat_coeffs.shape == (12,)


class TestJson:

    def test_generated_from_dict(self):
        palette = generated_from_dict({
            '_id': 'x', 'seed': 'abc', 'cycle': '3', 'modelKey': 'gpt', 'theme': 'dusk',
        })
        assert palette.id == 'x'
        assert palette.cycle == 3
        assert palette.model_key == 'gpt'
        assert palette.theme == 'dusk'
        assert palette.colors == []

    def test_bare_string_colors(self):
        palette = generated_from_dict({'id': 'x', 'colors': '#ff0000'})
        assert palette.colors == ['#ff0000']

    def test_existing_theme_string(self, rainbow):
        loaded = load_existing([{'id': 's1', 'seed': serialize_coeffs(rainbow), 'themes': 'ocean'}])
        assert loaded[0].themes == ['ocean']

    def test_staged_to_dict(self, make_generated, rainbow):
        record = stage_palettes([make_generated('g', rainbow, theme='dusk')]).staged[0]
        data = staged_to_dict(record)
        assert data['sourceId'] == 'g'
        assert data['themes'] == ['dusk']
        assert len(data['flatCoeffs']) == 12
        json.dumps(data)


class TestCli:

    def test_full_mode(self, make_generated, rainbow, other, tmp_path, monkeypatch, capsys):
        input_path = tmp_path / 'generated.json'
        output_path = tmp_path / 'staged.json'
        records = []
        for palette in [
            make_generated('g1', rainbow, theme='sunset'),
            make_generated('g2', rainbow, theme='beach'),
            make_generated('g3', other),
        ]:
            records.append({
                'id': palette.id, 'seed': palette.seed,
                'colors': palette.colors, 'theme': palette.theme,
            })
        input_path.write_text(json.dumps(records))

        monkeypatch.setattr(sys, 'argv', [
            'stage-palettes', '--input', str(input_path), '--output', str(output_path),
        ])
        main()

        out = capsys.readouterr().out
        assert 'Mode: full' in out
        assert 'New staged palettes: 2' in out

        data = json.loads(output_path.read_text())
        assert data['stats']['duplicates'] == 1
        assert data['staged'][0]['themes'] == ['sunset', 'beach']
        assert data['themeUpdates'] == {}

    def test_malformed_existing_file(self, tmp_path, monkeypatch, capsys):
        input_path = tmp_path / 'generated.json'
        input_path.write_text('[]')
        existing_path = tmp_path / 'existing.json'
        existing_path.write_text('not json')
        monkeypatch.setattr(sys, 'argv', [
            'stage-palettes', '-i', str(input_path), '-o', str(tmp_path / 'out.json'),
            '--existing', str(existing_path),
        ])
        with pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 1
        assert 'Error' in capsys.readouterr().err
        assert not (tmp_path / 'out.json').exists()

    def test_incremental_mode(self, make_generated, rainbow, tmp_path, monkeypatch, capsys):
        palette = make_generated('g1', rainbow, theme='sunset')
        input_path = tmp_path / 'generated.json'
        input_path.write_text(json.dumps([
            {'id': palette.id, 'seed': palette.seed, 'colors': palette.colors, 'theme': 'sunset'},
        ]))
        existing_path = tmp_path / 'existing.json'
        existing_path.write_text(json.dumps([
            {'id': 's1', 'seed': palette.seed, 'themes': ['ocean']},
        ]))
        output_path = tmp_path / 'out.json'
        monkeypatch.setattr(sys, 'argv', [
            'stage-palettes', '-i', str(input_path), '-o', str(output_path),
            '-e', str(existing_path),
        ])
        main()

        assert 'Mode: incremental' in capsys.readouterr().out
        data = json.loads(output_path.read_text())
        assert data['themeUpdates'] == {'s1': ['ocean', 'sunset']}
        assert data['staged'] == []

    def test_missing_existing_file(self, tmp_path, monkeypatch):
        input_path = tmp_path / 'generated.json'
        input_path.write_text('[]')
        monkeypatch.setattr(sys, 'argv', [
            'stage-palettes', '-i', str(input_path), '-o', str(tmp_path / 'out.json'),
            '--existing', str(tmp_path / 'nope.json'),
        ])
        with pytest.raises(SystemExit) as exc:
            main()
        assert exc.value.code == 2
