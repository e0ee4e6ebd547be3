"""Tests for seed serialization."""

import math

import numpy as np
import pytest
from lzstring import LZString

from cosine_palette import DEFAULT_GLOBALS
from seed_codec import (
    SeedError,
    deserialize_coeffs,
    format_number,
    is_valid_seed,
    parse_number,
    serialize_coeffs,
)


def _compress(text):
    return LZString().compressToEncodedURIComponent(text)


class TestNumbers:

    @pytest.mark.parametrize('value, text', [
        (0, '0'),
        (0.5, '.500'),
        (-0.25, '-.250'),
        (1.5, '1.500'),
        (-2, '-2.000'),
    ])
    def test_format(self, value, text):
        assert format_number(value) == text

    def test_parse_short_forms(self):
        assert parse_number('.5') == 0.5
        assert parse_number('-.25') == -0.25
        assert parse_number('0') == 0.0
        assert parse_number('1.250') == 1.25

    def test_parse_garbage(self):
        with pytest.raises(ValueError):
            parse_number('abc')


class TestRoundTrip:

    def test_coefficients(self, rainbow):
        coeffs, globals_ = deserialize_coeffs(serialize_coeffs(rainbow))
        assert coeffs.shape == (4, 4)
        assert np.allclose(coeffs, rainbow)
        assert globals_ == DEFAULT_GLOBALS

    def test_alpha_is_restored(self, rainbow):
        rainbow[:, 3] = 0.2
        coeffs, _ = deserialize_coeffs(serialize_coeffs(rainbow))
        assert np.all(coeffs[:, 3] == 1)

    def test_non_default_globals(self, rainbow):
        globals_ = (0.1, 1.2, 1.0, 0.5)
        _, decoded = deserialize_coeffs(serialize_coeffs(rainbow, globals_))
        assert decoded == pytest.approx(globals_)

    def test_default_globals_are_omitted(self, rainbow):
        plain = LZString().decompressFromEncodedURIComponent(serialize_coeffs(rainbow))
        assert len(plain.split(',')) == 12

    def test_rounds_to_precision(self, rainbow):
        rainbow[0, 0] = 0.12345
        coeffs, _ = deserialize_coeffs(serialize_coeffs(rainbow))
        assert coeffs[0, 0] == pytest.approx(0.123)


class TestDecodeErrors:

    def test_legacy_phase_is_rescaled(self):
        numbers = ['.5'] * 12 + ['0', '1', '1', '3.1416']
        _, globals_ = deserialize_coeffs(_compress(','.join(numbers)))
        assert globals_[3] == pytest.approx(3.1416 / math.pi)

    @pytest.mark.parametrize('seed', ['', 'not a seed!!', None])
    def test_garbage(self, seed):
        with pytest.raises(SeedError):
            deserialize_coeffs(seed)

    def test_wrong_count(self):
        with pytest.raises(SeedError, match='expected 12 or 16'):
            deserialize_coeffs(_compress('1,2,3'))

    def test_non_finite(self):
        with pytest.raises(SeedError):
            deserialize_coeffs(_compress(','.join(['1'] * 11 + ['nan'])))

    def test_unparsable_number(self):
        with pytest.raises(SeedError):
            deserialize_coeffs(_compress(','.join(['1'] * 11 + ['x'])))

    def test_seed_error_is_value_error(self):
        assert issubclass(SeedError, ValueError)

    def test_is_valid_seed(self, rainbow):
        assert is_valid_seed(serialize_coeffs(rainbow))
        assert not is_valid_seed('not a seed!!')
        assert not is_valid_seed('')
