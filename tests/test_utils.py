import math

import pytest

import utils


@pytest.mark.parametrize("value,digits,expected", [
    (0.125, 2, 0.13),
    (2.675, 2, 2.68),
    (12.25, 1, 12.3),
    (16.0, 2, 16.0),
    (-0.5, 0, -1.0),
])
def test_round_half_up(value, digits, expected):
    assert utils.round_half_up(value, digits) == expected

def test_round_half_up_passes_non_finite_through():
    assert math.isnan(utils.round_half_up(math.nan, 2))
    assert utils.round_half_up(math.inf, 1) == math.inf

@pytest.mark.parametrize("num_bytes,expected", [
    (0, "0.0 B"),
    (1023, "1023.0 B"),
    (1536, "1.5 KB"),
    (16 * 1024**3, "16.0 GB"),
    (3 * 1024**5, "3072.0 TB"),
    (-1, "N/A"),
    (math.nan, "N/A"),
    ("1024", "N/A"),
])
def test_format_bytes(num_bytes, expected):
    assert utils.format_bytes(num_bytes) == expected
