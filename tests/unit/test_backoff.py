"""Tests for generation retry backoff."""

import pytest

from lexdraft.generation.backoff import compute_backoff_delay


def test_delay_doubles_per_attempt():
    assert compute_backoff_delay(1, 500, 2000) == 500
    assert compute_backoff_delay(2, 500, 2000) == 1000
    assert compute_backoff_delay(3, 500, 2000) == 2000


def test_delay_is_capped():
    assert compute_backoff_delay(4, 500, 2000) == 2000
    assert compute_backoff_delay(10, 500, 2000) == 2000


def test_defaults_match_generation_settings():
    assert compute_backoff_delay(1) == 500
    assert compute_backoff_delay(2) == 1000


def test_attempt_is_one_indexed():
    with pytest.raises(ValueError):
        compute_backoff_delay(0)
