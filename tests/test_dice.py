"""Tests for dice-notation rolls."""

import random

import pytest

from shopkeeper.dice import roll_dice


def test_bare_integer_string_is_literal():
    assert roll_dice("4") == 4


def test_int_passthrough():
    assert roll_dice(7) == 7


@pytest.mark.parametrize("notation", ["-2", " -10 ", -3])
def test_negative_literal_floors_at_zero(notation):
    assert roll_dice(notation) == 0


@pytest.mark.parametrize("seed", range(20))
def test_roll_in_range(seed):
    rng = random.Random(seed)
    result = roll_dice("3d6", rng)
    assert 3 <= result <= 18


@pytest.mark.parametrize("seed", range(20))
def test_subtract_floors_at_zero(seed):
    rng = random.Random(seed)
    result = roll_dice("1d2-1", rng)
    assert result in (0, 1)


def test_subtract_more_than_max_is_zero():
    assert roll_dice("1d4-10", random.Random(1)) == 0


def test_seeded_rolls_repeat():
    assert roll_dice("2d4", random.Random(42)) == roll_dice("2d4", random.Random(42))


def test_invalid_notation_defaults_to_one(caplog):
    with caplog.at_level("WARNING"):
        assert roll_dice("three dice") == 1
    assert "Invalid dice notation" in caplog.text


def test_zero_dice_defaults_to_one():
    assert roll_dice("0d6") == 1
