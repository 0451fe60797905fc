"""Tests for the generator settings and seed derivation."""

from __future__ import annotations

import dataclasses

import pytest

from enums import Heuristic
from model.errors import ConfigurationError
from model.settings import GeneratorSettings, chunk_attempt_seed, world_seed_from


def test_defaults() -> None:
    settings = GeneratorSettings()

    assert settings.pattern_size == 2
    assert settings.chunk_size == (65, 65)
    assert settings.chunk_spacing == (64, 64)
    assert settings.max_attempts == 10
    assert settings.heuristic is Heuristic.ENTROPY


def test_spacing_follows_pattern_size() -> None:
    settings = GeneratorSettings(pattern_size=3, chunk_width=10, chunk_height=12)

    assert settings.chunk_spacing == (8, 10)


def test_explicit_spacing() -> None:
    settings = GeneratorSettings(pattern_size=3, chunk_width=10, chunk_height=12, x_spacing=5)

    assert settings.chunk_spacing == (5, 10)


def test_settings_are_frozen() -> None:
    settings = GeneratorSettings()

    with pytest.raises(dataclasses.FrozenInstanceError):
        settings.seed = 5


@pytest.mark.parametrize(
    "overrides",
    [
        {"pattern_size": 0},
        {"pattern_size": 3, "chunk_width": 2},
        {"symmetry": 3},
        {"max_attempts": 0},
        {"x_spacing": 0},
        {"y_spacing": 100},
        {"idle_poll_interval_empty": 0},
    ],
)
def test_invalid_settings_are_rejected(overrides: dict) -> None:
    with pytest.raises(ConfigurationError):
        GeneratorSettings(**overrides)


def test_numeric_seed_strings() -> None:
    assert world_seed_from("123") == 123
    assert world_seed_from(123) == 123
    assert world_seed_from(-1) == 2**64 - 1


def test_text_seeds_are_stable() -> None:
    seed = world_seed_from("mossy caverns")

    assert seed == world_seed_from("mossy caverns")
    assert seed != world_seed_from("mossy cavern")
    assert 0 <= seed < 2**64
    assert GeneratorSettings(seed="mossy caverns").world_seed == seed


def test_chunk_attempt_seeds() -> None:
    seed = chunk_attempt_seed(42, (0, 0), 0)

    assert seed == chunk_attempt_seed(42, (0, 0), 0)
    assert seed != chunk_attempt_seed(42, (0, 0), 1)
    assert seed != chunk_attempt_seed(42, (64, 0), 0)
    assert seed != chunk_attempt_seed(43, (0, 0), 0)
    assert chunk_attempt_seed(42, (-64, -64), 0) != chunk_attempt_seed(42, (64, 64), 0)
    assert 0 <= chunk_attempt_seed(2**64 - 1, (-1, -1), 9) < 2**64
