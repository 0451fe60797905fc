"""Tests for the overlapping model: solving, saving into a grid sink and continuing already painted tiles."""

from __future__ import annotations

import numpy as np
import pytest

from helpers import pattern_windows, windows
from model.errors import ConfigurationError
from model.grid import ArrayGridSource, TileGrid
from model.overlapping_model import OverlappingModel


def assert_checkerboard(region: np.ndarray) -> None:
    """Every cell differs from its right and bottom neighbor."""
    assert (region != -1).all()
    rows, cols = np.indices(region.shape)
    np.testing.assert_array_equal(region, (region[0, 0] + rows + cols) % 2)


@pytest.fixture
def diagonal_model(checkerboard: ArrayGridSource, output: TileGrid) -> OverlappingModel:
    """A 4x4 model of the non-periodic checkerboard, whose only solutions are checkerboards."""
    return OverlappingModel([checkerboard], output, 2, 4, 4, periodic_input=False, symmetry=1)


# =============================================================================
# Solving and Saving
# =============================================================================


def test_output_only_contains_sample_patterns(checkerboard: ArrayGridSource, output: TileGrid) -> None:
    model = OverlappingModel([checkerboard], output, 2, 6, 6, symmetry=1)

    assert any(model.run(seed) for seed in range(1, 11))
    assert model.save() == 36

    painted = output.to_array((0, 0), (6, 6))
    assert windows(painted, 2) <= pattern_windows(model.catalog.patterns)


def test_save_at_origin(diagonal_model: OverlappingModel, output: TileGrid) -> None:
    assert diagonal_model.run(1)
    diagonal_model.save((-10, 20))

    assert len(output) == 16
    assert output.bounds() == ((-10, 20), (4, 4))
    assert_checkerboard(output.to_array((-10, 20), (4, 4)))


def test_same_seed_same_tiles(checkerboard: ArrayGridSource) -> None:
    first_output = TileGrid()
    second_output = TileGrid()
    first = OverlappingModel([checkerboard], first_output, 2, 8, 8, symmetry=8)
    second = OverlappingModel([checkerboard], second_output, 2, 8, 8, symmetry=8)

    for seed in range(1, 11):
        if first.run(seed):
            assert second.run(seed)
            first.save()
            second.save()
            break
    else:
        pytest.fail("No seed produced a solution")

    np.testing.assert_array_equal(first_output.to_array((0, 0), (8, 8)), second_output.to_array((0, 0), (8, 8)))


def test_periodic_checkerboard_end_to_end(checkerboard: ArrayGridSource, output: TileGrid) -> None:
    model = OverlappingModel([checkerboard], output, 2, 4, 4, periodic_input=True, periodic=True, symmetry=1)

    assert model.run(1, 0)
    assert (model.observed >= 0).all()
    assert model.save_patterns() == model.catalog.pattern_count == 7


def test_save_patterns(checkerboard: ArrayGridSource, output: TileGrid) -> None:
    model = OverlappingModel([checkerboard], output, 2, 4, 4, symmetry=1)

    assert model.save_patterns() == 7

    # Three blocks per row, each followed by an empty column and row.
    assert len(output) == 7 * 4
    np.testing.assert_array_equal(output.to_array((0, 0), (2, 2)), [[0, 1], [1, 0]])
    np.testing.assert_array_equal(output.to_array((3, 0), (2, 2)), [[1, 0], [0, 1]])
    np.testing.assert_array_equal(output.to_array((0, 3), (2, 2)), [[1, 1], [0, 0]])
    np.testing.assert_array_equal(output.to_array((0, 6), (2, 2)), [[0, 0], [0, 0]])
    assert output.is_empty((2, 0))


# =============================================================================
# Preset Tiles
# =============================================================================


def test_same_seed_same_borders_same_result(checkerboard: ArrayGridSource) -> None:
    models = []
    for _ in range(2):
        grid = TileGrid()
        grid.set_tiles({(0, y): y % 2 for y in range(6)})
        grid.set_tiles({(x, 0): x % 2 for x in range(6)})
        model = OverlappingModel([checkerboard], grid, 2, 6, 6, symmetry=1)
        model.register_preset_tiles()
        models.append(model)
    first, second = models

    assert len(first.preset_tiles) == 11
    for seed in range(1, 6):
        assert first.run(seed) == second.run(seed)
        np.testing.assert_array_equal(first.observed, second.observed)


def test_preset_tile_restricts_the_wave(diagonal_model: OverlappingModel, output: TileGrid) -> None:
    output.set_tile((0, 0), 0)
    diagonal_model.register_preset_tiles()
    solver = diagonal_model.solver

    solver.clear()
    diagonal_model.apply_preset_tiles(solver)
    assert solver.propagate()

    np.testing.assert_array_equal(solver.wave[0], [True, False])
    np.testing.assert_array_equal(solver.wave[1], [False, True])
    assert (solver.sums_of_ones.reshape(4, 4)[:3, :3] == 1).all()


def test_preset_tiles_are_kept(diagonal_model: OverlappingModel, output: TileGrid) -> None:
    output.set_tile((5, 6), 1)
    diagonal_model.register_preset_tiles((4, 4))

    assert diagonal_model.preset_tiles == {(1, 2): 1}
    assert diagonal_model.run(1)
    assert diagonal_model.save((4, 4)) == 15

    region = output.to_array((4, 4), (4, 4))
    assert region[2, 1] == 1
    assert_checkerboard(region)


def test_contradicting_preset_tiles_fail(diagonal_model: OverlappingModel, output: TileGrid) -> None:
    output.set_tile((0, 0), 0)
    output.set_tile((1, 0), 0)
    diagonal_model.register_preset_tiles()

    assert not any(diagonal_model.run(seed) for seed in range(5))


def test_unknown_preset_tile_fails(diagonal_model: OverlappingModel, output: TileGrid) -> None:
    output.set_tile((1, 1), 42)
    diagonal_model.register_preset_tiles()

    assert diagonal_model.preset_tiles == {(1, 1): -1}
    assert not diagonal_model.run(1)


def test_second_chunk_continues_the_first(diagonal_model: OverlappingModel, output: TileGrid) -> None:
    assert diagonal_model.run(1)
    diagonal_model.save((0, 0))

    # The next chunk to the right shares one column with the first.
    diagonal_model.register_preset_tiles((3, 0))
    assert len(diagonal_model.preset_tiles) == 4
    assert diagonal_model.run(2)
    assert diagonal_model.save((3, 0)) == 12

    assert_checkerboard(output.to_array((0, 0), (7, 4)))


def test_is_generated(diagonal_model: OverlappingModel) -> None:
    assert not diagonal_model.is_generated()

    assert diagonal_model.run(1)
    diagonal_model.save()

    assert diagonal_model.is_generated()
    assert not diagonal_model.is_generated((3, 0))


# =============================================================================
# Configuration Errors
# =============================================================================


def test_missing_output_is_rejected(checkerboard: ArrayGridSource) -> None:
    with pytest.raises(ConfigurationError):
        OverlappingModel([checkerboard], None, 2, 4, 4)


def test_output_smaller_than_pattern_is_rejected(checkerboard: ArrayGridSource, output: TileGrid) -> None:
    with pytest.raises(ConfigurationError):
        OverlappingModel([checkerboard], output, 3, 2, 8)


def test_invalid_catalog_is_rejected(checkerboard: ArrayGridSource, output: TileGrid) -> None:
    with pytest.raises(ConfigurationError):
        OverlappingModel([checkerboard], output, 2, 4, 4, symmetry=5)
