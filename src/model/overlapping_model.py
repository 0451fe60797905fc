"""Contains the Overlapping WFC model binding pattern data, solver and output grid together."""

from __future__ import annotations

from collections.abc import Hashable, Sequence
import logging
import math
from typing import TYPE_CHECKING

import numpy as np

from enums import Heuristic
from model.errors import ConfigurationError
from model.pattern_data import PatternCatalog
from model.wfc import WaveSolver

if TYPE_CHECKING:
    from model.grid import GridSink, GridSource
    from model.pattern_data import SymmetryMappingSource

logger = logging.getLogger(__name__)


class OverlappingModel:
    """Overlapping WFC model generating a rectangle of tiles into a grid sink.

    The model builds its pattern catalog once from the sample grids and reuses it (and the solver) for every run. A run
    solves a width x height grid of pattern anchors; saving it paints one tile per output cell at an absolute origin of
    the sink. Before a run, tiles that are already painted inside the target rectangle can be registered as preset
    tiles: the solver then starts out with every pattern banned that disagrees with them, so the new rectangle continues
    seamlessly from whatever has been generated around it.

    Attributes:
        width: The width of the generated rectangle (in tiles).
        height: The height of the generated rectangle (in tiles).
        pattern_size: The width and height N of the patterns.
        catalog: The patterns, weights and adjacency rules extracted from the samples.
        preset_tiles: Category of every already painted cell of the current target, by local (x, y) position.
    """

    width: int
    height: int
    pattern_size: int
    catalog: PatternCatalog
    preset_tiles: dict[tuple[int, int], int]

    # The grid sink the output is painted into and preset tiles are read from.
    _output: GridSink
    # If True, the output wraps around at its edges.
    _periodic: bool
    # The constraint engine working on the anchors of the output.
    _solver: WaveSolver

    def __init__(
        self,
        samples: Sequence[GridSource],
        output: GridSink,
        pattern_size: int,
        width: int,
        height: int,
        periodic_input: bool = True,
        periodic: bool = False,
        symmetry: int = 8,
        ground: bool = False,
        heuristic: Heuristic = Heuristic.ENTROPY,
        symmetry_mapping: SymmetryMappingSource | None = None,
    ) -> None:
        """Builds the pattern catalog and the solver.

        Args:
            samples: The sample grids to imitate.
            output: The grid sink the output is painted into.
            pattern_size: The width and height N of the patterns.
            width: The width of the generated rectangle (in tiles).
            height: The height of the generated rectangle (in tiles).
            periodic_input: If True, the samples are treated as wrapping around at their edges.
            periodic: If True, the output wraps around at its edges.
            symmetry: The number of symmetry variants kept per pattern (1, 2, 4 or 8).
            ground: If True, the bottom row is forced to the last pattern.
            heuristic: Strategy for selecting the next cell to observe.
            symmetry_mapping: Names the rotated/reflected counterpart of tiles.

        Raises:
            ConfigurationError: The output sink is missing, the output is smaller than a pattern, or the catalog cannot
                be built from the samples.
        """
        if output is None:
            raise ConfigurationError("An output grid sink is required.")
        if width < pattern_size or height < pattern_size:
            raise ConfigurationError(f"Output size {width}x{height} is smaller than the pattern size {pattern_size}.")

        self.width = width
        self.height = height
        self.pattern_size = pattern_size
        self.preset_tiles = {}

        self._output = output
        self._periodic = periodic

        self.catalog = PatternCatalog(samples, pattern_size, periodic_input, symmetry, symmetry_mapping)
        self._solver = WaveSolver(
            width,
            height,
            pattern_size,
            self.catalog.weights,
            self.catalog.propagator,
            periodic=periodic,
            heuristic=heuristic,
            ground=ground,
            pre_ban=self.apply_preset_tiles,
        )

        logger.info(
            "Built overlapping model: %d categories, %d patterns of size %d, output %dx%d",
            len(self.catalog.categories),
            self.catalog.pattern_count,
            pattern_size,
            width,
            height,
        )

    @property
    def solver(self) -> WaveSolver:
        """The constraint engine of the model."""
        return self._solver

    @property
    def observed(self) -> np.ndarray:
        """The observed pattern of each anchor after the last run (-1 while unresolved)."""
        return self._solver.observed

    def run(self, seed: int, limit: int = 0) -> bool:
        """Runs a solve attempt with the current preset tiles. See WaveSolver.run()."""
        return self._solver.run(seed, limit)

    def register_preset_tiles(self, origin: tuple[int, int] = (0, 0)) -> None:
        """Reads the already painted cells of the target rectangle at 'origin' into the preset tiles.

        Tiles that are not part of the catalog are registered with category -1, which agrees with no pattern and makes
        the next run fail.
        """
        self.preset_tiles = {}
        categories = self.catalog.categories
        for y in range(self.height):
            for x in range(self.width):
                position = (origin[0] + x, origin[1] + y)
                if self._output.is_empty(position):
                    continue
                self.preset_tiles[(x, y)] = categories.category_of(self._output.get_tile(position))
        logger.debug("Registered %d preset tiles at %s", len(self.preset_tiles), origin)

    def is_generated(self, origin: tuple[int, int] = (0, 0)) -> bool:
        """Checks if every cell of the target rectangle at 'origin' is already painted."""
        return all(
            not self._output.is_empty((origin[0] + x, origin[1] + y))
            for y in range(self.height)
            for x in range(self.width)
        )

    def save(self, origin: tuple[int, int] = (0, 0)) -> int:
        """Paints the result of the last run into the output sink with its top-left corner at 'origin'.

        Every cell takes its tile from the pattern anchored at the same cell, except near the right and bottom edges
        where the anchor is moved back by N - 1 so that it lies fully inside the output. Cells whose anchor is unresolved
        (after a run stopped by its limit) and cells holding a preset tile are not written.

        Returns:
            The number of tiles written.
        """
        observed = self._solver.observed
        n = self.pattern_size
        tiles: dict[tuple[int, int], Hashable] = {}

        for y in range(self.height):
            dy = 0 if y < self.height - n + 1 else n - 1
            for x in range(self.width):
                if (x, y) in self.preset_tiles:
                    continue
                dx = 0 if x < self.width - n + 1 else n - 1
                pattern = observed[x - dx + (y - dy) * self.width]
                if pattern < 0:
                    continue
                tiles[(origin[0] + x, origin[1] + y)] = self.catalog.get_tile_from_pattern(int(pattern), (dx, dy))

        self._output.set_tiles(tiles)
        logger.debug("Saved %d tiles at %s", len(tiles), origin)
        return len(tiles)

    def save_patterns(self, origin: tuple[int, int] = (0, 0)) -> int:
        """Paints every pattern of the catalog as an NxN block, with one empty cell between neighboring blocks.

        Blocks are laid out row by row, ceil(sqrt(T)) blocks per row, starting at 'origin'.

        Returns:
            The number of blocks painted.
        """
        n = self.pattern_size
        pattern_count = self.catalog.pattern_count
        blocks_per_row = max(1, math.ceil(math.sqrt(pattern_count)))
        tiles: dict[tuple[int, int], Hashable] = {}

        for pattern in range(pattern_count):
            block_x = origin[0] + (pattern % blocks_per_row) * (n + 1)
            block_y = origin[1] + (pattern // blocks_per_row) * (n + 1)
            for y in range(n):
                for x in range(n):
                    tiles[(block_x + x, block_y + y)] = self.catalog.get_tile_from_pattern(pattern, (x, y))

        self._output.set_tiles(tiles)
        return pattern_count

    def apply_preset_tiles(self, solver: WaveSolver) -> None:
        """Bans, at every anchor whose footprint covers a preset tile, all patterns disagreeing with that tile."""
        n = self.pattern_size
        patterns = self.catalog.patterns

        for (x, y), category in self.preset_tiles.items():
            for offset_y in range(n):
                anchor_y = y - offset_y
                if self._periodic:
                    anchor_y %= self.height
                elif anchor_y < 0 or anchor_y + n > self.height:
                    continue

                for offset_x in range(n):
                    anchor_x = x - offset_x
                    if self._periodic:
                        anchor_x %= self.width
                    elif anchor_x < 0 or anchor_x + n > self.width:
                        continue

                    anchor = anchor_x + anchor_y * self.width
                    for pattern in np.flatnonzero(patterns[:, offset_y, offset_x] != category):
                        solver.ban(anchor, int(pattern))
