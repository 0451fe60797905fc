"""Contains the tile grid interfaces the generator reads samples from and paints its output into."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Hashable, Iterable, Mapping
import threading
from typing import TYPE_CHECKING

import numpy as np

from constants import EMPTY_TILE

if TYPE_CHECKING:
    from numpy.typing import NDArray


class GridSource(ABC):
    """Read-only access to a sample grid of tile identities.

    Attributes:
        size: The (width, height) of the sample (in tiles).
    """

    @property
    @abstractmethod
    def size(self) -> tuple[int, int]:
        """Returns the (width, height) of the sample."""

    @abstractmethod
    def get_tile(self, x: int, y: int) -> Hashable:
        """Returns the tile identity at an in-bounds coordinate."""


class ArrayGridSource(GridSource):
    """Grid source backed by a 2D array of tile indices, indexed [row, col]."""

    # The 2D sample tile array.
    _sample_array: NDArray[np.int_]

    def __init__(self, sample_array: NDArray[np.int_]) -> None:
        """Wraps a 2D sample array.

        Args:
            sample_array: The 2D array of tile indices serving as a sample.
        """
        self._sample_array = np.asarray(sample_array)

    @classmethod
    def from_csv(cls, file_path: str) -> ArrayGridSource:
        """Loads a sample array from a comma separated file of tile indices."""
        return cls(np.atleast_2d(np.genfromtxt(file_path, delimiter=",", dtype=np.int_)))

    @property
    def size(self) -> tuple[int, int]:
        if self._sample_array.ndim != 2:
            return 0, 0
        return int(self._sample_array.shape[1]), int(self._sample_array.shape[0])

    def get_tile(self, x: int, y: int) -> Hashable:
        return int(self._sample_array[y, x])


class SymmetryMapping:
    """Maps a tile identity to its rotated and reflected counterparts.

    A tile without an entry has no defined counterpart; pattern symmetry then keeps the tile unchanged.
    """

    # Maps each tile identity to the tile identity it becomes when rotated by 90 degrees.
    _rotations: dict[Hashable, Hashable]
    # Maps each tile identity to the tile identity it becomes when mirrored horizontally.
    _reflections: dict[Hashable, Hashable]

    def __init__(
        self,
        rotations: Mapping[Hashable, Hashable] | None = None,
        reflections: Mapping[Hashable, Hashable] | None = None,
    ) -> None:
        self._rotations = dict(rotations or {})
        self._reflections = dict(reflections or {})

    @classmethod
    def from_csv(cls, rotate_path: str | None = None, reflect_path: str | None = None) -> SymmetryMapping:
        """Loads the mappings from two-column 'tile,counterpart' files. Either file may be omitted."""
        return cls(_load_pairs(rotate_path), _load_pairs(reflect_path))

    def rotate(self, tile: Hashable) -> Hashable | None:
        """Returns the rotated counterpart of a tile, or None if there is none."""
        return self._rotations.get(tile)

    def reflect(self, tile: Hashable) -> Hashable | None:
        """Returns the reflected counterpart of a tile, or None if there is none."""
        return self._reflections.get(tile)


def _load_pairs(file_path: str | None) -> dict[Hashable, Hashable]:
    if file_path is None:
        return {}
    pairs = np.atleast_2d(np.genfromtxt(file_path, delimiter=",", dtype=np.int_))
    if pairs.size == 0:
        return {}
    return {int(row[0]): int(row[1]) for row in pairs}


class GridSink(ABC):
    """Write access (and read-back) to the output tile grid, addressed by absolute (x, y) coordinates."""

    @abstractmethod
    def get_tile(self, position: tuple[int, int]) -> Hashable:
        """Returns the tile identity at a position, or constants.EMPTY_TILE if nothing was painted there."""

    @abstractmethod
    def set_tile(self, position: tuple[int, int], tile: Hashable) -> None:
        """Commits a tile identity at a position."""

    def set_tiles(self, tiles: Mapping[tuple[int, int], Hashable]) -> None:
        """Commits a batch of tiles. Sinks that can defer or batch writes override this."""
        for position, tile in tiles.items():
            self.set_tile(position, tile)

    def is_empty(self, position: tuple[int, int]) -> bool:
        """Returns True if nothing was painted at a position."""
        return self.get_tile(position) == EMPTY_TILE


class TileGrid(GridSink):
    """Unbounded sparse tile grid, safe to write from the worker thread while other threads read it."""

    # The painted tiles by absolute (x, y) position.
    _tiles: dict[tuple[int, int], Hashable]
    # Guards '_tiles' against concurrent access.
    _lock: threading.Lock

    def __init__(self) -> None:
        self._tiles = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._tiles)

    def get_tile(self, position: tuple[int, int]) -> Hashable:
        with self._lock:
            return self._tiles.get(position, EMPTY_TILE)

    def set_tile(self, position: tuple[int, int], tile: Hashable) -> None:
        with self._lock:
            self._tiles[position] = tile

    def set_tiles(self, tiles: Mapping[tuple[int, int], Hashable]) -> None:
        with self._lock:
            self._tiles.update(tiles)

    def positions(self) -> Iterable[tuple[int, int]]:
        """Returns a snapshot of all painted positions."""
        with self._lock:
            return list(self._tiles)

    def bounds(self) -> tuple[tuple[int, int], tuple[int, int]] | None:
        """Returns ((min_x, min_y), (width, height)) of the painted area, or None if nothing was painted."""
        positions = self.positions()
        if not positions:
            return None
        xs = [position[0] for position in positions]
        ys = [position[1] for position in positions]
        return (min(xs), min(ys)), (max(xs) - min(xs) + 1, max(ys) - min(ys) + 1)

    def to_array(self, origin: tuple[int, int], size: tuple[int, int]) -> NDArray[np.int_]:
        """Exports a rectangular region as a 2D array of tile indices (EMPTY_TILE for unpainted cells).

        Args:
            origin: The absolute (x, y) of the top-left corner of the region.
            size: The (width, height) of the region.

        Returns:
            A 2D array indexed [row, col]. Only meaningful for grids whose tile identities are integers.
        """
        array = np.full((size[1], size[0]), EMPTY_TILE, dtype=np.int_)
        with self._lock:
            for (x, y), tile in self._tiles.items():
                col = x - origin[0]
                row = y - origin[1]
                if 0 <= row < size[1] and 0 <= col < size[0]:
                    array[row, col] = tile
        return array
