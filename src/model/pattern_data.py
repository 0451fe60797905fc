"""Manages tile pattern data for the WFC algorithm."""

from __future__ import annotations

from collections.abc import Hashable, Sequence
from typing import Protocol, TYPE_CHECKING

import numpy as np

from constants import SYMMETRY_ALLOWED_VALUES
from enums import Direction
from model.errors import ConfigurationError

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from model.grid import GridSource


class SymmetryMappingSource(Protocol):
    """Anything that can name the rotated/reflected counterpart of a tile identity (None if undefined)."""

    def rotate(self, tile: Hashable) -> Hashable | None: ...

    def reflect(self, tile: Hashable) -> Hashable | None: ...


class TileCategories:
    """Two-way dictionary between tile identities and the small integer categories the solver works with.

    Categories are handed out in order of first sighting, starting at 0.
    """

    # Tile identity of each category, indexed by category.
    _tiles: list[Hashable]
    # Category of each known tile identity.
    _categories: dict[Hashable, int]

    def __init__(self) -> None:
        self._tiles = []
        self._categories = {}

    def __len__(self) -> int:
        return len(self._tiles)

    def __contains__(self, tile: Hashable) -> bool:
        return tile in self._categories

    def register(self, tile: Hashable) -> int:
        """Returns the category of a tile, assigning a new one the first time the tile is seen."""
        category = self._categories.get(tile)
        if category is None:
            category = len(self._tiles)
            self._categories[tile] = category
            self._tiles.append(tile)
        return category

    def category_of(self, tile: Hashable) -> int:
        """Returns the category of a tile, or -1 if the tile was never seen."""
        return self._categories.get(tile, -1)

    def tile_of(self, category: int) -> Hashable:
        """Returns the tile identity of a category."""
        return self._tiles[category]


class SymmetryMap:
    """Rotates and reflects patterns, remapping each category to its rotated/reflected counterpart.

    The remapping is stored as lookup tables over all categories; categories without a counterpart map to themselves.
    """

    # Category each category becomes under a 90 degree rotation.
    _rotate_table: NDArray[np.int_]
    # Category each category becomes under a horizontal reflection.
    _reflect_table: NDArray[np.int_]

    def __init__(self, rotate_table: NDArray[np.int_], reflect_table: NDArray[np.int_]) -> None:
        self._rotate_table = rotate_table
        self._reflect_table = reflect_table

    @classmethod
    def identity(cls, category_count: int) -> SymmetryMap:
        """Returns a symmetry map that only moves cells around and never remaps a category."""
        return cls(np.arange(category_count, dtype=np.int_), np.arange(category_count, dtype=np.int_))

    @classmethod
    def from_mapping(cls, mapping: SymmetryMappingSource | None, categories: TileCategories) -> SymmetryMap:
        """Builds the lookup tables from a tile symmetry mapping.

        Counterparts that never occur in a sample are registered as new categories, so that the categories must be
        complete once this returns.

        Raises:
            ConfigurationError: Two different tiles share the same rotated or reflected counterpart.
        """
        if mapping is None:
            return cls.identity(len(categories))

        # Register counterparts of counterparts until no new tile shows up.
        index = 0
        while index < len(categories):
            tile = categories.tile_of(index)
            for counterpart in (mapping.rotate(tile), mapping.reflect(tile)):
                if counterpart is not None:
                    categories.register(counterpart)
            index += 1

        rotate_table = cls._build_table(mapping.rotate, categories, "rotation")
        reflect_table = cls._build_table(mapping.reflect, categories, "reflection")
        return cls(rotate_table, reflect_table)

    @staticmethod
    def _build_table(lookup, categories: TileCategories, name: str) -> NDArray[np.int_]:
        table = np.arange(len(categories), dtype=np.int_)
        sources_by_target: dict[int, int] = {}
        for category in range(len(categories)):
            counterpart = lookup(categories.tile_of(category))
            if counterpart is None:
                continue
            target = categories.category_of(counterpart)
            if target in sources_by_target:
                raise ConfigurationError(
                    f"Malformed {name} mapping: tiles {categories.tile_of(sources_by_target[target])!r} and "
                    f"{categories.tile_of(category)!r} both map to {counterpart!r}."
                )
            sources_by_target[target] = category
            table[category] = target
        return table

    def rotate(self, pattern: NDArray[np.int_]) -> NDArray[np.int_]:
        """Returns the pattern rotated by 90 degrees: rotate(P)(x, y) = remap(P(N - 1 - y, x))."""
        # np.rot90(a)[y, x] == a[x, N - 1 - y] with arrays indexed [y, x].
        return self._rotate_table[np.rot90(pattern)]

    def reflect(self, pattern: NDArray[np.int_]) -> NDArray[np.int_]:
        """Returns the pattern mirrored horizontally: reflect(P)(x, y) = remap(P(N - 1 - x, y))."""
        return self._reflect_table[np.fliplr(pattern)]


def symmetry_variants(pattern: NDArray[np.int_], symmetry_map: SymmetryMap) -> list[NDArray[np.int_]]:
    """Returns the 8 symmetry variants of a pattern.

    The order is identity, reflect, rotate, reflect∘rotate, rotate², reflect∘rotate², rotate³, reflect∘rotate³, so that
    taking the first 1, 2, 4 or 8 variants selects increasingly symmetric pattern sets.
    """
    variants = []
    rotated = pattern
    for _ in range(4):
        variants.append(rotated)
        variants.append(symmetry_map.reflect(rotated))
        rotated = symmetry_map.rotate(rotated)
    return variants


def hash_pattern(pattern: NDArray[np.int_], category_count: int) -> int:
    """Returns the positional radix hash Σ category[i] * C^i of a pattern (collision-free for C >= category count)."""
    base = max(category_count, 1)
    result = 0
    power = 1
    for category in pattern.flat:
        result += int(category) * power
        power *= base
    return result


def build_patterns(
    samples: Sequence[NDArray[np.int_]],
    pattern_size: int,
    periodic_input: bool,
    symmetry: int,
    symmetry_map: SymmetryMap,
    category_count: int,
) -> tuple[NDArray[np.int_], NDArray[np.double]]:
    """Extracts all unique NxN patterns (with symmetry variants) from the samples and counts their frequency.

    Args:
        samples: The 2D category arrays of the samples, indexed [y, x].
        pattern_size: The width and height N of the square patterns.
        periodic_input: If True, patterns wrap around the sample edges.
        symmetry: The number of symmetry variants kept per anchor (1, 2, 4 or 8).
        symmetry_map: Rotates/reflects patterns including the category remapping.
        category_count: The number of distinct categories C, used as the hash base.

    Returns:
        A (T, N, N) array of unique patterns in order of first occurrence and the matching array of weights.
    """
    patterns: list[NDArray[np.int_]] = []
    weights: list[float] = []
    pattern_indices: dict[int, int] = {}

    for sample in samples:
        height, width = sample.shape
        xmax = width if periodic_input else width - pattern_size + 1
        ymax = height if periodic_input else height - pattern_size + 1

        for y in range(ymax):
            rows = np.arange(y, y + pattern_size) % height
            for x in range(xmax):
                cols = np.arange(x, x + pattern_size) % width
                base_pattern = sample[np.ix_(rows, cols)]

                for pattern in symmetry_variants(base_pattern, symmetry_map)[:symmetry]:
                    hash_value = hash_pattern(pattern, category_count)
                    index = pattern_indices.get(hash_value)
                    if index is None:
                        pattern_indices[hash_value] = len(patterns)
                        patterns.append(pattern.copy())
                        weights.append(1.0)
                    else:
                        weights[index] += 1.0

    if not patterns:
        return np.empty((0, pattern_size, pattern_size), dtype=np.int_), np.empty(0, dtype=np.double)
    return np.array(patterns, dtype=np.int_), np.array(weights, dtype=np.double)


def build_propagator(patterns: NDArray[np.int_], pattern_size: int) -> list[list[NDArray[np.int_]]]:
    """Determines, for each direction and pattern, the patterns that may legally be placed next to it.

    propagator[d][t1] contains t2 exactly if t2, shifted by the offset of direction d, agrees with t1 on their whole
    overlap. The result only depends on its arguments.

    Args:
        patterns: The (T, N, N) array of patterns.
        pattern_size: The width and height N of the patterns.

    Returns:
        A list indexed by Direction.value of lists indexed by pattern of sorted compatible pattern index arrays.
    """
    n = pattern_size
    propagator: list[list[NDArray[np.int_]]] = []
    for direction in Direction:
        dx, dy = direction.to_vector()
        xmin, xmax = max(dx, 0), min(n + dx, n)
        ymin, ymax = max(dy, 0), min(n + dy, n)

        # Overlap as seen from the pattern in place and from the shifted neighbor pattern.
        own_regions = patterns[:, ymin:ymax, xmin:xmax]
        neighbor_regions = patterns[:, ymin - dy : ymax - dy, xmin - dx : xmax - dx]

        compatible: list[NDArray[np.int_]] = []
        for t1 in range(patterns.shape[0]):
            agrees = (neighbor_regions == own_regions[t1]).all(axis=(1, 2))
            compatible.append(np.flatnonzero(agrees).astype(np.int_))
        propagator.append(compatible)
    return propagator


class PatternCatalog:
    """Tile patterns, their frequencies and their adjacency rules, derived from one or more sample grids.

    The catalog scans every sample into categories, extracts the NxN patterns with their symmetry variants, and
    precomputes the propagator. It is built once per model and never changes afterwards.

    Attributes:
        pattern_size: The width and height of the square patterns extracted (in tiles).
        pattern_count: The total number of unique patterns discovered.
        categories: The tile identity <-> category dictionary.
        patterns: The (T, N, N) array of unique patterns, the index is the pattern ID.
        weights: The frequency of each pattern (used as probability weight).
        propagator: propagator[direction][pattern] lists the patterns compatible in that direction.
    """

    pattern_size: int
    pattern_count: int
    categories: TileCategories
    patterns: NDArray[np.int_]
    weights: NDArray[np.double]
    propagator: list[list[NDArray[np.int_]]]

    def __init__(
        self,
        samples: Sequence[GridSource],
        pattern_size: int,
        periodic_input: bool = True,
        symmetry: int = 8,
        symmetry_mapping: SymmetryMappingSource | None = None,
    ) -> None:
        """Scans the samples and builds patterns, weights and adjacency rules.

        Args:
            samples: The sample grids whose tiles and local arrangements the output should imitate.
            pattern_size: The width and height N of the patterns.
            periodic_input: If True, the samples are treated as wrapping around at their edges.
            symmetry: The number of symmetry variants kept per pattern (1, 2, 4 or 8).
            symmetry_mapping: Names the rotated/reflected counterpart of tiles. Defaults to no remapping.

        Raises:
            ConfigurationError: The samples are missing or empty, the pattern size does not fit into a sample, the
                symmetry value is invalid, the symmetry mapping is malformed, or a pattern ends up with no weight.
        """
        if not samples or any(sample is None for sample in samples):
            raise ConfigurationError("At least one sample grid source is required.")
        if pattern_size < 1:
            raise ConfigurationError(f"Pattern size must be at least 1, got {pattern_size}.")
        if symmetry not in SYMMETRY_ALLOWED_VALUES:
            raise ConfigurationError(f"Symmetry must be one of {SYMMETRY_ALLOWED_VALUES}, got {symmetry}.")

        self.pattern_size = pattern_size
        self.categories = TileCategories()

        sample_arrays = [self._scan_sample(sample) for sample in samples]

        symmetry_map = SymmetryMap.from_mapping(symmetry_mapping, self.categories)

        self.patterns, self.weights = build_patterns(
            sample_arrays, pattern_size, periodic_input, symmetry, symmetry_map, len(self.categories)
        )
        self.pattern_count = len(self.weights)

        if self.pattern_count == 0:
            raise ConfigurationError("The samples did not yield any pattern.")
        if np.any(self.weights <= 0):
            raise ConfigurationError("Every pattern must have a positive weight.")

        self.propagator = build_propagator(self.patterns, pattern_size)

    def get_compatible_patterns(self, pattern_index: int, direction: Direction) -> NDArray[np.int_]:
        """Returns all pattern indices that can legally be placed next to a pattern in the given direction."""
        return self.propagator[direction.value][pattern_index]

    def get_tile_from_pattern(self, pattern_index: int, offset: tuple[int, int] = (0, 0)) -> Hashable:
        """Returns the tile identity at an (x, y) offset inside a pattern (the top-left corner by default)."""
        return self.categories.tile_of(int(self.patterns[pattern_index, offset[1], offset[0]]))

    def _scan_sample(self, sample: GridSource) -> NDArray[np.int_]:
        """Converts a sample into a 2D category array, registering tiles as they are first seen."""
        width, height = sample.size
        if width <= 0 or height <= 0:
            raise ConfigurationError("Sample grids must not be empty.")
        if self.pattern_size > width or self.pattern_size > height:
            raise ConfigurationError(
                f"Pattern size {self.pattern_size} exceeds the sample size {width}x{height}."
            )

        sample_array = np.empty((height, width), dtype=np.int_)
        for y in range(height):
            for x in range(width):
                sample_array[y, x] = self.categories.register(sample.get_tile(x, y))
        return sample_array
