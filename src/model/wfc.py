"""Implements the core WFC constraint engine (propagate, observe, ban)."""

from __future__ import annotations

from collections.abc import Callable, Sequence
import math
from typing import TYPE_CHECKING

import numpy as np

from constants import ENTROPY_NOISE_SCALE
from enums import Direction, Heuristic

if TYPE_CHECKING:
    from numpy.typing import NDArray

# (direction index, dx, dy) for every direction, in propagator order.
_DIRECTION_OFFSETS: tuple[tuple[int, int, int], ...] = tuple(
    (direction.value, *direction.to_vector()) for direction in Direction
)


class WaveSolver:
    """Solves an output grid of pattern anchors by Wave Function Collapse.

    Every cell of the output holds the set of patterns still allowed to be anchored there (the wave). A run repeatedly
    picks a cell according to the configured heuristic, observes it (chooses one of its allowed patterns, weighed by
    pattern frequency), and propagates the consequences to the neighbors until every cell is down to a single pattern
    or some cell runs out of patterns (a contradiction). There is no backtracking: a contradiction ends the run, and the
    caller retries with another seed.

    The solver knows nothing about tiles. It only needs the pattern weights and the propagator table, plus an optional
    pre-ban hook that may restrict the wave right after it has been cleared.

    Attributes:
        width: The width of the output (in cells).
        height: The height of the output (in cells).
        pattern_size: The width and height N of the patterns.
        pattern_count: The number of patterns T.
        periodic: If True, the output wraps around at its edges.
        heuristic: Strategy for selecting the next cell to observe.
        ground: If True, the bottom row is forced to the last pattern, which is banned everywhere else.
    """

    width: int
    height: int
    pattern_size: int
    pattern_count: int
    periodic: bool
    heuristic: Heuristic
    ground: bool

    # The frequency of each pattern.
    _weights: NDArray[np.double]
    # weight * ln(weight) for each pattern.
    _weight_log_weights: NDArray[np.double]
    # propagator[direction][pattern] lists the patterns compatible in that direction.
    _propagator: Sequence[Sequence[NDArray[np.int_]]]
    # Called right after clearing the wave to ban patterns in advance (e.g. preset border tiles).
    _pre_ban: Callable[[WaveSolver], None] | None

    # Sums over all patterns, the starting values of every cell's bookkeeping.
    _sum_of_weights: float
    _sum_of_weight_log_weights: float
    _starting_entropy: float
    # Support counts of a pattern right after clearing, indexed [pattern, direction].
    _initial_compatible: NDArray[np.int_]
    # True for every cell whose NxN footprint fits into the output (all cells if periodic).
    _observable: NDArray[np.bool_]

    # === RUN STATE (initialized in _init(), reset in clear()) ===

    # [cell, pattern] is True while the pattern is still allowed at the cell.
    _wave: NDArray[np.bool_] | None
    # [cell, pattern, direction] counts the patterns of the neighbor in that direction still supporting the pattern.
    _compatible: NDArray[np.int_]
    # The final pattern index of each cell, -1 while unresolved.
    _observed: NDArray[np.int_]
    # Stack of (cell, pattern) bans still to be propagated.
    _stack: list[tuple[int, int]]
    # Per-cell bookkeeping, updated incrementally by ban().
    _sums_of_ones: NDArray[np.int_]
    _sums_of_weights: NDArray[np.double]
    _sums_of_weight_log_weights: NDArray[np.double]
    _entropies: NDArray[np.double]
    # Cell index where the scanline heuristic resumes.
    _observed_so_far: int
    # Set as soon as a ban leaves a cell without any pattern.
    _contradiction: bool

    def __init__(
        self,
        width: int,
        height: int,
        pattern_size: int,
        weights: NDArray[np.double],
        propagator: Sequence[Sequence[NDArray[np.int_]]],
        periodic: bool = False,
        heuristic: Heuristic = Heuristic.ENTROPY,
        ground: bool = False,
        pre_ban: Callable[[WaveSolver], None] | None = None,
    ) -> None:
        """Sets up a solver for an output grid.

        Args:
            width: The width of the output (in cells).
            height: The height of the output (in cells).
            pattern_size: The width and height N of the patterns.
            weights: The frequency of each pattern (all positive).
            propagator: propagator[direction][pattern] lists the patterns compatible in that direction.
            periodic: If True, the output wraps around at its edges.
            heuristic: Strategy for selecting the next cell to observe.
            ground: If True, the bottom row is forced to the last pattern.
            pre_ban: Called with the solver after every clear() to ban patterns before solving starts.
        """
        self.width = width
        self.height = height
        self.pattern_size = pattern_size
        self.pattern_count = len(weights)
        self.periodic = periodic
        self.heuristic = heuristic
        self.ground = ground

        self._weights = np.asarray(weights, dtype=np.double)
        self._propagator = propagator
        self._pre_ban = pre_ban

        self._wave = None

    @property
    def wave(self) -> NDArray[np.bool_]:
        """A read-only view of the wave, indexed [cell, pattern]."""
        assert self._wave is not None
        view = self._wave.view()
        view.flags.writeable = False
        return view

    @property
    def observed(self) -> NDArray[np.int_]:
        """A read-only view of the observed pattern of each cell (-1 while unresolved)."""
        view = self._observed.view()
        view.flags.writeable = False
        return view

    @property
    def sums_of_ones(self) -> NDArray[np.int_]:
        """A read-only view of the number of patterns still allowed at each cell."""
        view = self._sums_of_ones.view()
        view.flags.writeable = False
        return view

    @property
    def entropies(self) -> NDArray[np.double]:
        """A read-only view of the entropy of each cell."""
        view = self._entropies.view()
        view.flags.writeable = False
        return view

    def is_allowed(self, cell: int, pattern: int) -> bool:
        """Checks if a pattern is still allowed at a cell."""
        assert self._wave is not None
        return bool(self._wave[cell, pattern])

    def run(self, seed: int, limit: int = 0) -> bool:
        """Runs a full solve attempt.

        Args:
            seed: Seed of the random source used for tie-breaking and pattern draws.
            limit: Maximum number of observations; 0 or less means unbounded. Stopping at the limit counts as success,
                only the cells already down to a single pattern are resolved then.

        Returns:
            False if a contradiction occurred, True otherwise.
        """
        if self._wave is None:
            self._init()

        rng = np.random.default_rng(seed % 2**64)

        if not self.clear():
            return False

        if self._pre_ban is not None:
            self._pre_ban(self)
        if not self.propagate():
            return False

        steps = 0
        while limit <= 0 or steps < limit:
            node = self._next_unobserved_node(rng)
            if node < 0:
                self._observed[:] = np.argmax(self._wave, axis=1)
                return True

            self._observe(node, rng)
            if not self.propagate():
                return False
            steps += 1

        resolved = self._sums_of_ones == 1
        self._observed[resolved] = np.argmax(self._wave[resolved], axis=1)
        return True

    def clear(self) -> bool:
        """Resets the wave and all bookkeeping to the all-allowed state, then applies the ground constraint.

        Returns:
            False if the ground constraint alone leads to a contradiction, True otherwise.
        """
        if self._wave is None:
            self._init()
        assert self._wave is not None

        self._wave[:] = True
        self._compatible[:] = self._initial_compatible
        self._sums_of_ones[:] = self.pattern_count
        self._sums_of_weights[:] = self._sum_of_weights
        self._sums_of_weight_log_weights[:] = self._sum_of_weight_log_weights
        self._entropies[:] = self._starting_entropy
        self._observed[:] = -1
        self._stack.clear()
        self._observed_so_far = 0
        self._contradiction = False

        if self.ground:
            ground_pattern = self.pattern_count - 1
            bottom_row = (self.height - 1) * self.width
            for x in range(self.width):
                for pattern in range(ground_pattern):
                    self.ban(x + bottom_row, pattern)
                for y in range(self.height - 1):
                    self.ban(x + y * self.width, ground_pattern)
            return self.propagate()

        return True

    def ban(self, cell: int, pattern: int) -> None:
        """Removes a pattern from a cell and schedules the removal for propagation.

        Banning a pattern that is not allowed anymore does nothing.
        """
        assert self._wave is not None
        if not self._wave[cell, pattern]:
            return

        self._wave[cell, pattern] = False
        self._compatible[cell, pattern, :] = 0
        self._stack.append((cell, pattern))

        self._sums_of_ones[cell] -= 1
        self._sums_of_weights[cell] -= self._weights[pattern]
        self._sums_of_weight_log_weights[cell] -= self._weight_log_weights[pattern]

        sum_of_weights = self._sums_of_weights[cell]
        if self._sums_of_ones[cell] > 0 and sum_of_weights > 0:
            # Using math.log() instead of numpy.log() here because it is faster for single values.
            self._entropies[cell] = math.log(sum_of_weights) - self._sums_of_weight_log_weights[cell] / sum_of_weights
        else:
            self._entropies[cell] = 0.0
        if self._sums_of_ones[cell] == 0:
            self._contradiction = True

    def propagate(self) -> bool:
        """Drains the ban stack, banning every neighbor pattern that lost its last support.

        Returns:
            False if some cell has no allowed pattern left (a contradiction), True otherwise.
        """
        n = self.pattern_size
        while self._stack and not self._contradiction:
            cell, pattern = self._stack.pop()
            x1 = cell % self.width
            y1 = cell // self.width

            for direction_index, dx, dy in _DIRECTION_OFFSETS:
                x2 = x1 + dx
                y2 = y1 + dy
                if not self.periodic and (x2 < 0 or y2 < 0 or x2 + n > self.width or y2 + n > self.height):
                    continue
                x2 %= self.width
                y2 %= self.height
                neighbor = x2 + y2 * self.width

                supported = self._propagator[direction_index][pattern]
                if len(supported) == 0:
                    continue
                counts = self._compatible[neighbor, supported, direction_index] - 1
                self._compatible[neighbor, supported, direction_index] = counts
                for unsupported in supported[counts == 0]:
                    self.ban(neighbor, int(unsupported))

        return not self._contradiction

    def _init(self) -> None:
        """Allocates the wave and the bookkeeping arrays and derives the starting values from the weights."""
        cell_count = self.width * self.height

        self._weight_log_weights = self._weights * np.log(self._weights)
        self._sum_of_weights = float(self._weights.sum())
        self._sum_of_weight_log_weights = float(self._weight_log_weights.sum())
        self._starting_entropy = math.log(self._sum_of_weights) - self._sum_of_weight_log_weights / self._sum_of_weights

        # A pattern is supported from direction d by the patterns of that neighbor listing it in the opposite direction.
        self._initial_compatible = np.zeros((self.pattern_count, len(Direction)), dtype=np.int_)
        for direction in Direction:
            opposite = direction.reverse().value
            for pattern in range(self.pattern_count):
                self._initial_compatible[pattern, direction.value] = len(self._propagator[opposite][pattern])

        xs = np.arange(cell_count) % self.width
        ys = np.arange(cell_count) // self.width
        if self.periodic:
            self._observable = np.full(cell_count, True, dtype=bool)
        else:
            self._observable = (xs + self.pattern_size <= self.width) & (ys + self.pattern_size <= self.height)

        self._wave = np.full((cell_count, self.pattern_count), True, dtype=bool)
        self._compatible = np.zeros((cell_count, self.pattern_count, len(Direction)), dtype=np.int_)
        self._observed = np.full(cell_count, -1, dtype=np.int_)
        self._stack = []
        self._sums_of_ones = np.zeros(cell_count, dtype=np.int_)
        self._sums_of_weights = np.zeros(cell_count, dtype=np.double)
        self._sums_of_weight_log_weights = np.zeros(cell_count, dtype=np.double)
        self._entropies = np.zeros(cell_count, dtype=np.double)
        self._observed_so_far = 0
        self._contradiction = False

    def _next_unobserved_node(self, rng: np.random.Generator) -> int:
        """Picks the next cell to observe according to the heuristic, -1 if every observable cell is resolved."""
        match self.heuristic:
            case Heuristic.SCANLINE:
                node = select_scanline(self._sums_of_ones, self._observable, self._observed_so_far)
                if node >= 0:
                    self._observed_so_far = node + 1
                return node
            case Heuristic.MRV:
                return select_minimum(self._sums_of_ones.astype(np.double), self._sums_of_ones, self._observable, rng)
            case _:
                return select_minimum(self._entropies, self._sums_of_ones, self._observable, rng)

    def _observe(self, node: int, rng: np.random.Generator) -> None:
        """Chooses one allowed pattern at a cell, weighed by frequency, and bans all others there."""
        assert self._wave is not None
        allowed = np.flatnonzero(self._wave[node])
        chosen = draw_weighted(self._weights[allowed], rng.random())
        for pattern in allowed:
            if pattern != allowed[chosen]:
                self.ban(node, int(pattern))


def select_scanline(sums_of_ones: NDArray[np.int_], observable: NDArray[np.bool_], start: int) -> int:
    """Returns the first observable cell from 'start' on (row-major) with more than one pattern left, or -1."""
    candidates = np.flatnonzero(observable[start:] & (sums_of_ones[start:] > 1))
    if len(candidates) == 0:
        return -1
    return start + int(candidates[0])


def select_minimum(
    scores: NDArray[np.double],
    sums_of_ones: NDArray[np.int_],
    observable: NDArray[np.bool_],
    rng: np.random.Generator,
) -> int:
    """Returns the observable unresolved cell with the lowest score, or -1 if there is none.

    Ties are broken by adding a small uniform noise to the scores of the candidates before comparing them.
    """
    candidates = np.flatnonzero(observable & (sums_of_ones > 1))
    if len(candidates) == 0:
        return -1
    noisy_scores = scores[candidates] + ENTROPY_NOISE_SCALE * rng.random(len(candidates))
    return int(candidates[np.argmin(noisy_scores)])


def draw_weighted(weights: NDArray[np.double], r: float) -> int:
    """Returns the index whose cumulative weight first reaches r * total (0 if rounding prevents a match).

    Args:
        weights: The weights to draw from.
        r: A random value in [0, 1).
    """
    cumulative = np.cumsum(weights)
    if len(cumulative) == 0:
        return 0
    index = int(np.searchsorted(cumulative, r * cumulative[-1], side="left"))
    return index if index < len(weights) else 0
