"""Contains the generator settings and the derivation of reproducible seeds."""

from __future__ import annotations

from dataclasses import dataclass
import hashlib

import numpy as np

import constants
from enums import Heuristic
from model.errors import ConfigurationError


@dataclass(frozen=True)
class GeneratorSettings:
    """All parameters of an infinite-world generator.

    Attributes:
        pattern_size: The width and height N of the patterns.
        chunk_width: The width of a chunk (in tiles).
        chunk_height: The height of a chunk (in tiles).
        x_spacing: The horizontal distance between the origins of two neighboring chunks. Defaults to
            chunk_width - N + 1, so that neighboring chunks share N - 1 columns.
        y_spacing: The vertical distance between the origins of two neighboring chunks. Defaults to
            chunk_height - N + 1.
        periodic_input: If True, the samples are treated as wrapping around at their edges.
        periodic: If True, every chunk wraps around at its edges (only sensible for a single chunk).
        symmetry: The number of symmetry variants kept per pattern (1, 2, 4 or 8).
        ground: If True, the bottom row of every chunk is forced to the last pattern.
        limit: Maximum number of observations per run; 0 means unbounded.
        heuristic: Strategy for selecting the next cell to observe.
        show_patterns: If True, chunks are replaced by a display of the pattern catalog instead of being solved.
        seed: The world seed. Strings are reduced to an integer with a stable hash.
        max_attempts: Number of differently seeded runs attempted on a chunk before it is abandoned.
        idle_poll_interval_empty: Seconds the worker waits while the chunk queue is empty.
        idle_poll_interval_busy: Seconds the worker waits while a finished chunk has not been delivered yet.
    """

    pattern_size: int = constants.PATTERN_SIZE_DEFAULT
    chunk_width: int = constants.CHUNK_WIDTH_DEFAULT
    chunk_height: int = constants.CHUNK_HEIGHT_DEFAULT
    x_spacing: int | None = None
    y_spacing: int | None = None
    periodic_input: bool = True
    periodic: bool = False
    symmetry: int = constants.SYMMETRY_DEFAULT
    ground: bool = False
    limit: int = 0
    heuristic: Heuristic = constants.HEURISTIC_DEFAULT
    show_patterns: bool = False
    seed: int | str = 0
    max_attempts: int = constants.MAX_ATTEMPTS_PER_CHUNK
    idle_poll_interval_empty: float = constants.IDLE_POLL_INTERVAL_EMPTY
    idle_poll_interval_busy: float = constants.IDLE_POLL_INTERVAL_BUSY

    def __post_init__(self) -> None:
        if self.pattern_size < 1:
            raise ConfigurationError(f"Pattern size must be at least 1, got {self.pattern_size}.")
        if self.chunk_width < self.pattern_size or self.chunk_height < self.pattern_size:
            raise ConfigurationError(
                f"Chunk size {self.chunk_width}x{self.chunk_height} is smaller than the pattern size "
                f"{self.pattern_size}."
            )
        if self.symmetry not in constants.SYMMETRY_ALLOWED_VALUES:
            raise ConfigurationError(f"Symmetry must be one of {constants.SYMMETRY_ALLOWED_VALUES}, got {self.symmetry}.")
        if self.max_attempts < 1:
            raise ConfigurationError(f"At least one attempt per chunk is required, got {self.max_attempts}.")
        spacing = self.chunk_spacing
        if not (0 < spacing[0] <= self.chunk_width and 0 < spacing[1] <= self.chunk_height):
            raise ConfigurationError(f"Chunk spacing {spacing} must be positive and not exceed the chunk size.")
        if self.idle_poll_interval_empty <= 0 or self.idle_poll_interval_busy <= 0:
            raise ConfigurationError("Idle poll intervals must be positive.")

    @property
    def chunk_size(self) -> tuple[int, int]:
        """The (width, height) of a chunk."""
        return self.chunk_width, self.chunk_height

    @property
    def chunk_spacing(self) -> tuple[int, int]:
        """The (x, y) distance between the origins of two neighboring chunks."""
        overlap = self.pattern_size - 1
        x_spacing = self.x_spacing if self.x_spacing is not None else self.chunk_width - overlap
        y_spacing = self.y_spacing if self.y_spacing is not None else self.chunk_height - overlap
        return x_spacing, y_spacing

    @property
    def world_seed(self) -> int:
        """The world seed as a non-negative integer."""
        return world_seed_from(self.seed)


def world_seed_from(seed: int | str) -> int:
    """Reduces a seed to a non-negative integer. Strings are hashed, so equal strings always give equal seeds."""
    if isinstance(seed, str):
        try:
            return int(seed) % 2**64
        except ValueError:
            return int.from_bytes(hashlib.blake2b(seed.encode("utf-8"), digest_size=8).digest(), "little")
    return seed % 2**64


def chunk_attempt_seed(world_seed: int, origin: tuple[int, int], attempt: int) -> int:
    """Derives the seed of one solve attempt of a chunk.

    The seed only depends on its arguments: regenerating the same chunk of the same world with the same preset borders
    reproduces the same tiles, while every attempt on a chunk gets a fresh seed.
    """
    # SeedSequence only takes non-negative entropy, chunk origins may be negative.
    entropy = [world_seed % 2**64, origin[0] % 2**32, origin[1] % 2**32, attempt]
    return int(np.random.SeedSequence(entropy).generate_state(1, dtype=np.uint64)[0])
