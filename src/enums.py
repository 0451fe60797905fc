"""Contains all global enumeration classes used throughout the project."""

from __future__ import annotations

from enum import Enum


class Heuristic(Enum):
    """Defines the order in which cells of the output are observed."""

    ENTROPY = "Lowest Entropy First (Default)"
    """Always picks the cell with the lowest Shannon entropy over its remaining pattern weights."""
    MRV = "Minimum Remaining Values"
    """Always picks the cell with the fewest remaining patterns."""
    SCANLINE = "Scanline"
    """Starts with the cell in the upper left corner. Proceeds from left to right, then from top to bottom."""


class ChunkUpdateType(Enum):
    """Defines the types of update messages the chunk worker thread sends."""

    CHUNK_GENERATED = 0
    """Used when the worker has solved and painted a chunk."""
    CHUNK_FAILED = 1
    """Used when the worker has abandoned a chunk after exhausting its attempt budget."""
    CHUNK_SKIPPED = 2
    """Used when the worker has dequeued a chunk that was already fully painted."""


class Direction(Enum):
    """Defines the cardinal directions used for pattern adjacency.

    The values double as indices into the propagator table and the per-cell support counters.
    """

    WEST = 0
    """Left direction."""
    SOUTH = 1
    """Downward direction."""
    EAST = 2
    """Right direction."""
    NORTH = 3
    """Upward direction."""

    def reverse(self) -> Direction:
        """Returns the opposite direction of the current direction."""
        match self:
            case Direction.WEST:
                return Direction.EAST
            case Direction.SOUTH:
                return Direction.NORTH
            case Direction.EAST:
                return Direction.WEST
            case Direction.NORTH:
                return Direction.SOUTH

    def to_vector(self) -> tuple[int, int]:
        """Returns the (dx, dy) offset for the direction, with y pointing down."""
        match self:
            case Direction.WEST:
                return (-1, 0)
            case Direction.SOUTH:
                return (0, 1)
            case Direction.EAST:
                return (1, 0)
            case Direction.NORTH:
                return (0, -1)
