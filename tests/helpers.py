"""Helpers shared by several test modules."""

from __future__ import annotations

import time

import numpy as np


def windows(grid: np.ndarray, n: int) -> set[bytes]:
    """Returns every NxN window of a 2D array as bytes, for set comparisons."""
    return {
        np.ascontiguousarray(grid[y : y + n, x : x + n]).tobytes()
        for y in range(grid.shape[0] - n + 1)
        for x in range(grid.shape[1] - n + 1)
    }


def pattern_windows(patterns: np.ndarray) -> set[bytes]:
    """Returns the patterns of a catalog (as category arrays) as bytes."""
    return {np.ascontiguousarray(pattern).tobytes() for pattern in patterns}


def wait_until(predicate, timeout: float = 5.0, interval: float = 0.01) -> bool:
    """Polls a predicate until it is true or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def overlap_agrees(p1: np.ndarray, p2: np.ndarray, dx: int, dy: int) -> bool:
    """Checks cell by cell if p2 placed at offset (dx, dy) relative to p1 agrees with p1 where they overlap."""
    n = p1.shape[0]
    for y in range(n):
        for x in range(n):
            if 0 <= x - dx < n and 0 <= y - dy < n and p1[y, x] != p2[y - dy, x - dx]:
                return False
    return True
