"""Shared fixtures for the generator tests."""

from __future__ import annotations

import numpy as np
import pytest
from PyQt6 import QtCore as qtc

from model.grid import ArrayGridSource, TileGrid


@pytest.fixture(scope="session")
def qt_app() -> qtc.QCoreApplication:
    """A core application instance, created once for all tests needing Qt objects."""
    app = qtc.QCoreApplication.instance()
    if app is None:
        app = qtc.QCoreApplication([])
    return app


@pytest.fixture
def checkerboard() -> ArrayGridSource:
    """3x3 checkerboard of the tiles 0 and 1."""
    return ArrayGridSource(np.array([[0, 1, 0], [1, 0, 1], [0, 1, 0]]))


@pytest.fixture
def stripes() -> ArrayGridSource:
    """4x4 sample of horizontal stripes: two rows of tile 5, one row of tile 7, one row of tile 9."""
    return ArrayGridSource(np.array([[5, 5, 5, 5], [5, 5, 5, 5], [7, 7, 7, 7], [9, 9, 9, 9]]))


@pytest.fixture
def output() -> TileGrid:
    return TileGrid()
