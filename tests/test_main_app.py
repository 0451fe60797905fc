"""Tests for the command line interface."""

from __future__ import annotations

import pytest

from main_app import parse_args


def test_defaults() -> None:
    args = parse_args(["generator", "sample.csv"])

    assert args.samples == ["sample.csv"]
    assert args.positions == [(0, 0)]
    assert args.output == "tilemap.csv"
    assert args.pattern_size == 2
    assert args.heuristic == "entropy"
    assert args.seed == "0"
    assert not args.show_patterns
    assert not args.periodic


def test_positions_and_options() -> None:
    args = parse_args(
        [
            "generator",
            "a.csv",
            "b.csv",
            "-p",
            "3,4",
            "--position=-70,2",
            "-n",
            "3",
            "--heuristic",
            "scanline",
            "--seed",
            "mossy caverns",
            "--ground",
            "--periodic",
        ]
    )

    assert args.samples == ["a.csv", "b.csv"]
    assert args.positions == [(3, 4), (-70, 2)]
    assert args.pattern_size == 3
    assert args.heuristic == "scanline"
    assert args.seed == "mossy caverns"
    assert args.ground
    assert args.periodic


@pytest.mark.parametrize("position", ["3", "a,b", "1,2,3"])
def test_malformed_position_is_rejected(position: str) -> None:
    with pytest.raises(SystemExit):
        parse_args(["generator", "sample.csv", "-p", position])
