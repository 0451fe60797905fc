"""Serves as the command-line entry point of the chunked tilemap generator."""

from __future__ import annotations

import argparse
import logging
import sys

import numpy as np
from PyQt6 import QtCore as qtc

import constants
from enums import Heuristic
from model.chunk_scheduler import ChunkScheduler
from model.errors import ConfigurationError
from model.grid import ArrayGridSource, SymmetryMapping, TileGrid
from model.overlapping_model import OverlappingModel
from model.settings import GeneratorSettings

logger = logging.getLogger(__name__)


class MainApp(qtc.QCoreApplication):
    """The application initializer and integrator for the chunked tilemap generator.

    Inherits from PyQt's QCoreApplication. It builds the model from the sample files, connects the scheduler's signals,
    delivers the worker's updates from a timer on the main thread, and writes the painted area to a CSV file once the
    requested level is generated.
    """

    # The grid all chunks are painted into.
    _output: TileGrid
    # The scheduler generating the requested chunks.
    _scheduler: ChunkScheduler
    # Timer delivering the worker's updates on the main thread.
    _update_timer: qtc.QTimer
    # Path of the CSV file the painted area is written to.
    _output_path: str

    def __init__(self, argv: list[str], args: argparse.Namespace) -> None:
        """Builds the model and the scheduler and requests the level.

        Args:
            argv: Command line arguments passed to the application (sys.argv).
            args: The parsed command line arguments.

        Raises:
            ConfigurationError: The model cannot be built from the given samples and settings.
        """
        super().__init__(argv)

        settings = GeneratorSettings(
            pattern_size=args.pattern_size,
            chunk_width=args.chunk_width,
            chunk_height=args.chunk_height,
            periodic_input=not args.non_periodic_input,
            periodic=args.periodic,
            symmetry=args.symmetry,
            ground=args.ground,
            limit=args.limit,
            heuristic=Heuristic[args.heuristic.upper()],
            show_patterns=args.show_patterns,
            seed=args.seed,
        )

        samples = [ArrayGridSource.from_csv(path) for path in args.samples]
        symmetry_mapping = None
        if args.rotate_mapping or args.reflect_mapping:
            symmetry_mapping = SymmetryMapping.from_csv(args.rotate_mapping, args.reflect_mapping)

        self._output = TileGrid()
        self._output_path = args.output

        model = OverlappingModel(
            samples,
            self._output,
            settings.pattern_size,
            settings.chunk_width,
            settings.chunk_height,
            periodic_input=settings.periodic_input,
            periodic=settings.periodic,
            symmetry=settings.symmetry,
            ground=settings.ground,
            heuristic=settings.heuristic,
            symmetry_mapping=symmetry_mapping,
        )

        self._scheduler = ChunkScheduler(model, settings)
        self._scheduler.chunk_generated.connect(self.on_chunk_generated)
        self._scheduler.chunk_failed.connect(self.on_chunk_failed)
        self._scheduler.level_generated.connect(self.on_level_generated)

        self._update_timer = qtc.QTimer(self)
        self._update_timer.timeout.connect(self._scheduler.process_updates)
        self._update_timer.start(constants.UPDATE_PUMP_INTERVAL_MS)

        self.aboutToQuit.connect(self._scheduler.stop)

        logger.info("World seed: %s (%d)", settings.seed, settings.world_seed)
        self._scheduler.start()
        self._scheduler.generate_level(args.positions)

    def on_chunk_generated(self, origin: tuple[int, int]) -> None:
        """Handler for a finished chunk."""
        logger.info("Chunk %s generated", origin)

    def on_chunk_failed(self, origin: tuple[int, int]) -> None:
        """Handler for an abandoned chunk."""
        logger.error("Chunk %s could not be generated", origin)

    def on_level_generated(self) -> None:
        """Writes the painted area to the output file and quits the application."""
        bounds = self._output.bounds()
        if bounds is not None:
            origin, size = bounds
            np.savetxt(self._output_path, self._output.to_array(origin, size), fmt="%i", delimiter=",")
            logger.info("Saved %dx%d tiles (top-left corner %s) to %s", size[0], size[1], origin, self._output_path)
        self.exit(1 if self._scheduler.failed_chunks else 0)


def _parse_position(text: str) -> tuple[int, int]:
    try:
        x, y = (int(value) for value in text.split(","))
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"Expected a position 'x,y', got {text!r}.") from exc
    return x, y


def parse_args(argv: list[str]) -> argparse.Namespace:
    """Parses the command line arguments."""
    parser = argparse.ArgumentParser(description="Generates chunks of an infinite tilemap from sample tilemaps.")
    parser.add_argument("samples", nargs="+", help="CSV files of tile indices used as samples")
    parser.add_argument("-o", "--output", default="tilemap.csv", help="CSV file the generated tiles are written to")
    parser.add_argument(
        "-p",
        "--position",
        dest="positions",
        type=_parse_position,
        action="append",
        help="position 'x,y' whose chunk is generated (repeatable, defaults to 0,0)",
    )
    parser.add_argument("-n", "--pattern-size", type=int, default=constants.PATTERN_SIZE_DEFAULT)
    parser.add_argument("--chunk-width", type=int, default=constants.CHUNK_WIDTH_DEFAULT)
    parser.add_argument("--chunk-height", type=int, default=constants.CHUNK_HEIGHT_DEFAULT)
    parser.add_argument("--symmetry", type=int, default=constants.SYMMETRY_DEFAULT)
    parser.add_argument("--non-periodic-input", action="store_true")
    parser.add_argument("--periodic", action="store_true", help="make every chunk wrap around at its edges")
    parser.add_argument("--ground", action="store_true")
    parser.add_argument("--limit", type=int, default=0, help="maximum observations per run (0 for unbounded)")
    parser.add_argument(
        "--heuristic", choices=[heuristic.name.lower() for heuristic in Heuristic], default="entropy"
    )
    parser.add_argument("--seed", default="0", help="world seed (any string)")
    parser.add_argument("--rotate-mapping", help="CSV file of 'tile,rotated tile' pairs")
    parser.add_argument("--reflect-mapping", help="CSV file of 'tile,reflected tile' pairs")
    parser.add_argument("--show-patterns", action="store_true", help="paint the pattern catalog instead of solving")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv[1:])
    if not args.positions:
        args.positions = [(0, 0)]
    return args


def main(argv: list[str] | None = None) -> int:
    """Runs the generator until the requested level is generated and returns the exit code."""
    argv = sys.argv if argv is None else argv
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        app = MainApp(argv, args)
    except ConfigurationError as exc:
        logger.error("Invalid configuration: %s", exc)
        return 2
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
