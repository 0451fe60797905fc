"""Contains the class that schedules chunk generation for an infinite world."""

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Any, TYPE_CHECKING

from PyQt6 import QtCore as qtc

from constants import CHUNK_QUEUE_MAX_SIZE
from enums import ChunkUpdateType
from model.chunk_worker import ChunkWorker
from model.errors import ChunkQueueFullError, ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Iterable

    from model.overlapping_model import OverlappingModel
    from model.settings import GeneratorSettings

logger = logging.getLogger(__name__)


class ChunkScheduler(qtc.QObject):
    """Queues chunk requests, drives the chunk worker thread and delivers its results.

    The world is cut into chunks whose origins lie on a grid of 'chunk_spacing'. Since the spacing is smaller than the
    chunk size, neighboring chunks share a strip of cells; the worker registers the already painted part of that strip
    as preset tiles before solving a chunk, which makes the new chunk continue its neighbors without visible seams.

    Requests may come from any thread. Results are sent back over an update channel and only turned into signals by
    process_updates(), which must be called from the consuming thread (e.g. from a QTimer).

    Signals:
        chunk_generated: Emitted with the chunk origin when a chunk has been solved and painted.
        chunk_failed: Emitted with the chunk origin when a chunk has been abandoned after its attempt budget.
        level_generated: Emitted when every chunk of the current level request has been completed.

    Attributes:
        failed_chunks: Origins of all chunks abandoned so far. They stay unpainted.
    """

    chunk_generated = qtc.pyqtSignal(object)
    chunk_failed = qtc.pyqtSignal(object)
    level_generated = qtc.pyqtSignal()

    failed_chunks: set[tuple[int, int]]

    # The model shared by all chunks of the world.
    _model: OverlappingModel
    # Seeds, attempt budget, run limit, chunk spacing and poll intervals.
    _settings: GeneratorSettings

    # Queue of chunk origins awaiting generation (shared between the producers and the worker).
    _chunk_queue: queue.Queue[tuple[int, int]]
    # Channel the worker sends its updates over.
    _update_channel: queue.SimpleQueue[Any]
    # Guard allowing only one chunk in flight, released after delivering the chunk's update.
    _in_flight: threading.BoundedSemaphore
    # Event used to signal the worker to stop.
    _stop_event: threading.Event
    # The worker thread, None until started.
    _worker: ChunkWorker | None

    # Chunk origins of the current level request that are not completed yet.
    _level_pending: set[tuple[int, int]]
    # True while a level request is being tracked.
    _level_active: bool

    def __init__(self, model: OverlappingModel, settings: GeneratorSettings) -> None:
        """Initializes the scheduler. The worker thread is not started until start() is called.

        Args:
            model: The model shared by all chunks; its output size is the chunk size.
            settings: Seeds, attempt budget, run limit, chunk spacing and poll intervals.

        Raises:
            ConfigurationError: The chunk spacing exceeds the chunk size of the model.
        """
        super().__init__()

        spacing = settings.chunk_spacing
        if spacing[0] > model.width or spacing[1] > model.height:
            raise ConfigurationError(
                f"Chunk spacing {spacing} exceeds the chunk size {model.width}x{model.height}, chunks would not touch."
            )

        self._model = model
        self._settings = settings

        self._chunk_queue = queue.Queue(maxsize=CHUNK_QUEUE_MAX_SIZE)
        self._update_channel = queue.SimpleQueue()
        self._in_flight = threading.BoundedSemaphore(1)
        self._stop_event = threading.Event()
        self._worker = None

        self._level_pending = set()
        self._level_active = False
        self.failed_chunks = set()

    @property
    def chunk_spacing(self) -> tuple[int, int]:
        """The (x, y) distance between the origins of two neighboring chunks."""
        return self._settings.chunk_spacing

    @property
    def is_running(self) -> bool:
        """True while the worker thread is alive."""
        return self._worker is not None and self._worker.is_alive()

    @property
    def pending_level_chunks(self) -> set[tuple[int, int]]:
        """The chunk origins of the current level request that are not completed yet."""
        return set(self._level_pending)

    def start(self) -> None:
        """Starts the worker thread (does nothing if it is already running)."""
        if self.is_running:
            return
        self._stop_event.clear()
        self._worker = ChunkWorker(
            self._model, self._settings, self._chunk_queue, self._update_channel, self._in_flight, self._stop_event
        )
        self._worker.start()

    def stop(self, timeout: float | None = None) -> None:
        """Asks the worker thread to stop after its current chunk and waits for it."""
        self._stop_event.set()
        if self._worker is not None:
            self._worker.join(timeout)

    def chunk_origin(self, position: tuple[int, int]) -> tuple[int, int]:
        """Returns the origin of the chunk containing an absolute position."""
        x_spacing, y_spacing = self.chunk_spacing
        return (position[0] // x_spacing) * x_spacing, (position[1] // y_spacing) * y_spacing

    def enqueue(self, position: tuple[int, int]) -> list[tuple[int, int]]:
        """Requests generation of the chunk containing an absolute position.

        If the position lies in the strip shared with the left and/or top neighbor chunk, those neighbors (and the
        top-left one when both apply) are queued first, so the chunk is generated after the chunks sharing the cell.

        Returns:
            The chunk origins queued, in queue order.

        Raises:
            ChunkQueueFullError: The chunk queue is full.
        """
        origins = self._requested_origins(position)
        for origin in origins:
            self._put_origin(origin)
        logger.debug("Queued chunks %s for position %s", origins, position)
        return origins

    def generate_level(self, positions: Iterable[tuple[int, int]] = ((0, 0),)) -> list[tuple[int, int]]:
        """Requests the chunks containing all given positions and tracks them as one level.

        level_generated is emitted once every chunk queued by this request has been completed (generated, skipped or
        abandoned). Calling it again while a level is pending adds the new chunks to the same level.

        Returns:
            The chunk origins queued, in queue order.

        Raises:
            ChunkQueueFullError: The chunk queue is full. Chunks queued before the error stay part of the level.
        """
        queued: list[tuple[int, int]] = []
        for position in positions:
            for origin in self._requested_origins(position):
                # Completions are only delivered on this thread, so tracking right after the put cannot miss one.
                self._put_origin(origin)
                self._level_pending.add(origin)
                self._level_active = True
                queued.append(origin)
        logger.info("Requested level of %d chunks", len(set(queued)))
        return queued

    def process_updates(self) -> int:
        """Delivers all updates the worker has sent so far as signals. Must be called from the consuming thread.

        Returns:
            The number of updates delivered.
        """
        delivered = 0
        while True:
            try:
                update_type, origin = self._update_channel.get_nowait()
            except queue.Empty:
                break

            match update_type:
                case ChunkUpdateType.CHUNK_GENERATED:
                    self.chunk_generated.emit(origin)
                case ChunkUpdateType.CHUNK_FAILED:
                    self.failed_chunks.add(origin)
                    self.chunk_failed.emit(origin)
                case ChunkUpdateType.CHUNK_SKIPPED:
                    pass

            # The next chunk may only start once this one has been delivered.
            self._in_flight.release()
            delivered += 1
            self._complete_level_chunk(origin)

        return delivered

    def wait_for_level(self, timeout: float, poll_interval: float = 0.01) -> bool:
        """Delivers updates until the current level is generated, for consumers without an event loop.

        Returns:
            True if the level was generated within the timeout, False otherwise.
        """
        deadline = time.monotonic() + timeout
        while self._level_active:
            self.process_updates()
            if not self._level_active:
                break
            if time.monotonic() >= deadline:
                return False
            time.sleep(poll_interval)
        return True

    def _complete_level_chunk(self, origin: tuple[int, int]) -> None:
        """Removes a completed chunk from the current level and emits level_generated once the level is complete."""
        if not self._level_active:
            return
        self._level_pending.discard(origin)
        if not self._level_pending:
            self._level_active = False
            logger.info("Level generated (%d chunks failed so far)", len(self.failed_chunks))
            self.level_generated.emit()

    def _requested_origins(self, position: tuple[int, int]) -> list[tuple[int, int]]:
        """Returns the chunk containing a position, preceded by the neighbors sharing the position's strip."""
        x_spacing, y_spacing = self.chunk_spacing
        origin = self.chunk_origin(position)
        on_left_edge = position[0] - origin[0] < self._model.width - x_spacing
        on_top_edge = position[1] - origin[1] < self._model.height - y_spacing

        origins = []
        if on_left_edge and on_top_edge:
            origins.append((origin[0] - x_spacing, origin[1] - y_spacing))
        if on_top_edge:
            origins.append((origin[0], origin[1] - y_spacing))
        if on_left_edge:
            origins.append((origin[0] - x_spacing, origin[1]))
        origins.append(origin)
        return origins

    def _put_origin(self, origin: tuple[int, int]) -> None:
        try:
            self._chunk_queue.put_nowait(origin)
        except queue.Full as exc:
            raise ChunkQueueFullError(f"Cannot queue chunk {origin}, the chunk queue is full.") from exc
