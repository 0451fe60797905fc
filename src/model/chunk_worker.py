"""Implements the background thread that solves queued chunks one at a time."""

from __future__ import annotations

import logging
import queue
from threading import Thread
from typing import Any, TYPE_CHECKING

from enums import ChunkUpdateType
from model.settings import chunk_attempt_seed

if TYPE_CHECKING:
    from threading import Event, Semaphore

    from model.overlapping_model import OverlappingModel
    from model.settings import GeneratorSettings

logger = logging.getLogger(__name__)


class ChunkWorker(Thread):
    """Worker thread that takes chunk origins from the chunk queue and generates them.

    The worker only starts a chunk after acquiring the in-flight guard, which the consumer side releases once it has
    delivered the chunk's completion update. At most one chunk is therefore being solved or waiting to be delivered at
    any time. A chunk is attempted with a fresh seed up to 'max_attempts' times; a chunk that fails every attempt is
    left unpainted and reported as failed. Once a solve has started it always runs to completion, stopping the worker
    only takes effect between chunks.
    """

    # The model shared by all chunks of the world.
    _model: OverlappingModel
    # Seeds, attempt budget, run limit and poll intervals.
    _settings: GeneratorSettings
    # Queue of chunk origins awaiting generation (shared with the producers).
    _chunk_queue: queue.Queue[tuple[int, int]]
    # Channel used to send updates back to the consumer side.
    _update_channel: queue.SimpleQueue[Any]
    # Guard allowing only one chunk in flight.
    _in_flight: Semaphore
    # Event used to signal the worker to stop after the current chunk.
    _stop_event: Event

    def __init__(
        self,
        model: OverlappingModel,
        settings: GeneratorSettings,
        chunk_queue: queue.Queue[tuple[int, int]],
        update_channel: queue.SimpleQueue[Any],
        in_flight: Semaphore,
        stop_event: Event,
    ) -> None:
        """Initializes the worker thread with everything it shares with the scheduler.

        Args:
            model: The model shared by all chunks of the world.
            settings: Seeds, attempt budget, run limit and poll intervals.
            chunk_queue: Queue of chunk origins awaiting generation.
            update_channel: Channel used to send updates back to the consumer side.
            in_flight: Guard allowing only one chunk in flight.
            stop_event: Event used to signal the worker to stop after the current chunk.
        """
        super().__init__(name="ChunkWorker", daemon=True)

        self._model = model
        self._settings = settings
        self._chunk_queue = chunk_queue
        self._update_channel = update_channel
        self._in_flight = in_flight
        self._stop_event = stop_event

    def run(self) -> None:
        """The main loop of the thread, overriding 'threading.Thread.run()'."""
        logger.debug("Chunk worker started")
        while not self._stop_event.is_set():
            if self._chunk_queue.empty():
                self._stop_event.wait(self._settings.idle_poll_interval_empty)
                continue

            if not self._in_flight.acquire(blocking=False):
                self._stop_event.wait(self._settings.idle_poll_interval_busy)
                continue

            try:
                origin = self._chunk_queue.get_nowait()
            except queue.Empty:
                self._in_flight.release()
                continue

            try:
                update_type = self._process_chunk(origin)
            except Exception:
                # The update still has to be posted, otherwise the in-flight guard is never released.
                logger.exception("Generating chunk %s raised an error", origin)
                update_type = ChunkUpdateType.CHUNK_FAILED
            self._update_channel.put((update_type, origin))

        logger.debug("Chunk worker stopped")

    def _process_chunk(self, origin: tuple[int, int]) -> ChunkUpdateType:
        """Generates one chunk, returning the kind of update to report."""
        if self._model.is_generated(origin):
            logger.debug("Chunk %s is already generated, skipping", origin)
            return ChunkUpdateType.CHUNK_SKIPPED

        if self._settings.show_patterns:
            self._model.save_patterns(origin)
            return ChunkUpdateType.CHUNK_GENERATED

        self._model.register_preset_tiles(origin)

        world_seed = self._settings.world_seed
        for attempt in range(self._settings.max_attempts):
            seed = chunk_attempt_seed(world_seed, origin, attempt)
            if self._model.run(seed, self._settings.limit):
                self._model.save(origin)
                logger.debug("Chunk %s generated on attempt %d", origin, attempt + 1)
                return ChunkUpdateType.CHUNK_GENERATED
            logger.warning("Chunk %s: attempt %d of %d failed", origin, attempt + 1, self._settings.max_attempts)

        logger.warning("Chunk %s abandoned after %d failed attempts", origin, self._settings.max_attempts)
        return ChunkUpdateType.CHUNK_FAILED
