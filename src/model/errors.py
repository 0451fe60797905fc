"""Contains the exception classes raised by the generator."""


class ConfigurationError(ValueError):
    """Raised when a model or its settings cannot be built from the given inputs."""


class ChunkQueueFullError(RuntimeError):
    """Raised when a chunk generation request cannot be queued because the chunk queue is full."""
