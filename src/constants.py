"""Contains global constants and default values used throughout the project."""

from enums import Heuristic


# === MODEL CONSTANTS ===

PATTERN_SIZE_DEFAULT: int = 2

CHUNK_WIDTH_DEFAULT: int = 65
CHUNK_HEIGHT_DEFAULT: int = 65

SYMMETRY_DEFAULT: int = 8
SYMMETRY_ALLOWED_VALUES: tuple[int, ...] = (1, 2, 4, 8)

HEURISTIC_DEFAULT: Heuristic = Heuristic.ENTROPY

# Amplitude of the random noise used to break ties between cells of equal entropy.
ENTROPY_NOISE_SCALE: float = 1e-6

# Number of differently seeded runs attempted on a chunk before it is abandoned.
MAX_ATTEMPTS_PER_CHUNK: int = 10

# Read-back value of a grid sink cell that has not been painted. Reserved, never a valid tile identity.
EMPTY_TILE: int = -1

# === SCHEDULER CONSTANTS ===

CHUNK_QUEUE_MAX_SIZE: int = 4096

# Seconds the worker waits before checking the chunk queue again when it is empty.
IDLE_POLL_INTERVAL_EMPTY: float = 1.0
# Seconds the worker waits before checking again while a finished chunk has not been delivered yet.
IDLE_POLL_INTERVAL_BUSY: float = 0.02

# Milliseconds between two deliveries of pending worker updates in the command-line application.
UPDATE_PUMP_INTERVAL_MS: int = 20
