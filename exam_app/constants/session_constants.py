"""Session-related constants shared by the engine and the API layer."""

MS_PER_SECOND: int = 1000
MS_PER_MINUTE: int = 60 * MS_PER_SECOND

# Suggested cadence for clients driving the countdown through tick().
TICK_INTERVAL_MS: int = 1000

DEFAULT_CORRECT_POINTS: float = 4.0
DEFAULT_INCORRECT_POINTS: float = -1.0
DEFAULT_UNATTEMPTED_POINTS: float = 0.0

# Completed sessions kept for result and analysis lookups before the oldest is evicted.
MAX_COMPLETED_SESSIONS: int = 500
