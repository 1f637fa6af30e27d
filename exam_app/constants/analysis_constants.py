"""Thresholds and weights used by the analysis and recommendation engines."""

FAST_THRESHOLD_MS: int = 30_000
SLOW_THRESHOLD_MS: int = 120_000

FAST_WEIGHT: float = 1.0
MODERATE_WEIGHT: float = 0.7
SLOW_WEIGHT: float = 0.3

PROGRESSION_SEGMENT_COUNT: int = 4

STRONG_SUBJECT_ACCURACY: float = 80.0
WEAK_SUBJECT_ACCURACY: float = 60.0
GOOD_TIME_EFFICIENCY: int = 70
POOR_TIME_EFFICIENCY: int = 50

FALLBACK_SUBJECT_NAME: str = "all subjects"

DIFFICULTY_ALIASES: dict[str, str] = {
    "easy": "easy",
    "e": "easy",
    "medium": "medium",
    "m": "medium",
    "hard": "hard",
    "h": "hard",
}
