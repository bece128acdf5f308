"""
Configuration constants for Psych Engine

This module contains the scoring weights, band ranges, thresholds and limits
used throughout the engine, plus the runtime configuration dataclass.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, Optional, Tuple

# ============================================================================
# MENTAL STATE
# ============================================================================

MENTAL_STATE_FIELDS = ("focus", "creativity", "stress", "energy")
MENTAL_STATE_RANGE = (0.0, 100.0)
BASELINE_MENTAL_STATE = {"focus": 50, "creativity": 50, "stress": 50, "energy": 50}

# ============================================================================
# SYNTHETIC BRAINWAVES
# ============================================================================

# Frequency bands (Hz) the derived brainwaves are confined to
BRAINWAVE_BANDS: Dict[str, Tuple[float, float]] = {
    "alpha": (8.0, 13.0),     # Creativity driven
    "beta": (13.0, 30.0),     # Focus driven
    "theta": (4.0, 8.0),      # Calm (inverse stress) driven
    "gamma": (30.0, 100.0),   # Focus + creativity driven
    "delta": (1.0, 3.0),      # Random jitter only
}

# Reference frequencies above which a band contributes its full weight
WAVE_REFERENCE_HZ = {"alpha": 12.0, "beta": 25.0, "theta": 8.0, "gamma": 50.0}
WAVE_WEIGHTS = {"alpha": 25.0, "beta": 30.0, "theta": 20.0, "gamma": 25.0}

# Consciousness score blend
MENTAL_WEIGHTS = {"focus": 0.30, "creativity": 0.25, "energy": 0.20, "calm": 0.25}
MENTAL_SHARE = 0.7
WAVE_SHARE = 0.3

# ============================================================================
# SESSIONS
# ============================================================================

SESSION_ID_PREFIX = "sess"
SESSION_ID_MIN_LEN = 3
SESSION_ID_MAX_LEN = 100
USER_AGENT_MAX_LEN = 500
TIMEZONE_MAX_LEN = 50
SESSION_PROGRESS_SPAN = timedelta(minutes=30)   # sessionProgress reaches 1.0 here

# Hour boundaries [start, end) for the time-of-day tag
TIME_OF_DAY = (
    ("morning", 5, 12),
    ("afternoon", 12, 17),
    ("evening", 17, 21),
)
NIGHT = "night"

# Spread of the presentation-only performance estimate
PERFORMANCE_JITTER = 20.0

# ============================================================================
# PSYCHOLOGY TESTS
# ============================================================================

TEST_TYPES = ("reaction_time", "memory_sequence", "color_perception")

REACTION_TRIAL_ESTIMATE_MS = 3000     # Fixed per-trial completion estimate
REACTION_SPEED_CEILING_MS = 500       # Average at/above this scores 0 for speed
REACTION_SPEED_WEIGHT = 0.4
REACTION_CONSISTENCY_WEIGHT = 0.6

# Difficulty tables: (threshold, difficulty), first match wins
REACTION_DIFFICULTY = ((200, 5), (250, 4), (350, 3), (450, 2))   # average < threshold
MEMORY_DIFFICULTY = ((8, 5), (6, 4), (4, 3), (3, 2))             # maxSequence >= threshold
COLOR_DIFFICULTY = ((90, 5), (75, 4), (60, 3), (40, 2))          # accuracy >= threshold
MIN_DIFFICULTY = 1

IMPROVEMENT_THRESHOLD = 0.1           # Relative response-time change for memory rounds
MIN_ROUNDS_FOR_PATTERN = 3

FAST_COMPLETION_MS = 60000            # Bonus applies below one minute
FAST_COMPLETION_BONUS = 10
DIFFICULTY_STEP = 0.1                 # Score multiplier per difficulty level away from 3

TREND_ACCURACY_DELTA = 10             # Accuracy points between first and last test
TREND_TIME_DELTA_MS = 1000

# Cognitive profile composite
PROFILE_REACTION_FAST_MS = 250
PROFILE_REACTION_SLOW_MS = 400
PROFILE_REACTION_SPAN_MS = 150
COGNITIVE_PROFILES = (
    (85, "Cognitive Elite"),
    (70, "Sharp Mind"),
    (55, "Balanced Cognition"),
    (40, "Developing Skills"),
)

# ============================================================================
# ANALYTICS
# ============================================================================

ANALYTICS_WINDOWS = {
    "15m": timedelta(minutes=15),
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}

BRAINWAVE_HISTORY_WINDOWS = {
    "5m": timedelta(minutes=5),
    "15m": timedelta(minutes=15),
    "1h": timedelta(hours=1),
}

LEADERBOARD_METRICS = ("accuracy", "completionTime")
TOP_PERFORMER_MIN_TESTS = 2
TOP_PERFORMER_LIMIT = 5
RECENT_ACTIVITY_SPAN = timedelta(hours=24)

# Records scanned between cancellation checks
SCAN_CHUNK_SIZE = 500


@dataclass
class EngineConfig:
    """
    Runtime configuration for the engine

    Scoring constants above are fixed; the values here are the ones a
    deployment or the command line may want to tune.

    - seed: seed for the RNG behind the delta band and performance estimate
      (None draws fresh entropy)
    - max_update_attempts: compare-and-set attempts per session mutation
    - default_window: analytics window used when the caller gives none
    - history_limit: snapshots returned with session details
    - leaderboard_limit: default leaderboard length
    """

    seed: Optional[int] = None
    max_update_attempts: int = 50
    default_window: str = "24h"
    history_limit: int = 20
    brainwave_history_limit: int = 50
    leaderboard_limit: int = 10

    def __post_init__(self):
        # Accept window aliases in any case from the command line
        if self.default_window is not None:
            self.default_window = self.default_window.lower()


def validate_config(config: EngineConfig) -> None:
    """
    Validate configuration values

    Args:
        config: Configuration to validate

    Raises:
        ValueError: If a configuration value is invalid
    """
    if config.max_update_attempts < 1:
        raise ValueError(f"max_update_attempts must be >= 1, got {config.max_update_attempts}")

    if config.default_window not in ANALYTICS_WINDOWS:
        raise ValueError(
            f"default_window must be one of {sorted(ANALYTICS_WINDOWS)}, got '{config.default_window}'"
        )

    if config.history_limit < 1:
        raise ValueError(f"history_limit must be positive, got {config.history_limit}")

    if config.brainwave_history_limit < 1:
        raise ValueError(
            f"brainwave_history_limit must be positive, got {config.brainwave_history_limit}"
        )

    if config.leaderboard_limit < 1:
        raise ValueError(f"leaderboard_limit must be positive, got {config.leaderboard_limit}")
