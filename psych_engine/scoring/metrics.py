"""
Derived test metrics

Performance score, efficiency and the per-type statistics that are computed
from stored test results on read, plus the session-level improvement trend
and cognitive profile.
"""

from typing import Any, Dict, Optional, Sequence

import numpy as np

from ..core.config import (
    FAST_COMPLETION_MS, FAST_COMPLETION_BONUS, DIFFICULTY_STEP,
    TREND_ACCURACY_DELTA, TREND_TIME_DELTA_MS,
    PROFILE_REACTION_FAST_MS, PROFILE_REACTION_SLOW_MS, PROFILE_REACTION_SPAN_MS,
    COGNITIVE_PROFILES, MENTAL_STATE_FIELDS,
)
from ..core.data_types import MentalState, TestResult
from .scorers import improvement_pattern
from ..utils.numeric import round_half_up, round_int


def performance_score(accuracy: float, difficulty: int, completion_time: float) -> int:
    """
    Accuracy weighted by difficulty plus a bonus for finishing under a minute

    Each difficulty level above 3 adds 10% to the accuracy, each level below
    takes 10% off. Capped at 100.
    """
    multiplier = 1 + (difficulty - 3) * DIFFICULTY_STEP
    bonus = FAST_COMPLETION_BONUS if completion_time < FAST_COMPLETION_MS else 0
    return min(100, round_int(accuracy * multiplier + bonus))


def efficiency(accuracy: float, completion_time: float) -> float:
    """Accuracy points per second, two decimals; 0.0 for an instant test"""
    if completion_time <= 0:
        return 0.0
    return round_half_up(accuracy / (completion_time / 1000) * 100) / 100


def mental_state_change(start: MentalState, end: MentalState) -> Dict[str, float]:
    return {name: getattr(end, name) - getattr(start, name) for name in MENTAL_STATE_FIELDS}


def reaction_statistics(test: TestResult) -> Optional[Dict[str, Any]]:
    """Summary statistics for a reaction time result, None for other types"""
    if test.test_type != "reaction_time" or not test.results.get("attempts"):
        return None

    attempts = np.asarray(test.results["attempts"], dtype=float)
    average = float(np.mean(attempts))
    std = float(np.std(attempts))
    return {
        "count": int(attempts.size),
        "average": test.results.get("average", round_int(average)),
        "median": round_int(float(np.median(attempts))),
        "best": float(attempts.min()),
        "worst": float(attempts.max()),
        "standardDeviation": round_half_up(std, 2),
        "consistency": test.results.get("consistency", max(0.0, 1 - std / average)),
    }


def memory_statistics(test: TestResult) -> Optional[Dict[str, Any]]:
    """Summary statistics for a memory sequence result, None for other types"""
    if test.test_type != "memory_sequence" or not test.results.get("rounds"):
        return None

    rounds = test.results["rounds"]
    times = [r["time"] for r in rounds]
    correct = sum(1 for r in rounds if r["correct"])
    return {
        "totalRounds": len(rounds),
        "correctRounds": correct,
        "maxSequence": test.results.get("maxSequence"),
        "accuracy": correct / len(rounds) * 100,
        "avgResponseTime": round_int(float(np.mean(times))),
        "improvementPattern": improvement_pattern(times),
    }


def improvement_trend(tests: Sequence[TestResult]) -> Dict[str, Any]:
    """
    Compare the first and last test of one type within a session

    Args:
        tests: Results of a single test type, oldest first

    Returns:
        Dict with `trend` (improving/declining/stable/no_data) and `analysis`
    """
    if not tests:
        return {"trend": "no_data", "analysis": None}

    first, last = tests[0], tests[-1]
    accuracy_change = last.accuracy - first.accuracy
    time_change = first.completion_time - last.completion_time

    trend = "stable"
    if accuracy_change > TREND_ACCURACY_DELTA or time_change > TREND_TIME_DELTA_MS:
        trend = "improving"
    elif accuracy_change < -TREND_ACCURACY_DELTA or time_change < -TREND_TIME_DELTA_MS:
        trend = "declining"

    consistency = None
    if len(tests) > 2:
        consistency = 1 - (abs(accuracy_change) / len(tests)) / 100

    return {
        "trend": trend,
        "analysis": {
            "accuracyChange": accuracy_change,
            "timeChange": time_change,
            "testCount": len(tests),
            "timeSpan": round_int((last.timestamp - first.timestamp).total_seconds() * 1000),
            "consistencyScore": consistency,
        },
    }


def cognitive_profile(reaction_average: Optional[float] = None,
                      memory_accuracy: Optional[float] = None,
                      color_accuracy: Optional[float] = None) -> str:
    """
    Label a user's overall cognition from their latest result of each type

    The reaction average (ms) is first turned into a 0-100 score: anything
    under 250 ms is 100, falling linearly to 0 at 400 ms.
    """
    available = [v for v in (reaction_average, memory_accuracy, color_accuracy) if v is not None]
    if not available:
        return "Baseline"
    if len(available) < 3:
        return "Partial Assessment"

    if reaction_average < PROFILE_REACTION_FAST_MS:
        reaction_score = 100.0
    else:
        reaction_score = max(
            0.0, (PROFILE_REACTION_SLOW_MS - reaction_average) / PROFILE_REACTION_SPAN_MS * 100
        )

    overall = (reaction_score + memory_accuracy + color_accuracy) / 3
    for threshold, label in COGNITIVE_PROFILES:
        if overall >= threshold:
            return label
    return "Needs Practice"
