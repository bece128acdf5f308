"""
Psychology test scoring

This module implements the three test-type specific scoring algorithms.
Each scorer validates the raw trial data a client submits and computes
accuracy (0-100), completion time (ms) and a dynamic difficulty rating (1-5)
that is derived after the fact from performance rather than chosen up front.
"""

import logging
import math
import numbers
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from ..core.config import (
    TEST_TYPES, MIN_DIFFICULTY,
    REACTION_TRIAL_ESTIMATE_MS, REACTION_SPEED_CEILING_MS,
    REACTION_SPEED_WEIGHT, REACTION_CONSISTENCY_WEIGHT,
    REACTION_DIFFICULTY, MEMORY_DIFFICULTY, COLOR_DIFFICULTY,
    IMPROVEMENT_THRESHOLD, MIN_ROUNDS_FOR_PATTERN,
)
from ..core.errors import ValidationError
from ..utils.numeric import clamp, round_half_up, round_int


@dataclass(frozen=True)
class TestScore:
    """Outcome of scoring one test submission"""
    __test__ = False

    results: Dict[str, Any]
    accuracy: float
    completion_time: int
    difficulty: int


def difficulty_below(value: float, table: Sequence[Tuple[float, int]]) -> int:
    """First difficulty whose threshold the value is strictly below"""
    for threshold, difficulty in table:
        if value < threshold:
            return difficulty
    return MIN_DIFFICULTY


def difficulty_at_least(value: float, table: Sequence[Tuple[float, int]]) -> int:
    """First difficulty whose threshold the value reaches"""
    for threshold, difficulty in table:
        if value >= threshold:
            return difficulty
    return MIN_DIFFICULTY


def _number(name: str, value: Any, minimum: float = 0.0, strict: bool = False) -> float:
    if isinstance(value, bool) or not isinstance(value, numbers.Real) or math.isnan(value) \
            or math.isinf(value):
        raise ValidationError(f"'{name}' must be a finite number, got {value!r}")
    if value < minimum or (strict and value == minimum):
        bound = "greater than" if strict else "at least"
        raise ValidationError(f"'{name}' must be {bound} {minimum:g}, got {value}")
    return float(value)


def _flag(name: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValidationError(f"'{name}' must be a boolean, got {value!r}")
    return value


def _trials(raw: Any, key: str) -> List[Any]:
    """Pull the trial list out of a payload, rejecting empty lists"""
    trials = raw.get(key) if isinstance(raw, Mapping) else raw
    if trials is None:
        raise ValidationError(f"'{key}' is required")
    if isinstance(trials, (str, bytes)) or not isinstance(trials, Sequence):
        raise ValidationError(f"'{key}' must be a list, got {type(trials).__name__}")
    if len(trials) == 0:
        raise ValidationError(f"'{key}' must contain at least one entry")
    return list(trials)


def _entry(key: str, index: int, entry: Any) -> Mapping[str, Any]:
    if not isinstance(entry, Mapping):
        raise ValidationError(f"'{key}[{index}]' must be a mapping, got {type(entry).__name__}")
    return entry


def improvement_pattern(response_times: Sequence[float]) -> str:
    """
    Compare mean response time of the first and second half of the rounds

    Returns:
        str: "improving" when the late half is >10% faster, "declining" when
        >10% slower, "stable" otherwise, "insufficient_data" under 3 rounds
    """
    if len(response_times) < MIN_ROUNDS_FOR_PATTERN:
        return "insufficient_data"

    half = len(response_times) // 2
    early_avg = float(np.mean(response_times[:half]))
    late_avg = float(np.mean(response_times[half:]))
    if early_avg == 0:
        return "stable"

    improvement = (early_avg - late_avg) / early_avg
    if improvement > IMPROVEMENT_THRESHOLD:
        return "improving"
    if improvement < -IMPROVEMENT_THRESHOLD:
        return "declining"
    return "stable"


class TestScorer:
    """Base class for test-type specific scorers"""
    __test__ = False

    test_type: str = ""
    trials_key: str = ""

    def score(self, raw: Any) -> TestScore:
        raise NotImplementedError


class ReactionTimeScorer(TestScorer):
    """
    Score a reaction time test

    Accuracy blends speed (40%) and consistency (60%). Speed scores 0 at
    500 ms and above and saturates at 100 from 200 ms down; consistency is
    one minus the coefficient of variation of the attempts. Completion time is
    a fixed 3 s estimate per attempt, not measured.
    """

    test_type = "reaction_time"
    trials_key = "attempts"

    def score(self, raw: Any) -> TestScore:
        attempts = [
            _number(f"attempts[{i}]", value, strict=True)
            for i, value in enumerate(_trials(raw, self.trials_key))
        ]
        times = np.asarray(attempts, dtype=float)

        average = float(np.mean(times))
        variance = float(np.mean((times - average) ** 2))
        consistency = max(0.0, 1.0 - math.sqrt(variance) / average)

        speed_score = clamp((REACTION_SPEED_CEILING_MS - average) / 3, 0.0, 100.0)
        accuracy = round_int(
            speed_score * REACTION_SPEED_WEIGHT + consistency * 100 * REACTION_CONSISTENCY_WEIGHT
        )

        results = {
            "attempts": attempts,
            "average": round_int(average),
            "best": float(times.min()),
            "worst": float(times.max()),
            "consistency": round_half_up(consistency, 2),
        }
        return TestScore(
            results=results,
            accuracy=float(accuracy),
            completion_time=len(attempts) * REACTION_TRIAL_ESTIMATE_MS,
            difficulty=difficulty_below(average, REACTION_DIFFICULTY),
        )


class MemorySequenceScorer(TestScorer):
    """
    Score a memory sequence test

    Each round shows a sequence of `length` items; maxSequence is the longest
    sequence recalled, counting a failed round as one item short.
    """

    test_type = "memory_sequence"
    trials_key = "rounds"

    def score(self, raw: Any) -> TestScore:
        rounds = []
        for i, entry in enumerate(_trials(raw, self.trials_key)):
            entry = _entry(self.trials_key, i, entry)
            length = _number(f"rounds[{i}].length", entry.get("length"), minimum=1)
            if not length.is_integer():
                raise ValidationError(f"'rounds[{i}].length' must be a whole number, got {length:g}")
            rounds.append({
                "length": int(length),
                "correct": _flag(f"rounds[{i}].correct", entry.get("correct")),
                "time": _number(f"rounds[{i}].time", entry.get("time")),
            })

        correct = sum(1 for r in rounds if r["correct"])
        times = [r["time"] for r in rounds]
        max_sequence = max(r["length"] if r["correct"] else r["length"] - 1 for r in rounds)
        max_sequence = max(0, max_sequence)

        # A client-reported maxSequence is accepted only when the rounds back it
        if isinstance(raw, Mapping) and raw.get("maxSequence") is not None:
            reported = _number("maxSequence", raw["maxSequence"])
            if reported != max_sequence:
                raise ValidationError(
                    f"'maxSequence' {reported:g} disagrees with the rounds, which give {max_sequence}"
                )

        results = {
            "rounds": rounds,
            "maxSequence": max_sequence,
            "totalCorrect": correct,
            "totalAttempts": len(rounds),
            "averageResponseTime": float(np.mean(times)),
            "improvementPattern": improvement_pattern(times),
        }
        return TestScore(
            results=results,
            accuracy=100.0 * correct / len(rounds),
            completion_time=round_int(sum(times)),
            difficulty=difficulty_at_least(max_sequence, MEMORY_DIFFICULTY),
        )


class ColorPerceptionScorer(TestScorer):
    """
    Score a color perception test

    Difficulty here follows accuracy directly. sensitivityThreshold is the
    smallest per-trial difficulty value that was answered correctly.
    """

    test_type = "color_perception"
    trials_key = "tests"

    def score(self, raw: Any) -> TestScore:
        trials = []
        for i, entry in enumerate(_trials(raw, self.trials_key)):
            entry = _entry(self.trials_key, i, entry)
            trials.append({
                "difficulty": _number(f"tests[{i}].difficulty", entry.get("difficulty")),
                "correct": _flag(f"tests[{i}].correct", entry.get("correct")),
                "responseTime": _number(f"tests[{i}].responseTime", entry.get("responseTime")),
            })

        correct = [t for t in trials if t["correct"]]
        response_times = [t["responseTime"] for t in trials]
        accuracy = 100.0 * len(correct) / len(trials)
        sensitivity: Optional[float] = min((t["difficulty"] for t in correct), default=None)

        results = {
            "tests": trials,
            "correctAnswers": len(correct),
            "totalTests": len(trials),
            "averageResponseTime": float(np.mean(response_times)),
            "sensitivityThreshold": sensitivity,
        }
        return TestScore(
            results=results,
            accuracy=accuracy,
            completion_time=round_int(sum(response_times)),
            difficulty=difficulty_at_least(accuracy, COLOR_DIFFICULTY),
        )


SCORERS: Dict[str, TestScorer] = {
    scorer.test_type: scorer
    for scorer in (ReactionTimeScorer(), MemorySequenceScorer(), ColorPerceptionScorer())
}


def check_test_type(test_type: Any) -> str:
    if test_type not in TEST_TYPES:
        raise ValidationError(f"unsupported test type {test_type!r}, expected one of {list(TEST_TYPES)}")
    return test_type


def score_test(test_type: str, raw: Any) -> TestScore:
    """
    Score raw trial data with the scorer registered for the test type

    Args:
        test_type: One of reaction_time, memory_sequence, color_perception
        raw: Payload holding the trial list (or the list itself)

    Returns:
        TestScore: Results payload, accuracy, completion time and difficulty

    Raises:
        ValidationError: Unknown test type, empty or malformed trials
    """
    scorer = SCORERS[check_test_type(test_type)]
    score = scorer.score(raw)
    logging.debug(f"Scored {test_type}: accuracy={score.accuracy:.1f} "
                  f"time={score.completion_time}ms difficulty={score.difficulty}")
    return score
