"""
Core data types for Psych Engine

This module defines the records the engine produces and stores: the
self-reported mental state, the synthetic brainwaves derived from it,
consciousness snapshots, sessions and scored psychology tests.
All records are frozen; updates produce new values.
"""

import math
import numbers
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

import numpy as np

from .config import (
    MENTAL_STATE_FIELDS, MENTAL_STATE_RANGE, BASELINE_MENTAL_STATE, BRAINWAVE_BANDS, TIMEZONE_MAX_LEN
)
from .errors import ValidationError
from ..utils.numeric import clamp, round_int


def check_percentage(name: str, value: Any) -> float:
    """
    Validate a 0-100 percentage field

    Args:
        name: Field name used in the error message
        value: Candidate value

    Returns:
        float: The value as a float

    Raises:
        ValidationError: If the value is missing, not numeric or out of range
    """
    if value is None:
        raise ValidationError(f"'{name}' is required")
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise ValidationError(f"'{name}' must be a number, got {value!r}")
    value = float(value)
    low, high = MENTAL_STATE_RANGE
    if math.isnan(value) or value < low or value > high:
        raise ValidationError(f"'{name}' must be within [{low:g}, {high:g}], got {value}")
    return value


@dataclass(frozen=True)
class MentalState:
    """Self-reported mental state, four percentages"""
    focus: float
    creativity: float
    stress: float
    energy: float

    def __post_init__(self):
        for name in MENTAL_STATE_FIELDS:
            object.__setattr__(self, name, check_percentage(name, getattr(self, name)))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "MentalState":
        """Build from a mapping; all four fields are required, extra keys are ignored"""
        if not isinstance(data, Mapping):
            raise ValidationError(f"mental state must be a mapping, got {type(data).__name__}")
        missing = [name for name in MENTAL_STATE_FIELDS if name not in data]
        if missing:
            raise ValidationError(f"mental state is missing required fields: {', '.join(missing)}")
        return cls(**{name: data[name] for name in MENTAL_STATE_FIELDS})

    @classmethod
    def baseline(cls) -> "MentalState":
        """Default state for a session that reports nothing yet"""
        return cls(**BASELINE_MENTAL_STATE)

    def merged(self, partial: Mapping[str, Any]) -> "MentalState":
        """Return a new state with the given fields replaced"""
        unknown = set(partial) - set(MENTAL_STATE_FIELDS)
        if unknown:
            raise ValidationError(f"unknown mental state fields: {', '.join(sorted(unknown))}")
        return replace(self, **dict(partial))

    @property
    def calm(self) -> float:
        return 100.0 - self.stress

    @property
    def mental_balance(self) -> int:
        """Rounded mean of focus, creativity, energy and calm"""
        return round_int((self.focus + self.creativity + self.energy + self.calm) / 4)

    def as_dict(self) -> Dict[str, float]:
        return {name: getattr(self, name) for name in MENTAL_STATE_FIELDS}


@dataclass(frozen=True)
class Brainwaves:
    """Synthetic brainwave frequencies (Hz) derived from a mental state"""
    alpha: float
    beta: float
    theta: float
    gamma: float
    delta: float

    def as_dict(self) -> Dict[str, float]:
        return {band: getattr(self, band) for band in BRAINWAVE_BANDS}

    @property
    def dominant(self) -> str:
        """Band with the highest frequency; ties go to the earlier band"""
        waves = self.as_dict()
        return max(waves, key=lambda band: waves[band])

    @property
    def coherence(self) -> float:
        """Inverse spread of the five bands as a 0-100 percentage"""
        values = np.array(list(self.as_dict().values()), dtype=float)
        return float(clamp(100.0 - float(np.var(values)) * 2, 0.0, 100.0))


@dataclass(frozen=True)
class EnvironmentalFactors:
    time_of_day: str
    session_progress: float = 0.0


@dataclass(frozen=True)
class Location:
    """Optional coarse location a client may attach to a session"""
    country: Optional[str] = None
    timezone: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "Location":
        if not data:
            return cls()
        if not isinstance(data, Mapping):
            raise ValidationError(f"location must be a mapping, got {type(data).__name__}")
        country = data.get("country")
        timezone = data.get("timezone")
        if country is not None:
            if not isinstance(country, str) or len(country) != 2 or not country.isalpha():
                raise ValidationError(f"'country' must be a two-letter code, got {country!r}")
            country = country.upper()
        if timezone is not None:
            if not isinstance(timezone, str) or len(timezone) > TIMEZONE_MAX_LEN:
                raise ValidationError(
                    f"'timezone' must be a string of at most {TIMEZONE_MAX_LEN} characters"
                )
        return cls(country=country, timezone=timezone)


@dataclass(frozen=True)
class ConsciousnessSnapshot:
    """Immutable record of derived state at one instant"""
    session_id: str
    timestamp: datetime
    mental_state: MentalState
    brainwaves: Brainwaves
    cognitive_load: int
    attention_level: int
    emotional_state: str
    environmental_factors: EnvironmentalFactors
    consciousness_score: int

    @property
    def mental_balance(self) -> int:
        return self.mental_state.mental_balance


@dataclass(frozen=True)
class Session:
    """
    A user's interaction lifetime

    `version` is the storage concurrency token: every successful write
    increments it, and writers compare-and-set against the value they read.
    """
    session_id: str
    user_agent: str
    start_time: datetime
    mental_state: MentalState
    end_time: Optional[datetime] = None
    interactions: int = 0
    duration: int = 0                        # milliseconds
    total_tests: int = 0
    avg_performance: Optional[float] = None
    location: Location = field(default_factory=Location)
    version: int = 0

    @property
    def is_active(self) -> bool:
        return self.end_time is None

    @property
    def status(self) -> str:
        return "active" if self.is_active else "completed"

    @property
    def calculated_duration(self) -> int:
        """Elapsed milliseconds for ended sessions, stored duration otherwise"""
        if self.end_time is not None:
            return elapsed_ms(self.start_time, self.end_time)
        return self.duration

    @property
    def mental_balance(self) -> int:
        return self.mental_state.mental_balance


@dataclass(frozen=True)
class TestResult:
    """A scored psychology test"""
    __test__ = False  # not a pytest class

    session_id: str
    test_type: str
    results: Dict[str, Any]
    accuracy: float
    completion_time: int                     # milliseconds
    difficulty: int
    mental_state_at_start: MentalState
    mental_state_at_end: MentalState
    timestamp: datetime


def local_now() -> datetime:
    """Timezone-aware current time in the host's local zone"""
    return datetime.now().astimezone()


def elapsed_ms(start: datetime, end: datetime) -> int:
    """Non-negative whole milliseconds between two instants"""
    return max(0, round_int((end - start).total_seconds() * 1000))
