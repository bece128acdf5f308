"""
Mental state to synthetic signal derivation

This module maps a self-reported mental state onto a synthetic brainwave
vector and a single consciousness score. Nothing here is measured: each band
is a linear function of one or two mental-state components, except delta
which is pure jitter drawn from an injectable random generator so that
everything else stays reproducible under test.
"""

import logging
from datetime import datetime
from typing import Optional

import numpy as np

from ..core.config import (
    BRAINWAVE_BANDS, WAVE_REFERENCE_HZ, WAVE_WEIGHTS, MENTAL_WEIGHTS,
    MENTAL_SHARE, WAVE_SHARE, SESSION_PROGRESS_SPAN, TIME_OF_DAY, NIGHT,
)
from ..core.data_types import (
    MentalState, Brainwaves, ConsciousnessSnapshot, EnvironmentalFactors, Session,
)
from ..detection.emotional_state import EmotionalStateClassifier
from ..utils.numeric import clamp, round_int


def _band_position(band: str, fraction: float) -> float:
    """Place a 0-1 fraction inside a band's frequency range"""
    low, high = BRAINWAVE_BANDS[band]
    return low + clamp(fraction, 0.0, 1.0) * (high - low)


def derive_brainwaves(state: MentalState, rng: np.random.Generator) -> Brainwaves:
    """
    Derive the five brainwave bands from a mental state

    Args:
        state: Current mental state
        rng: Random generator used for the delta band only

    Returns:
        Brainwaves: Frequencies within their documented bands
    """
    return Brainwaves(
        alpha=_band_position("alpha", state.creativity / 100),
        beta=_band_position("beta", state.focus / 100),
        theta=_band_position("theta", state.calm / 100),
        gamma=_band_position("gamma", (state.focus + state.creativity) / 200),
        delta=_band_position("delta", float(rng.random())),
    )


def consciousness_score(state: MentalState, waves: Brainwaves) -> int:
    """
    Blend mental state and brainwaves into one 0-100 score

    70% comes from the weighted mental state, 30% from how close each band
    sits to its reference frequency. The result is clamped even though valid
    inputs cannot leave the range.
    """
    mental = (
        state.focus * MENTAL_WEIGHTS["focus"] +
        state.creativity * MENTAL_WEIGHTS["creativity"] +
        state.energy * MENTAL_WEIGHTS["energy"] +
        state.calm * MENTAL_WEIGHTS["calm"]
    )

    wave = 0.0
    for band, reference in WAVE_REFERENCE_HZ.items():
        wave += min(getattr(waves, band) / reference, 1.0) * WAVE_WEIGHTS[band]

    return round_int(clamp(mental * MENTAL_SHARE + wave * WAVE_SHARE, 0.0, 100.0))


def cognitive_load(state: MentalState) -> int:
    return round_int(clamp((100 - state.focus + state.stress) / 2, 0.0, 100.0))


def attention_level(state: MentalState) -> int:
    return round_int(clamp((state.focus + state.energy) / 2, 0.0, 100.0))


def time_of_day(timestamp: datetime) -> str:
    """Bucket an instant's hour into morning/afternoon/evening/night"""
    hour = timestamp.hour
    for label, start, end in TIME_OF_DAY:
        if start <= hour < end:
            return label
    return NIGHT


def session_progress(start_time: datetime, now: datetime) -> float:
    """Fraction of the nominal 30 minute session that has elapsed"""
    elapsed = (now - start_time) / SESSION_PROGRESS_SPAN
    return clamp(elapsed, 0.0, 1.0)


class StateDeriver:
    """
    Produce complete consciousness snapshots

    Bundles the derivation functions with the emotional classifier and the
    random generator so callers only supply the state and the instant.
    """

    def __init__(self, rng: Optional[np.random.Generator] = None,
                 classifier: Optional[EmotionalStateClassifier] = None):
        self.rng = rng if rng is not None else np.random.default_rng()
        self.classifier = classifier or EmotionalStateClassifier()

    def snapshot(self, session: Session, state: MentalState, now: datetime,
                 progress: Optional[float] = None) -> ConsciousnessSnapshot:
        """
        Derive a snapshot for a session at a given instant

        Args:
            session: Owning session (used for the progress tag)
            state: Mental state the snapshot describes
            now: Snapshot timestamp
            progress: Override for sessionProgress (0 for the initial snapshot)

        Returns:
            ConsciousnessSnapshot: Fully derived record
        """
        waves = derive_brainwaves(state, self.rng)
        if progress is None:
            progress = session_progress(session.start_time, now)

        snapshot = ConsciousnessSnapshot(
            session_id=session.session_id,
            timestamp=now,
            mental_state=state,
            brainwaves=waves,
            cognitive_load=cognitive_load(state),
            attention_level=attention_level(state),
            emotional_state=self.classifier.classify(state),
            environmental_factors=EnvironmentalFactors(
                time_of_day=time_of_day(now),
                session_progress=progress,
            ),
            consciousness_score=consciousness_score(state, waves),
        )
        logging.debug(f"Derived snapshot for {session.session_id}: "
                      f"{snapshot.emotional_state}, score {snapshot.consciousness_score}")
        return snapshot
