"""
Synthetic participants and test payloads

This module produces plausible self-reported mental states and raw trial
payloads so the engine can be exercised end to end without a frontend.
States drift slowly through focused, relaxed and stressed phases; trial
payloads follow the participant's current state (a focused participant
reacts faster and recalls longer sequences).
"""

import logging
from typing import Any, Dict, List, Optional

import numpy as np

from ..core.config import MENTAL_STATE_FIELDS, TEST_TYPES
from ..core.data_types import MentalState
from ..utils.numeric import clamp, round_half_up


class FakeParticipant:
    """
    Generate a drifting mental state for demos and tests

    Focus and energy follow a slow sine, stress the opposite phase and
    creativity a cosine; Gaussian noise is added on top of every reading.

    Args:
        rng: Random generator (seeded for reproducible runs)
        state_cycle: Steps for one full focus/stress cycle
        noise: Standard deviation of per-step noise in percentage points
    """

    def __init__(self, rng: Optional[np.random.Generator] = None,
                 state_cycle: int = 12, noise: float = 4.0):
        self.rng = rng if rng is not None else np.random.default_rng()
        self.state_cycle = state_cycle
        self.noise = noise
        self.step = 0

    def _reading(self, centre: float, amplitude: float, phase: float) -> float:
        value = centre + amplitude * phase + self.rng.normal(0.0, self.noise)
        return round_half_up(clamp(value, 0.0, 100.0), 1)

    def current_state(self) -> MentalState:
        angle = 2 * np.pi * self.step / self.state_cycle
        return MentalState(
            focus=self._reading(60, 25, np.sin(angle)),
            creativity=self._reading(55, 20, np.cos(angle)),
            stress=self._reading(40, 25, -np.sin(angle)),
            energy=self._reading(60, 15, np.sin(angle)),
        )

    def next_state(self) -> MentalState:
        """Advance one step and return the new state"""
        self.step += 1
        return self.current_state()

    def partial_update(self) -> Dict[str, float]:
        """Next state reduced to a random non-empty subset of its fields"""
        state = self.next_state().as_dict()
        count = int(self.rng.integers(1, len(MENTAL_STATE_FIELDS) + 1))
        chosen = self.rng.choice(MENTAL_STATE_FIELDS, size=count, replace=False)
        return {str(name): state[str(name)] for name in chosen}


def synthesize_reaction_attempts(rng: np.random.Generator, state: MentalState,
                                 n_attempts: int = 5) -> Dict[str, Any]:
    """
    Reaction times in milliseconds

    Mean latency drops from ~450 ms at zero focus to ~230 ms at full focus;
    stress widens the spread.
    """
    mean_ms = 450 - 2.2 * state.focus
    spread_ms = 15 + 0.6 * state.stress
    attempts = rng.normal(mean_ms, spread_ms, size=n_attempts)
    return {"attempts": [round_half_up(max(120.0, float(t)), 0) for t in attempts]}


def synthesize_memory_rounds(rng: np.random.Generator, state: MentalState,
                             n_rounds: int = 6, start_length: int = 3) -> Dict[str, Any]:
    """
    Memory rounds with increasing sequence length

    The chance of recalling a sequence falls with its length and rises with
    focus. A failed round repeats the same length.
    """
    rounds: List[Dict[str, Any]] = []
    length = start_length
    for _ in range(n_rounds):
        p_correct = clamp(0.35 + state.focus / 150 - (length - start_length) * 0.08, 0.05, 0.95)
        correct = bool(rng.random() < p_correct)
        time_ms = float(rng.normal(900 + 250 * length, 120))
        rounds.append({"length": length, "correct": correct,
                       "time": round_half_up(max(200.0, time_ms), 0)})
        if correct:
            length += 1
    return {"rounds": rounds}


def synthesize_color_tests(rng: np.random.Generator, state: MentalState,
                           n_tests: int = 10) -> Dict[str, Any]:
    """
    Color discrimination trials

    Per-trial difficulty is the hue difference shown (lower is harder); the
    participant's threshold moves down as focus rises and up with stress.
    """
    threshold = clamp(12 - state.focus / 12 + state.stress / 20, 1.0, 20.0)
    tests = []
    for _ in range(n_tests):
        difficulty = float(rng.integers(1, 21))
        p_correct = 0.95 if difficulty >= threshold else 0.3
        tests.append({
            "difficulty": difficulty,
            "correct": bool(rng.random() < p_correct),
            "responseTime": round_half_up(max(250.0, float(rng.normal(1400, 300))), 0),
        })
    return {"tests": tests}


SYNTHESIZERS = {
    "reaction_time": synthesize_reaction_attempts,
    "memory_sequence": synthesize_memory_rounds,
    "color_perception": synthesize_color_tests,
}


def synthesize_test(test_type: str, rng: np.random.Generator, state: MentalState) -> Dict[str, Any]:
    return SYNTHESIZERS[test_type](rng, state)


def simulate_session(engine, n_updates: int = 5, run_tests: bool = True,
                     user_agent: str = "psych-engine-simulator",
                     rng: Optional[np.random.Generator] = None) -> Dict[str, Any]:
    """
    Drive one complete synthetic session through the engine

    Creates a session, applies `n_updates` partial state updates, optionally
    submits one test of every type and ends the session.

    Args:
        engine: PsychologyEngine to drive
        n_updates: Number of partial mental state updates
        run_tests: Whether to submit one test of each type
        user_agent: User agent recorded on the session
        rng: Random generator for the participant and payloads

    Returns:
        Dict with the ended session, its snapshots and its test results
    """
    rng = rng if rng is not None else np.random.default_rng()
    participant = FakeParticipant(rng)

    session, _ = engine.create_session(user_agent, participant.current_state())
    session_id = session.session_id
    logging.info(f"Simulating session {session_id}: {n_updates} updates, tests={run_tests}")

    for _ in range(n_updates):
        engine.update_state(session_id, participant.partial_update())

    tests = []
    if run_tests:
        for test_type in TEST_TYPES:
            before = engine.get_session(session_id).mental_state
            payload = synthesize_test(test_type, rng, before)
            after = participant.next_state()
            tests.append(engine.submit_test(session_id, test_type, payload, before, after))

    session = engine.end_session(session_id)
    details = engine.get_session_details(session_id)
    return {
        "session": session,
        "consciousnessHistory": details["consciousnessHistory"],
        "tests": tests,
    }
