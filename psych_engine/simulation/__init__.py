"""
Synthetic data generation

Fake participants and trial payloads for demos and tests.
"""

from .fake_data import (
    FakeParticipant, synthesize_reaction_attempts, synthesize_memory_rounds,
    synthesize_color_tests, synthesize_test, simulate_session,
)

__all__ = [
    'FakeParticipant', 'synthesize_reaction_attempts', 'synthesize_memory_rounds',
    'synthesize_color_tests', 'synthesize_test', 'simulate_session',
]
