"""
State derivation

This module turns mental states into synthetic brainwaves, scores and
complete consciousness snapshots.
"""

from .derivation import (
    StateDeriver, derive_brainwaves, consciousness_score, cognitive_load,
    attention_level, time_of_day, session_progress,
)

__all__ = [
    'StateDeriver', 'derive_brainwaves', 'consciousness_score', 'cognitive_load',
    'attention_level', 'time_of_day', 'session_progress',
]
