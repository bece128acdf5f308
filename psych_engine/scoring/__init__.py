"""
Psychology test scoring

This module implements the per-test scoring algorithms and the metrics
derived from stored results.
"""

from .scorers import (
    TestScore, ReactionTimeScorer, MemorySequenceScorer, ColorPerceptionScorer,
    SCORERS, score_test, improvement_pattern,
)
from .metrics import (
    performance_score, efficiency, mental_state_change, reaction_statistics,
    memory_statistics, improvement_trend, cognitive_profile,
)

__all__ = [
    'TestScore', 'ReactionTimeScorer', 'MemorySequenceScorer', 'ColorPerceptionScorer',
    'SCORERS', 'score_test', 'improvement_pattern',
    'performance_score', 'efficiency', 'mental_state_change', 'reaction_statistics',
    'memory_statistics', 'improvement_trend', 'cognitive_profile',
]
