"""
Emotional state detection

This module implements the rule-based emotional state classifier.
"""

from .emotional_state import EmotionalStateClassifier, EMOTIONAL_RULES, EMOTIONAL_STATES

__all__ = ['EmotionalStateClassifier', 'EMOTIONAL_RULES', 'EMOTIONAL_STATES']
