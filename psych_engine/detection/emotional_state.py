"""
Emotional state classification

This module labels a mental state with one emotional state using a fixed,
ordered rule table. The first rule whose predicate holds wins, so the order
of EMOTIONAL_RULES is part of the behaviour: several rules overlap (a state
with focus 85, creativity 85 and stress 20 satisfies the first five) and
reordering them changes the label.
"""

from typing import Callable, NamedTuple, Tuple

from ..core.data_types import MentalState

FALLBACK_STATE = "creative"


class Rule(NamedTuple):
    label: str
    matches: Callable[[MentalState], bool]


EMOTIONAL_RULES: Tuple[Rule, ...] = (
    # High performance
    Rule("peak_performance", lambda s: s.focus > 80 and s.creativity > 80 and s.stress < 30),
    Rule("flow_state", lambda s: s.focus > 70 and s.creativity > 70 and s.stress < 40),
    # Creative
    Rule("highly_creative", lambda s: s.creativity > 80 and s.stress < 40),
    Rule("focused_creative", lambda s: s.creativity > 60 and s.focus > 60),
    # Focus
    Rule("active_concentration", lambda s: s.focus > 70 and s.stress < 50),
    Rule("relaxed_focus", lambda s: s.focus > 60 and s.stress < 30),
    # Energy
    Rule("energetic", lambda s: s.energy > 70 and s.stress < 40),
    # Stress
    Rule("overwhelmed", lambda s: s.stress > 70),
    Rule("stressed", lambda s: s.stress > 50 and s.focus < 40),
    # Attention
    Rule("distracted", lambda s: s.focus < 30 and s.energy < 40),
    # Defaults
    Rule("focused", lambda s: s.mental_balance > 60),
    Rule("relaxed", lambda s: s.stress < 30),
)

EMOTIONAL_STATES = tuple(rule.label for rule in EMOTIONAL_RULES) + (FALLBACK_STATE,)


class EmotionalStateClassifier:
    """
    Classify mental states with the ordered rule table

    The classifier is stateless; it exists as an object so a caller can
    substitute a different table.
    """

    def __init__(self, rules: Tuple[Rule, ...] = EMOTIONAL_RULES,
                 fallback: str = FALLBACK_STATE):
        self.rules = rules
        self.fallback = fallback

    def explain(self, state: MentalState) -> Tuple[int, str]:
        """
        Return the index of the rule that fired and its label

        Args:
            state: Mental state to classify

        Returns:
            Tuple[index, label]: index is len(rules) when the fallback applies
        """
        for index, rule in enumerate(self.rules):
            if rule.matches(state):
                return index, rule.label
        return len(self.rules), self.fallback

    def classify(self, state: MentalState) -> str:
        return self.explain(state)[1]
