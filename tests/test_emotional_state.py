"""Tests for the ordered emotional state rule table."""

import pytest

from psych_engine.detection.emotional_state import (
    EMOTIONAL_RULES, EMOTIONAL_STATES, EmotionalStateClassifier, Rule,
)
from tests.conftest import make_state


@pytest.fixture
def classifier():
    return EmotionalStateClassifier()


class TestRuleTable:
    @pytest.mark.parametrize("state, expected", [
        ((81, 81, 29, 50), "peak_performance"),
        ((80, 81, 29, 50), "flow_state"),
        ((71, 71, 39, 50), "flow_state"),
        ((50, 85, 30, 50), "highly_creative"),
        ((65, 65, 60, 50), "focused_creative"),
        ((75, 30, 45, 50), "active_concentration"),
        ((65, 30, 25, 50), "relaxed_focus"),
        ((50, 30, 35, 75), "energetic"),
        ((50, 50, 75, 50), "overwhelmed"),
        ((35, 50, 60, 50), "stressed"),
        ((25, 50, 45, 30), "distracted"),
        ((60, 60, 35, 70), "focused"),
        ((40, 40, 25, 30), "relaxed"),
        ((50, 50, 50, 50), "creative"),
    ])
    def test_labels(self, classifier, state, expected):
        assert classifier.classify(make_state(*state)) == expected

    def test_thresholds_are_strict(self, classifier):
        # Exactly on every peak_performance bound falls through to flow_state
        assert classifier.classify(make_state(80, 80, 30, 50)) == "flow_state"
        # Stress of exactly 70 is not overwhelmed
        assert classifier.classify(make_state(50, 50, 70, 50)) != "overwhelmed"

    def test_first_match_wins(self, classifier):
        # Satisfies peak, flow, highly_creative, focused_creative and active_concentration
        state = make_state(85, 85, 20, 50)
        matching = [rule.label for rule in EMOTIONAL_RULES if rule.matches(state)]
        assert matching[:5] == [
            "peak_performance", "flow_state", "highly_creative",
            "focused_creative", "active_concentration",
        ]
        assert classifier.explain(state) == (0, "peak_performance")

    def test_fallback_index(self, classifier):
        assert classifier.explain(make_state()) == (len(EMOTIONAL_RULES), "creative")

    def test_state_vocabulary(self):
        assert len(EMOTIONAL_STATES) == 13
        assert EMOTIONAL_STATES[-1] == "creative"


class TestCustomTable:
    def test_substitute_rules(self):
        classifier = EmotionalStateClassifier(
            rules=(Rule("tired", lambda s: s.energy < 20),), fallback="fine"
        )
        assert classifier.classify(make_state(energy=10)) == "tired"
        assert classifier.classify(make_state(energy=90)) == "fine"
