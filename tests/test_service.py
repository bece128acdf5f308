"""Tests for the PsychologyEngine facade."""

import pytest

from psych_engine.core.config import EngineConfig
from psych_engine.core.data_types import MentalState
from psych_engine.core.errors import InvalidStateError, NotFoundError, ValidationError
from psych_engine.service import PsychologyEngine
from tests.conftest import InterruptingRepository, make_state, state_dict

REACTION = {"attempts": [220, 240, 260]}
MEMORY = {"rounds": [
    {"length": 3, "correct": True, "time": 1500},
    {"length": 4, "correct": True, "time": 1700},
    {"length": 5, "correct": False, "time": 2100},
]}


class TestSessions:
    def test_create_from_mapping(self, engine):
        session, snapshot = engine.create_session(
            "pytest", state_dict(70, 60, 30, 65), location={"country": "de", "timezone": "Europe/Berlin"}
        )
        assert session.mental_state == make_state(70, 60, 30, 65)
        assert session.location.country == "DE"
        assert snapshot.session_id == session.session_id
        assert engine.get_session(session.session_id) == session

    def test_extra_state_keys_are_ignored(self, engine):
        payload = dict(state_dict(), mood="happy")
        session, _ = engine.create_session("pytest", payload)
        assert session.mental_state == make_state()

    @pytest.mark.parametrize("state", [
        None, {"focus": 50}, state_dict(focus=-1), state_dict(energy=100.5), state_dict(stress="high"),
    ])
    def test_invalid_mental_state(self, engine, state):
        with pytest.raises(ValidationError):
            engine.create_session("pytest", state)

    @pytest.mark.parametrize("location", [{"country": "DEU"}, {"country": "1a"}, {"timezone": "x" * 51}])
    def test_invalid_location(self, engine, location):
        with pytest.raises(ValidationError):
            engine.create_session("pytest", state_dict(), location=location)

    def test_unknown_session(self, engine):
        with pytest.raises(NotFoundError):
            engine.get_session("missing")

    def test_details_without_tests(self, engine, clock):
        session, _ = engine.create_session("pytest", state_dict(), session_id="abc123")
        clock.advance(minutes=1)
        engine.update_state("abc123", {"focus": 80})
        details = engine.get_session_details("abc123")

        assert details["latestConsciousness"].mental_state.focus == 80
        assert len(details["consciousnessHistory"]) == 2
        assert details["statistics"]["interactions"] == 1
        assert details["statistics"]["status"] == "active"
        assert 0 <= details["statistics"]["estimatedPerformance"] <= 100

    def test_details_with_tests_have_no_estimate(self, engine):
        engine.create_session("pytest", state_dict(), session_id="abc123")
        engine.submit_test("abc123", "reaction_time", REACTION, state_dict(), state_dict())
        assert "estimatedPerformance" not in engine.get_session_details("abc123")["statistics"]

    def test_update_accepts_mental_state(self, engine):
        engine.create_session("pytest", state_dict(), session_id="abc123")
        session, snapshot = engine.update_state("abc123", make_state(90, 90, 10, 90))
        assert session.mental_state == make_state(90, 90, 10, 90)
        assert snapshot.emotional_state == "peak_performance"

    def test_record_consciousness_keeps_counters(self, engine):
        engine.create_session("pytest", state_dict(), session_id="abc123")
        snapshot = engine.record_consciousness("abc123", state_dict(20, 20, 80, 20))
        assert snapshot.emotional_state == "overwhelmed"
        assert engine.get_session("abc123").interactions == 0
        assert engine.get_session("abc123").mental_state == make_state()


class TestSubmitTest:
    def test_submit_updates_session(self, engine, clock):
        engine.create_session("pytest", state_dict(), session_id="abc123")
        result = engine.submit_test("abc123", "reaction_time", REACTION,
                                    state_dict(), state_dict(focus=60))
        assert result.timestamp == clock()
        assert result.difficulty == 4
        assert result.mental_state_at_end == make_state(focus=60)

        session = engine.get_session("abc123")
        assert session.total_tests == 1
        assert session.avg_performance == result.accuracy

    def test_performance_block(self, engine):
        engine.create_session("pytest", state_dict(), session_id="abc123")
        result = engine.submit_test("abc123", "memory_sequence", MEMORY,
                                    state_dict(), state_dict(stress=40))
        performance = engine.performance_of(result)
        assert performance["mentalStateChange"]["stress"] == -10
        assert performance["statistics"]["maxSequence"] == 4
        assert performance["efficiency"] == pytest.approx(66.67 / 5.3, abs=0.01)

    def test_ended_session(self, engine):
        engine.create_session("pytest", state_dict(), session_id="abc123")
        engine.end_session("abc123")
        with pytest.raises(InvalidStateError):
            engine.submit_test("abc123", "reaction_time", REACTION, state_dict(), state_dict())
        assert engine.repository.list_test_results(session_id="abc123") == []

    def test_validation_before_storage(self, engine):
        engine.create_session("pytest", state_dict(), session_id="abc123")
        with pytest.raises(ValidationError):
            engine.submit_test("abc123", "reaction_time", {"attempts": []}, state_dict(), state_dict())
        with pytest.raises(ValidationError):
            engine.submit_test("abc123", "stroop", REACTION, state_dict(), state_dict())
        with pytest.raises(ValidationError):
            engine.submit_test("abc123", "reaction_time", REACTION, None, state_dict())
        assert engine.get_session("abc123").total_tests == 0

    def test_unknown_session(self, engine):
        with pytest.raises(NotFoundError):
            engine.submit_test("missing", "reaction_time", REACTION, state_dict(), state_dict())

    def test_stored_result_cannot_be_edited_through_return_value(self, engine):
        engine.create_session("pytest", state_dict(), session_id="abc123")
        result = engine.submit_test("abc123", "reaction_time", {"attempts": [300, 300]},
                                    state_dict(), state_dict())
        result.results["attempts"].append(99999)

        stored = engine.repository.list_test_results(session_id="abc123")[0]
        assert stored.results["attempts"] == [300.0, 300.0]
        assert engine.get_session_tests("abc123")["tests"][0].results["attempts"] == [300.0, 300.0]


class TestSubmitRacingOtherWriters:
    @pytest.fixture
    def repository(self):
        return InterruptingRepository()

    @pytest.fixture
    def engine(self, repository, clock, rng):
        return PsychologyEngine(repository=repository, config=EngineConfig(seed=1234),
                                clock=clock, rng=rng)

    def test_end_before_counting_stores_nothing(self, engine, repository):
        engine.create_session("pytest", state_dict(), session_id="abc123")
        repository.hooks["compare_and_set_session"] = lambda: engine.end_session("abc123")

        with pytest.raises(InvalidStateError):
            engine.submit_test("abc123", "reaction_time", REACTION, state_dict(), state_dict())
        assert repository.list_test_results(session_id="abc123") == []
        assert engine.get_session("abc123").total_tests == 0

    def test_end_while_storing_keeps_counters_consistent(self, engine, repository):
        engine.create_session("pytest", state_dict(), session_id="abc123")
        repository.hooks["insert_test_result"] = lambda: engine.end_session("abc123")

        engine.submit_test("abc123", "reaction_time", REACTION, state_dict(), state_dict())
        session = engine.get_session("abc123")
        assert not session.is_active
        assert len(repository.list_test_results(session_id="abc123")) == session.total_tests == 1

    def test_delete_while_storing_leaves_no_orphan(self, engine, repository):
        engine.create_session("pytest", state_dict(), session_id="abc123")
        repository.hooks["insert_test_result"] = lambda: engine.delete_session("abc123")

        with pytest.raises(NotFoundError):
            engine.submit_test("abc123", "reaction_time", REACTION, state_dict(), state_dict())
        assert repository.list_test_results() == []
        assert repository.list_snapshots() == []


class TestSessionTests:
    def test_summary_and_profile(self, engine, clock):
        engine.create_session("pytest", state_dict(), session_id="abc123")
        engine.submit_test("abc123", "reaction_time", REACTION, state_dict(), state_dict())
        clock.advance(minutes=1)
        engine.submit_test("abc123", "memory_sequence", MEMORY, state_dict(), state_dict())

        tests = engine.get_session_tests("abc123")
        summary = tests["summary"]
        assert summary["totalTests"] == 2
        assert summary["testTypes"] == ["memory_sequence", "reaction_time"]
        assert summary["totalTestTime"] == 9000 + 5300
        assert len(summary["performanceProgression"]) == 2
        assert summary["cognitiveProfile"] == "Partial Assessment"

    def test_improvement_trend(self, engine, clock):
        engine.create_session("pytest", state_dict(), session_id="abc123")
        engine.submit_test("abc123", "reaction_time", {"attempts": [400, 420]}, state_dict(), state_dict())
        clock.advance(minutes=2)
        engine.submit_test("abc123", "reaction_time", {"attempts": [210, 215]}, state_dict(), state_dict())

        trend = engine.get_improvement_trend("abc123", "reaction_time")
        assert trend["trend"] == "improving"
        assert trend["analysis"]["testCount"] == 2
        assert len(trend["tests"]) == 2

    def test_trend_without_tests(self, engine):
        engine.create_session("pytest", state_dict(), session_id="abc123")
        assert engine.get_improvement_trend("abc123", "color_perception")["trend"] == "no_data"
        with pytest.raises(NotFoundError):
            engine.get_improvement_trend("missing", "color_perception")


class TestDeleteSession:
    def test_cascade_counts(self, engine):
        engine.create_session("pytest", state_dict(), session_id="abc123")
        engine.update_state("abc123", {"energy": 90})
        engine.submit_test("abc123", "reaction_time", REACTION, state_dict(), state_dict())

        assert engine.delete_session("abc123") == {"snapshots": 2, "testResults": 1}
        assert engine.repository.list_test_results() == []
        with pytest.raises(NotFoundError):
            engine.get_session_tests("abc123")


class TestStateInput:
    def test_mental_state_passthrough(self, engine):
        state = MentalState(10, 20, 30, 40)
        session, _ = engine.create_session("pytest", state)
        assert session.mental_state is state
