"""
Engine facade

PsychologyEngine is the narrow contract a transport layer talks to. It
validates raw input into records, wires derivation, scoring, the session
lifecycle and analytics together, and returns plain records ready for
serialization with psych_engine.communication.records.
"""

import logging
from datetime import datetime
from threading import Event
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

import numpy as np

from .analytics.aggregator import AnalyticsAggregator, AggregateReport
from .core.config import EngineConfig, validate_config
from .core.data_types import (
    ConsciousnessSnapshot, Location, MentalState, Session, TestResult, local_now,
)
from .core.errors import ValidationError
from .processing.derivation import StateDeriver
from .scoring.metrics import (
    cognitive_profile, efficiency, improvement_trend, mental_state_change,
    memory_statistics, performance_score, reaction_statistics,
)
from .scoring.scorers import check_test_type, score_test
from .session.lifecycle import SessionLifecycle, require_active
from .storage.repository import InMemoryRepository, SessionRepository
from .utils.numeric import round_int

StateInput = Union[MentalState, Mapping[str, Any]]


def as_mental_state(value: StateInput, name: str = "mentalState") -> MentalState:
    if isinstance(value, MentalState):
        return value
    if value is None:
        raise ValidationError(f"'{name}' is required")
    return MentalState.from_dict(value)


class PsychologyEngine:
    """
    Entry point for every engine operation

    Args:
        repository: Storage collaborator (defaults to an in-memory store)
        config: Engine configuration
        clock: Returns the current instant
        rng: Random generator behind delta jitter, ids and estimates
    """

    def __init__(self, repository: Optional[SessionRepository] = None,
                 config: Optional[EngineConfig] = None,
                 clock: Callable[[], datetime] = local_now,
                 rng: Optional[np.random.Generator] = None):
        self.config = config or EngineConfig()
        validate_config(self.config)

        self.repository = repository if repository is not None else InMemoryRepository()
        self.clock = clock
        rng = rng if rng is not None else np.random.default_rng(self.config.seed)
        self.deriver = StateDeriver(rng)
        self.lifecycle = SessionLifecycle(self.repository, self.deriver, self.config, clock)
        self.analytics = AnalyticsAggregator(self.repository, clock, self.config.default_window)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self, user_agent: str, mental_state: StateInput,
                       location: Optional[Mapping[str, Any]] = None,
                       session_id: Optional[str] = None) -> Tuple[Session, ConsciousnessSnapshot]:
        """
        Start a session and record its initial snapshot

        Raises:
            ValidationError: Bad mental state, location, id or user agent
            ConflictError: session_id already taken
        """
        loc = location if isinstance(location, Location) else Location.from_dict(location)
        return self.lifecycle.create(
            as_mental_state(mental_state), user_agent, session_id=session_id, location=loc
        )

    def get_session(self, session_id: str) -> Session:
        return self.lifecycle.get(session_id)

    def get_session_details(self, session_id: str,
                            history_limit: Optional[int] = None) -> Dict[str, Any]:
        """Session, latest snapshot, recent history and summary statistics"""
        session = self.lifecycle.get(session_id)
        limit = history_limit or self.config.history_limit
        history = self.repository.list_snapshots(session_id=session_id, limit=limit, newest_first=True)

        statistics = {
            "duration": session.calculated_duration,
            "status": session.status,
            "mentalBalance": session.mental_balance,
            "interactions": session.interactions,
            "consciousnessRecords": len(history),
        }
        if session.avg_performance is None:
            statistics["estimatedPerformance"] = self.lifecycle.estimated_performance(session)

        return {
            "session": session,
            "latestConsciousness": history[0] if history else None,
            "consciousnessHistory": history,
            "statistics": statistics,
        }

    def update_state(self, session_id: str,
                     partial_mental_state: Optional[Mapping[str, Any]] = None,
                     interactions: Optional[int] = None
                     ) -> Tuple[Session, Optional[ConsciousnessSnapshot]]:
        if isinstance(partial_mental_state, MentalState):
            partial_mental_state = partial_mental_state.as_dict()
        return self.lifecycle.update_mental_state(session_id, partial_mental_state, interactions)

    def end_session(self, session_id: str) -> Session:
        return self.lifecycle.end(session_id)

    def delete_session(self, session_id: str) -> Dict[str, int]:
        return self.lifecycle.delete_cascade(session_id)

    def record_consciousness(self, session_id: str,
                             mental_state: StateInput) -> ConsciousnessSnapshot:
        return self.lifecycle.record_snapshot(session_id, as_mental_state(mental_state))

    # ------------------------------------------------------------------
    # Psychology tests
    # ------------------------------------------------------------------

    def submit_test(self, session_id: str, test_type: str, raw_trial_data: Any,
                    mental_state_at_start: StateInput,
                    mental_state_at_end: StateInput) -> TestResult:
        """
        Score a test submission, store it and update session statistics

        Args:
            session_id: Owning session
            test_type: reaction_time, memory_sequence or color_perception
            raw_trial_data: Payload with `attempts`, `rounds` or `tests`
            mental_state_at_start: State reported before the test
            mental_state_at_end: State reported after the test

        Returns:
            TestResult: Stored, scored result

        Raises:
            NotFoundError: Unknown session
            InvalidStateError: Session already ended
            ValidationError: Unknown type, empty or malformed trials, bad states
        """
        check_test_type(test_type)
        start = as_mental_state(mental_state_at_start, "mentalStateAtStart")
        end = as_mental_state(mental_state_at_end, "mentalStateAtEnd")

        require_active(self.lifecycle.get(session_id))

        score = score_test(test_type, raw_trial_data)
        result = TestResult(
            session_id=session_id,
            test_type=test_type,
            results=score.results,
            accuracy=score.accuracy,
            completion_time=score.completion_time,
            difficulty=score.difficulty,
            mental_state_at_start=start,
            mental_state_at_end=end,
            timestamp=self.clock(),
        )
        result = self.lifecycle.record_test_result(result)

        logging.info(f"{test_type} test completed: {session_id} accuracy={result.accuracy:.1f} "
                     f"difficulty={result.difficulty}")
        return result

    def performance_of(self, result: TestResult) -> Dict[str, Any]:
        """Derived performance block returned alongside a stored result"""
        performance = {
            "score": performance_score(result.accuracy, result.difficulty, result.completion_time),
            "efficiency": efficiency(result.accuracy, result.completion_time),
            "mentalStateChange": mental_state_change(
                result.mental_state_at_start, result.mental_state_at_end
            ),
        }
        statistics = reaction_statistics(result) or memory_statistics(result)
        if statistics is not None:
            performance["statistics"] = statistics
        return performance

    def get_session_tests(self, session_id: str) -> Dict[str, Any]:
        """Every test of a session plus a summary and cognitive profile"""
        self.lifecycle.get(session_id)
        tests = self.repository.list_test_results(session_id=session_id)

        latest: Dict[str, TestResult] = {}
        for test in tests:
            latest[test.test_type] = test

        reaction = latest.get("reaction_time")
        memory = latest.get("memory_sequence")
        color = latest.get("color_perception")

        summary = {
            "totalTests": len(tests),
            "testTypes": sorted(latest),
            "averageAccuracy": round_int(sum(t.accuracy for t in tests) / len(tests)) if tests else 0,
            "totalTestTime": sum(t.completion_time for t in tests),
            "performanceProgression": [
                {
                    "timestamp": t.timestamp,
                    "testType": t.test_type,
                    "accuracy": t.accuracy,
                    "performanceScore": performance_score(t.accuracy, t.difficulty, t.completion_time),
                }
                for t in tests
            ],
            "cognitiveProfile": cognitive_profile(
                reaction.results.get("average") if reaction else None,
                memory.accuracy if memory else None,
                color.accuracy if color else None,
            ),
        }
        return {"tests": tests, "summary": summary}

    def get_improvement_trend(self, session_id: str, test_type: str) -> Dict[str, Any]:
        check_test_type(test_type)
        self.lifecycle.get(session_id)
        tests = self.repository.list_test_results(session_id=session_id, test_type=test_type)
        trend = improvement_trend(tests)
        trend["tests"] = tests
        return trend

    def get_leaderboard(self, test_type: str, metric: str = "accuracy",
                        limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return self.analytics.leaderboard(test_type, metric, limit or self.config.leaderboard_limit)

    # ------------------------------------------------------------------
    # Analytics
    # ------------------------------------------------------------------

    def get_analytics(self, window: Optional[str] = None, session_id: Optional[str] = None,
                      test_type: Optional[str] = None, cancel_event: Optional[Event] = None,
                      timeout: Optional[float] = None) -> AggregateReport:
        return self.analytics.aggregate(window, session_id, test_type, cancel_event, timeout)

    def get_brainwave_history(self, session_id: str, window: Optional[str] = None,
                              limit: Optional[int] = None) -> Dict[str, Any]:
        self.lifecycle.get(session_id)
        return self.analytics.brainwave_history(
            session_id, window, limit or self.config.brainwave_history_limit
        )

    def get_overview(self) -> Dict[str, Any]:
        return self.analytics.overview()
