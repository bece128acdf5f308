"""
Session lifecycle

This module governs a session from creation to termination:

    create ──> Active ──(update state / record test)──> Active ──end──> Ended

Every mutation is a read → compute → compare-and-set loop against the
session's storage version, so two concurrent writers to the same session
never overwrite each other's counters. Sessions are independent; nothing
here locks across sessions.
"""

import logging
import numbers
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

import numpy as np

from ..core.config import (
    EngineConfig, SESSION_ID_PREFIX, SESSION_ID_MIN_LEN, SESSION_ID_MAX_LEN,
    USER_AGENT_MAX_LEN, PERFORMANCE_JITTER,
)
from ..core.data_types import (
    ConsciousnessSnapshot, Location, MentalState, Session, TestResult, elapsed_ms, local_now,
)
from ..core.errors import (
    InvalidStateError, NotFoundError, StorageError, ValidationError,
)
from ..processing.derivation import StateDeriver
from ..storage.repository import SessionRepository
from ..utils.numeric import clamp

BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(BASE36[remainder])
    return "".join(reversed(digits))


def validate_session_id(session_id: Any) -> str:
    """Caller supplied ids must be 3-100 alphanumeric characters"""
    if not isinstance(session_id, str):
        raise ValidationError(f"'sessionId' must be a string, got {session_id!r}")
    session_id = session_id.strip()
    if not (SESSION_ID_MIN_LEN <= len(session_id) <= SESSION_ID_MAX_LEN) or not session_id.isalnum():
        raise ValidationError(
            f"'sessionId' must be {SESSION_ID_MIN_LEN}-{SESSION_ID_MAX_LEN} alphanumeric characters, "
            f"got {session_id!r}"
        )
    return session_id


def validate_user_agent(user_agent: Any) -> str:
    if not isinstance(user_agent, str) or not user_agent:
        raise ValidationError("'userAgent' is required")
    if len(user_agent) > USER_AGENT_MAX_LEN:
        raise ValidationError(f"'userAgent' must be at most {USER_AGENT_MAX_LEN} characters")
    return user_agent


def require_active(session: Session) -> None:
    """Raise InvalidStateError for an ended session"""
    if not session.is_active:
        raise InvalidStateError(f"Session already ended: {session.session_id}")


class SessionLifecycle:
    """
    State machine over stored sessions

    Args:
        repository: Storage collaborator
        deriver: Snapshot factory (owns the random generator)
        config: Engine configuration
        clock: Returns the current instant; injectable for tests
    """

    def __init__(self, repository: SessionRepository, deriver: Optional[StateDeriver] = None,
                 config: Optional[EngineConfig] = None,
                 clock: Callable[[], datetime] = local_now):
        self.repository = repository
        self.config = config or EngineConfig()
        self.deriver = deriver or StateDeriver(np.random.default_rng(self.config.seed))
        self.clock = clock

    @property
    def rng(self) -> np.random.Generator:
        return self.deriver.rng

    def generate_session_id(self, now: datetime) -> str:
        """sess_<base36 epoch millis>_<5 random base36 chars>"""
        millis = int(now.timestamp() * 1000)
        suffix = "".join(BASE36[i] for i in self.rng.integers(0, 36, size=5))
        return f"{SESSION_ID_PREFIX}_{to_base36(millis)}_{suffix}"

    def get(self, session_id: str) -> Session:
        session = self.repository.get_session(session_id)
        if session is None:
            raise NotFoundError(f"Session not found: {session_id}")
        return session

    def create(self, initial_state: MentalState, user_agent: str,
               session_id: Optional[str] = None,
               location: Optional[Location] = None) -> Tuple[Session, ConsciousnessSnapshot]:
        """
        Start a session together with its initial snapshot

        Raises:
            ConflictError: If session_id is already taken
            ValidationError: Invalid id or user agent
        """
        now = self.clock()
        if session_id is None:
            session_id = self.generate_session_id(now)
        else:
            session_id = validate_session_id(session_id)

        session = Session(
            session_id=session_id,
            user_agent=validate_user_agent(user_agent),
            start_time=now,
            mental_state=initial_state,
            location=location or Location(),
        )
        snapshot = self.deriver.snapshot(session, initial_state, now, progress=0.0)
        self.repository.insert_session(session, snapshot)

        logging.info(f"Session created: {session_id} ({snapshot.emotional_state})")
        return session, snapshot

    def _mutate(self, session_id: str, change: Callable[[Session], Session]) -> Session:
        """
        Apply `change` to the current session with compare-and-set

        `change` receives the freshly read session and returns the new one; it
        may raise to abort. Conflicting writers cause a re-read, bounded by
        config.max_update_attempts.
        """
        for attempt in range(1, self.config.max_update_attempts + 1):
            current = self.get(session_id)
            updated = change(current)
            stored = self.repository.compare_and_set_session(updated, current.version)
            if stored is not None:
                return stored
            logging.debug(f"Version conflict on {session_id} (attempt {attempt}), re-reading")

        raise StorageError(
            f"Could not update session {session_id} after {self.config.max_update_attempts} attempts"
        )

    def _attach(self, session_id: str, insert: Callable[[], Any],
                purge: Callable[[str], int]) -> Any:
        """Insert a record owned by a session, purging it if the session was deleted meanwhile"""
        record = insert()
        if self.repository.get_session(session_id) is None:
            removed = purge(session_id)
            logging.warning(f"Session {session_id} deleted during write, purged {removed} orphans")
            raise NotFoundError(f"Session not found: {session_id}")
        return record

    def update_mental_state(self, session_id: str,
                            partial: Optional[Mapping[str, Any]] = None,
                            interactions: Optional[int] = None
                            ) -> Tuple[Session, Optional[ConsciousnessSnapshot]]:
        """
        Merge a partial mental state and/or set the interaction count

        A mental state change counts as one interaction and produces a fresh
        snapshot of the merged state. An explicit `interactions` value
        replaces the counter; on its own it creates no snapshot.

        Raises:
            ValidationError: Nothing to update, bad fields or bad count
            NotFoundError: Unknown session
            InvalidStateError: Session already ended
        """
        if partial is None and interactions is None:
            raise ValidationError("Nothing to update: provide a mental state or interactions")
        if partial is not None and not partial:
            raise ValidationError("'mentalState' must name at least one field")
        if interactions is not None and (
                isinstance(interactions, bool) or not isinstance(interactions, numbers.Integral)
                or interactions < 0):
            raise ValidationError(f"'interactions' must be a non-negative integer, got {interactions!r}")

        def change(session: Session) -> Session:
            require_active(session)
            updated = session
            if partial is not None:
                updated = replace(
                    updated,
                    mental_state=session.mental_state.merged(partial),
                    interactions=session.interactions + 1,
                )
            if interactions is not None:
                updated = replace(updated, interactions=int(interactions))
            return updated

        session = self._mutate(session_id, change)

        snapshot = None
        if partial is not None:
            snapshot = self.deriver.snapshot(session, session.mental_state, self.clock())
            self._attach(session_id, lambda: self.repository.insert_snapshot(snapshot),
                         self.repository.delete_snapshots)
            logging.info(f"Mental state updated: {session_id} -> {snapshot.emotional_state} "
                         f"(load {snapshot.cognitive_load})")
        else:
            logging.info(f"Interactions set: {session_id} -> {session.interactions}")

        return session, snapshot

    def record_snapshot(self, session_id: str, state: MentalState) -> ConsciousnessSnapshot:
        """Append a snapshot of an arbitrary state without touching counters"""
        session = self.get(session_id)
        require_active(session)
        snapshot = self.deriver.snapshot(session, state, self.clock())
        self._attach(session_id, lambda: self.repository.insert_snapshot(snapshot),
                     self.repository.delete_snapshots)
        logging.info(f"Consciousness recorded: {session_id} ({snapshot.emotional_state}, "
                     f"dominant {snapshot.brainwaves.dominant})")
        return snapshot

    def record_test_completion(self, session_id: str, accuracy: float) -> Session:
        """
        Count a scored test and fold its accuracy into the running mean

        avg' = avg + (accuracy - avg) / n', starting from the first accuracy.
        """
        def change(session: Session) -> Session:
            require_active(session)
            total = session.total_tests + 1
            previous = session.avg_performance if session.avg_performance is not None else 0.0
            average = previous + (accuracy - previous) / total
            return replace(session, total_tests=total, avg_performance=clamp(average, 0.0, 100.0))

        session = self._mutate(session_id, change)
        logging.info(f"Session performance updated: {session_id} "
                     f"tests={session.total_tests} avg={session.avg_performance:.1f}")
        return session

    def record_test_result(self, result: TestResult) -> TestResult:
        """
        Count a scored test on its session, then store it

        The counters move first: a session that ended or vanished beforehand
        rejects the test and nothing is stored. A deletion landing between
        the two steps purges the row again.

        Raises:
            NotFoundError: Unknown or concurrently deleted session
            InvalidStateError: Session already ended
        """
        self.record_test_completion(result.session_id, result.accuracy)
        return self._attach(result.session_id, lambda: self.repository.insert_test_result(result),
                            self.repository.delete_test_results)

    def end(self, session_id: str) -> Session:
        """
        Terminate a session, fixing endTime and duration

        Raises:
            InvalidStateError: If the session was already ended
        """
        def change(session: Session) -> Session:
            require_active(session)
            end_time = self.clock()
            return replace(session, end_time=end_time,
                           duration=elapsed_ms(session.start_time, end_time))

        session = self._mutate(session_id, change)
        logging.info(f"Session ended: {session_id} duration={session.duration}ms "
                     f"interactions={session.interactions}")
        return session

    def delete_cascade(self, session_id: str) -> Dict[str, int]:
        """
        Delete a session and everything it owns

        Dependents go first so a failure part-way never leaves orphans behind
        a missing session.

        Returns:
            Dict with counts of removed snapshots and test results
        """
        self.get(session_id)
        snapshots = self.repository.delete_snapshots(session_id)
        tests = self.repository.delete_test_results(session_id)
        self.repository.delete_session(session_id)

        logging.info(f"Session deleted: {session_id} ({snapshots} snapshots, {tests} tests)")
        return {"snapshots": snapshots, "testResults": tests}

    def estimated_performance(self, session: Session) -> float:
        """
        Presentation-only performance guess for sessions without scored tests

        Mental balance plus up to ±10 points of jitter. Never stored.
        """
        jitter = (float(self.rng.random()) - 0.5) * PERFORMANCE_JITTER
        return clamp(session.mental_balance + jitter, 0.0, 100.0)
