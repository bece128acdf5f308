"""
Record storage

This module defines the repository contract the engine consumes and a
thread-safe in-memory implementation. A production deployment supplies its
own repository backed by a real datastore; the engine only relies on the
methods declared on SessionRepository.

Session writes are optimistic: every stored session carries a `version`
and compare_and_set_session only succeeds when the caller's expected version
is still current. That single atomic primitive is what keeps concurrent
updates to one session from losing writes.
"""

import copy
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from ..core.data_types import ConsciousnessSnapshot, Session, TestResult
from ..core.errors import ConflictError


class SessionRepository(ABC):
    """Storage contract for sessions, snapshots and test results"""

    # Sessions

    @abstractmethod
    def insert_session(self, session: Session,
                       initial_snapshot: Optional[ConsciousnessSnapshot] = None) -> Session:
        """Store a new session (and its first snapshot) atomically; ConflictError if the id exists"""

    @abstractmethod
    def get_session(self, session_id: str) -> Optional[Session]:
        """Return the current session or None"""

    @abstractmethod
    def compare_and_set_session(self, session: Session, expected_version: int) -> Optional[Session]:
        """
        Replace a stored session if its version still equals expected_version

        Returns:
            Session: The stored record (version incremented), or None when the
            stored version moved on or the session no longer exists
        """

    @abstractmethod
    def delete_session(self, session_id: str) -> bool:
        """Delete only the session record"""

    @abstractmethod
    def list_sessions(self, since: Optional[datetime] = None,
                      session_id: Optional[str] = None) -> List[Session]:
        """Sessions started at or after `since`, oldest first"""

    # Snapshots

    @abstractmethod
    def insert_snapshot(self, snapshot: ConsciousnessSnapshot) -> ConsciousnessSnapshot:
        """Append a snapshot"""

    @abstractmethod
    def list_snapshots(self, session_id: Optional[str] = None, since: Optional[datetime] = None,
                       limit: Optional[int] = None,
                       newest_first: bool = False) -> List[ConsciousnessSnapshot]:
        """Snapshots filtered by session and start time"""

    @abstractmethod
    def delete_snapshots(self, session_id: str) -> int:
        """Delete every snapshot of a session, returning how many were removed"""

    # Test results

    @abstractmethod
    def insert_test_result(self, result: TestResult) -> TestResult:
        """Append a test result"""

    @abstractmethod
    def list_test_results(self, session_id: Optional[str] = None,
                          test_type: Optional[str] = None,
                          since: Optional[datetime] = None) -> List[TestResult]:
        """Test results filtered by session, type and start time, oldest first"""

    @abstractmethod
    def delete_test_results(self, session_id: str) -> int:
        """Delete every test result of a session, returning how many were removed"""


def _detached(result: TestResult) -> TestResult:
    """Copy of a test result whose raw `results` share nothing with the original"""
    return replace(result, results=copy.deepcopy(result.results))


class InMemoryRepository(SessionRepository):
    """
    Repository held in process memory

    A single lock guards all collections; reads return copies of the lists
    so callers can iterate without holding it. Test results are copied in
    and out, so a caller editing a returned `results` dict never changes
    stored history.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._sessions: Dict[str, Session] = {}
        self._snapshots: List[ConsciousnessSnapshot] = []
        self._tests: List[TestResult] = []

    def insert_session(self, session: Session,
                       initial_snapshot: Optional[ConsciousnessSnapshot] = None) -> Session:
        with self._lock:
            if session.session_id in self._sessions:
                raise ConflictError(f"Session already exists: {session.session_id}")
            self._sessions[session.session_id] = session
            if initial_snapshot is not None:
                self._snapshots.append(initial_snapshot)
        return session

    def get_session(self, session_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(session_id)

    def compare_and_set_session(self, session: Session, expected_version: int) -> Optional[Session]:
        with self._lock:
            current = self._sessions.get(session.session_id)
            if current is None or current.version != expected_version:
                return None
            stored = replace(session, version=expected_version + 1)
            self._sessions[session.session_id] = stored
            return stored

    def delete_session(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def list_sessions(self, since: Optional[datetime] = None,
                      session_id: Optional[str] = None) -> List[Session]:
        with self._lock:
            sessions = list(self._sessions.values())
        if session_id is not None:
            sessions = [s for s in sessions if s.session_id == session_id]
        if since is not None:
            sessions = [s for s in sessions if s.start_time >= since]
        return sorted(sessions, key=lambda s: s.start_time)

    def insert_snapshot(self, snapshot: ConsciousnessSnapshot) -> ConsciousnessSnapshot:
        with self._lock:
            self._snapshots.append(snapshot)
        return snapshot

    def list_snapshots(self, session_id: Optional[str] = None, since: Optional[datetime] = None,
                       limit: Optional[int] = None,
                       newest_first: bool = False) -> List[ConsciousnessSnapshot]:
        with self._lock:
            snapshots = list(self._snapshots)
        if session_id is not None:
            snapshots = [s for s in snapshots if s.session_id == session_id]
        if since is not None:
            snapshots = [s for s in snapshots if s.timestamp >= since]
        # Stable sort keeps insertion order among equal timestamps
        snapshots.sort(key=lambda s: s.timestamp)
        if newest_first:
            snapshots.reverse()
        if limit is not None:
            snapshots = snapshots[:limit]
        return snapshots

    def delete_snapshots(self, session_id: str) -> int:
        with self._lock:
            before = len(self._snapshots)
            self._snapshots = [s for s in self._snapshots if s.session_id != session_id]
            removed = before - len(self._snapshots)
        logging.debug(f"Removed {removed} snapshots of {session_id}")
        return removed

    def insert_test_result(self, result: TestResult) -> TestResult:
        stored = _detached(result)
        with self._lock:
            self._tests.append(stored)
        return _detached(stored)

    def list_test_results(self, session_id: Optional[str] = None,
                          test_type: Optional[str] = None,
                          since: Optional[datetime] = None) -> List[TestResult]:
        with self._lock:
            tests = list(self._tests)
        if session_id is not None:
            tests = [t for t in tests if t.session_id == session_id]
        if test_type is not None:
            tests = [t for t in tests if t.test_type == test_type]
        if since is not None:
            tests = [t for t in tests if t.timestamp >= since]
        return [_detached(t) for t in sorted(tests, key=lambda t: t.timestamp)]

    def delete_test_results(self, session_id: str) -> int:
        with self._lock:
            before = len(self._tests)
            self._tests = [t for t in self._tests if t.session_id != session_id]
            removed = before - len(self._tests)
        logging.debug(f"Removed {removed} test results of {session_id}")
        return removed
