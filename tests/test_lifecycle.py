"""Tests for the session lifecycle state machine."""

import re
import threading
from dataclasses import replace

import numpy as np
import pytest

from psych_engine.core.config import EngineConfig
from psych_engine.core.errors import (
    ConflictError, InvalidStateError, NotFoundError, StorageError, ValidationError,
)
from psych_engine.processing.derivation import StateDeriver
from psych_engine.session.lifecycle import SessionLifecycle, to_base36, validate_session_id
from psych_engine.storage.repository import InMemoryRepository
from tests.conftest import InterruptingRepository, make_state


class FlakyRepository(InMemoryRepository):
    """Loses the first `conflicts` compare-and-set races"""

    def __init__(self, conflicts):
        super().__init__()
        self.conflicts = conflicts
        self.attempts = 0

    def compare_and_set_session(self, session, expected_version):
        self.attempts += 1
        if self.conflicts > 0:
            self.conflicts -= 1
            current = self.get_session(session.session_id)
            # Simulate another writer bumping the version first
            super().compare_and_set_session(current, current.version)
            return None
        return super().compare_and_set_session(session, expected_version)


@pytest.fixture
def lifecycle(repository, clock, rng):
    return SessionLifecycle(repository, StateDeriver(rng), EngineConfig(seed=1), clock)


class TestCreate:
    def test_generated_id(self, lifecycle, clock):
        session, snapshot = lifecycle.create(make_state(), "pytest")
        assert re.fullmatch(r"sess_[0-9a-z]+_[0-9a-z]{5}", session.session_id)
        assert session.session_id.split("_")[1] == to_base36(int(clock().timestamp() * 1000))
        assert session.status == "active"
        assert session.version == 0
        assert snapshot.environmental_factors.session_progress == 0.0
        assert lifecycle.repository.list_snapshots(session_id=session.session_id) == [snapshot]

    def test_explicit_id_conflict(self, lifecycle):
        lifecycle.create(make_state(), "pytest", session_id="user42")
        with pytest.raises(ConflictError):
            lifecycle.create(make_state(), "pytest", session_id="user42")

    @pytest.mark.parametrize("session_id", ["ab", "has space", "dash-id", "x" * 101, 42])
    def test_invalid_ids(self, session_id):
        with pytest.raises(ValidationError):
            validate_session_id(session_id)

    def test_user_agent_required(self, lifecycle):
        with pytest.raises(ValidationError):
            lifecycle.create(make_state(), "")
        with pytest.raises(ValidationError):
            lifecycle.create(make_state(), "x" * 501)

    def test_base36(self):
        assert to_base36(0) == "0"
        assert to_base36(35) == "z"
        assert to_base36(36) == "10"


class TestUpdate:
    def test_partial_update(self, lifecycle, clock):
        session, _ = lifecycle.create(make_state(50, 50, 50, 50), "pytest", session_id="abc123")
        clock.advance(minutes=6)
        updated, snapshot = lifecycle.update_mental_state("abc123", {"focus": 90})

        assert updated.mental_state == make_state(90, 50, 50, 50)
        assert updated.interactions == 1
        assert updated.version == 1
        assert snapshot.mental_state == updated.mental_state
        assert snapshot.environmental_factors.session_progress == pytest.approx(0.2)
        assert len(lifecycle.repository.list_snapshots(session_id="abc123")) == 2

    def test_interactions_only(self, lifecycle):
        lifecycle.create(make_state(), "pytest", session_id="abc123")
        updated, snapshot = lifecycle.update_mental_state("abc123", interactions=7)
        assert snapshot is None
        assert updated.interactions == 7
        assert len(lifecycle.repository.list_snapshots(session_id="abc123")) == 1

    def test_explicit_interactions_override_increment(self, lifecycle):
        lifecycle.create(make_state(), "pytest", session_id="abc123")
        updated, snapshot = lifecycle.update_mental_state("abc123", {"stress": 10}, interactions=3)
        assert updated.interactions == 3
        assert snapshot is not None

    @pytest.mark.parametrize("partial, interactions", [
        (None, None), ({}, None), ({}, 3), ({"focus": 101}, None), ({"mood": 5}, None),
        (None, -1), (None, True),
    ])
    def test_invalid_updates(self, lifecycle, partial, interactions):
        lifecycle.create(make_state(), "pytest", session_id="abc123")
        with pytest.raises(ValidationError):
            lifecycle.update_mental_state("abc123", partial, interactions)
        assert lifecycle.get("abc123").version == 0

    def test_unknown_session(self, lifecycle):
        with pytest.raises(NotFoundError):
            lifecycle.update_mental_state("missing", {"focus": 10})

    def test_ended_session_rejects_updates(self, lifecycle):
        lifecycle.create(make_state(), "pytest", session_id="abc123")
        lifecycle.end("abc123")
        with pytest.raises(InvalidStateError):
            lifecycle.update_mental_state("abc123", {"focus": 10})
        with pytest.raises(InvalidStateError):
            lifecycle.record_snapshot("abc123", make_state())


class TestEnd:
    def test_end_sets_duration(self, lifecycle, clock):
        lifecycle.create(make_state(), "pytest", session_id="abc123")
        clock.advance(minutes=5)
        ended = lifecycle.end("abc123")
        assert ended.status == "completed"
        assert ended.end_time == clock()
        assert ended.duration == 300000
        assert ended.calculated_duration == 300000

    def test_second_end_fails_without_mutation(self, lifecycle, clock):
        lifecycle.create(make_state(), "pytest", session_id="abc123")
        clock.advance(seconds=30)
        first = lifecycle.end("abc123")
        clock.advance(minutes=10)
        with pytest.raises(InvalidStateError):
            lifecycle.end("abc123")
        assert lifecycle.get("abc123") == first


class TestTestCompletion:
    def test_running_mean(self, lifecycle):
        lifecycle.create(make_state(), "pytest", session_id="abc123")
        lifecycle.record_test_completion("abc123", 80.0)
        assert lifecycle.get("abc123").avg_performance == 80.0
        session = lifecycle.record_test_completion("abc123", 60.0)
        assert session.total_tests == 2
        assert session.avg_performance == pytest.approx(70.0)

    def test_concurrent_submissions(self, clock):
        repository = InMemoryRepository()
        lifecycle = SessionLifecycle(repository, StateDeriver(np.random.default_rng(0)),
                                     EngineConfig(max_update_attempts=10000), clock)
        lifecycle.create(make_state(), "pytest", session_id="abc123")

        accuracies = [float(a) for a in np.random.default_rng(5).integers(0, 101, size=200)]
        chunks = [accuracies[i::8] for i in range(8)]

        def submit(chunk):
            for accuracy in chunk:
                lifecycle.record_test_completion("abc123", accuracy)

        threads = [threading.Thread(target=submit, args=(chunk,)) for chunk in chunks]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        session = lifecycle.get("abc123")
        assert session.total_tests == 200
        assert session.version == 200
        assert session.avg_performance == pytest.approx(np.mean(accuracies))

    def test_conflicts_are_retried(self, clock, rng):
        repository = FlakyRepository(conflicts=3)
        lifecycle = SessionLifecycle(repository, StateDeriver(rng), EngineConfig(), clock)
        lifecycle.create(make_state(), "pytest", session_id="abc123")
        session = lifecycle.record_test_completion("abc123", 50.0)
        assert session.total_tests == 1
        assert repository.attempts == 4

    def test_attempts_are_bounded(self, clock, rng):
        repository = FlakyRepository(conflicts=100)
        lifecycle = SessionLifecycle(repository, StateDeriver(rng),
                                     EngineConfig(max_update_attempts=3), clock)
        lifecycle.create(make_state(), "pytest", session_id="abc123")
        with pytest.raises(StorageError):
            lifecycle.record_test_completion("abc123", 50.0)
        assert repository.attempts == 3


class TestDelete:
    def test_cascade(self, lifecycle):
        lifecycle.create(make_state(), "pytest", session_id="abc123")
        lifecycle.update_mental_state("abc123", {"focus": 70})
        lifecycle.create(make_state(), "pytest", session_id="other1")

        assert lifecycle.delete_cascade("abc123") == {"snapshots": 2, "testResults": 0}
        with pytest.raises(NotFoundError):
            lifecycle.get("abc123")
        assert len(lifecycle.repository.list_snapshots()) == 1

    def test_unknown(self, lifecycle):
        with pytest.raises(NotFoundError):
            lifecycle.delete_cascade("missing")

    def test_update_racing_delete_leaves_no_snapshot(self, clock, rng):
        repository = InterruptingRepository()
        lifecycle = SessionLifecycle(repository, StateDeriver(rng), EngineConfig(), clock)
        lifecycle.create(make_state(), "pytest", session_id="abc123")
        repository.hooks["insert_snapshot"] = lambda: lifecycle.delete_cascade("abc123")

        with pytest.raises(NotFoundError):
            lifecycle.update_mental_state("abc123", {"focus": 70})
        assert repository.list_snapshots(session_id="abc123") == []

    def test_recorded_snapshot_racing_delete_is_purged(self, clock, rng):
        repository = InterruptingRepository()
        lifecycle = SessionLifecycle(repository, StateDeriver(rng), EngineConfig(), clock)
        lifecycle.create(make_state(), "pytest", session_id="abc123")
        lifecycle.create(make_state(), "pytest", session_id="other1")
        repository.hooks["insert_snapshot"] = lambda: lifecycle.delete_cascade("abc123")

        with pytest.raises(NotFoundError):
            lifecycle.record_snapshot("abc123", make_state(focus=90))
        assert repository.list_snapshots(session_id="abc123") == []
        assert len(repository.list_snapshots(session_id="other1")) == 1


class TestEstimate:
    def test_within_jitter(self, lifecycle):
        session, _ = lifecycle.create(make_state(), "pytest")
        for _ in range(20):
            estimate = lifecycle.estimated_performance(session)
            assert 40.0 <= estimate <= 60.0

    def test_clamped(self, lifecycle):
        session, _ = lifecycle.create(make_state(100, 100, 0, 100), "pytest")
        assert lifecycle.estimated_performance(replace(session)) <= 100.0
