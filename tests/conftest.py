"""Shared fixtures: a controllable clock, a seeded RNG and engine factories."""

from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from psych_engine.core.config import EngineConfig
from psych_engine.core.data_types import MentalState
from psych_engine.service import PsychologyEngine
from psych_engine.storage.repository import InMemoryRepository

START = datetime(2024, 3, 5, 9, 30, tzinfo=timezone.utc)


class FakeClock:
    """Clock that only moves when told to"""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class InterruptingRepository(InMemoryRepository):
    """
    Repository that lets another writer cut in

    `hooks` maps a write method name to a callable that runs once, just
    before the next call of that method reaches storage.
    """

    def __init__(self):
        super().__init__()
        self.hooks = {}

    def _interrupt(self, method: str) -> None:
        hook = self.hooks.pop(method, None)
        if hook is not None:
            hook()

    def compare_and_set_session(self, session, expected_version):
        self._interrupt("compare_and_set_session")
        return super().compare_and_set_session(session, expected_version)

    def insert_snapshot(self, snapshot):
        self._interrupt("insert_snapshot")
        return super().insert_snapshot(snapshot)

    def insert_test_result(self, result):
        self._interrupt("insert_test_result")
        return super().insert_test_result(result)


def make_state(focus=50, creativity=50, stress=50, energy=50) -> MentalState:
    return MentalState(focus=focus, creativity=creativity, stress=stress, energy=energy)


def state_dict(focus=50, creativity=50, stress=50, energy=50) -> dict:
    return {"focus": focus, "creativity": creativity, "stress": stress, "energy": energy}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def repository():
    return InMemoryRepository()


@pytest.fixture
def engine(repository, clock, rng):
    return PsychologyEngine(repository=repository, config=EngineConfig(seed=1234),
                            clock=clock, rng=rng)
