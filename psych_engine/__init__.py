"""
Psych Engine - Psychology state and scoring engine

A Python package that tracks self-reported mental state over a session,
derives synthetic brainwaves and a consciousness score from it, classifies
an emotional state, scores psychology tests and aggregates analytics.

Python: 3.10+
"""

__version__ = "1.0.0"
__author__ = "Psych Engine contributors"

# Main package imports for easy access
from .core.config import EngineConfig
from .core.data_types import (
    MentalState, Brainwaves, ConsciousnessSnapshot, Session, TestResult, Location,
)
from .core.errors import (
    PsychEngineError, ValidationError, ConflictError, NotFoundError,
    InvalidStateError, StorageError, OperationCancelled,
)
from .detection.emotional_state import EmotionalStateClassifier
from .processing.derivation import StateDeriver
from .scoring.scorers import score_test
from .storage.repository import SessionRepository, InMemoryRepository
from .session.lifecycle import SessionLifecycle
from .analytics.aggregator import AnalyticsAggregator, AggregateReport
from .service import PsychologyEngine
from .communication.records import to_record, to_json

__all__ = [
    'EngineConfig',
    'MentalState', 'Brainwaves', 'ConsciousnessSnapshot', 'Session', 'TestResult', 'Location',
    'PsychEngineError', 'ValidationError', 'ConflictError', 'NotFoundError',
    'InvalidStateError', 'StorageError', 'OperationCancelled',
    'EmotionalStateClassifier', 'StateDeriver', 'score_test',
    'SessionRepository', 'InMemoryRepository', 'SessionLifecycle',
    'AnalyticsAggregator', 'AggregateReport',
    'PsychologyEngine', 'to_record', 'to_json',
]
