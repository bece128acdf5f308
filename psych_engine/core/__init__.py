"""
Core data types, configuration and errors for Psych Engine

This module contains the fundamental records and the error taxonomy used
throughout the engine.
"""

from .data_types import (
    MentalState, Brainwaves, EnvironmentalFactors, Location,
    ConsciousnessSnapshot, Session, TestResult,
)
from .config import EngineConfig, validate_config
from .errors import (
    PsychEngineError, ValidationError, ConflictError, NotFoundError,
    InvalidStateError, StorageError, OperationCancelled,
)

__all__ = [
    'MentalState', 'Brainwaves', 'EnvironmentalFactors', 'Location',
    'ConsciousnessSnapshot', 'Session', 'TestResult',
    'EngineConfig', 'validate_config',
    'PsychEngineError', 'ValidationError', 'ConflictError', 'NotFoundError',
    'InvalidStateError', 'StorageError', 'OperationCancelled',
]
