"""
Wire format for engine records

This module turns engine records into the camelCase JSON documents a
transport layer returns to clients. Derived values that clients expect next
to the stored fields (session status, mental balance, dominant brainwave,
performance score, ...) are added here so they never need to be stored.
"""

import json
from dataclasses import fields, is_dataclass
from datetime import datetime
from typing import Any, Dict, Optional

import numpy as np

from ..core.data_types import (
    Brainwaves, ConsciousnessSnapshot, MentalState, Session, TestResult,
)
from ..scoring.metrics import efficiency, mental_state_change, performance_score


def camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _session(session: Session) -> Dict[str, Any]:
    return {
        "sessionId": session.session_id,
        "userAgent": session.user_agent,
        "startTime": session.start_time,
        "endTime": session.end_time,
        "mentalState": session.mental_state,
        "interactions": session.interactions,
        "duration": session.duration,
        "totalTests": session.total_tests,
        "avgPerformance": session.avg_performance,
        "location": session.location,
        "status": session.status,
        "calculatedDuration": session.calculated_duration,
        "mentalBalance": session.mental_balance,
    }


def _snapshot(snapshot: ConsciousnessSnapshot) -> Dict[str, Any]:
    return {
        "sessionId": snapshot.session_id,
        "timestamp": snapshot.timestamp,
        "mentalState": snapshot.mental_state,
        "brainwaves": snapshot.brainwaves,
        "cognitiveLoad": snapshot.cognitive_load,
        "attentionLevel": snapshot.attention_level,
        "emotionalState": snapshot.emotional_state,
        "environmentalFactors": snapshot.environmental_factors,
        "consciousnessScore": snapshot.consciousness_score,
        "mentalBalance": snapshot.mental_balance,
        "dominantBrainwave": snapshot.brainwaves.dominant,
        "brainwaveCoherence": snapshot.brainwaves.coherence,
    }


def _test_result(result: TestResult) -> Dict[str, Any]:
    return {
        "sessionId": result.session_id,
        "testType": result.test_type,
        "results": result.results,
        "accuracy": result.accuracy,
        "completionTime": result.completion_time,
        "difficulty": result.difficulty,
        "mentalStateAtStart": result.mental_state_at_start,
        "mentalStateAtEnd": result.mental_state_at_end,
        "timestamp": result.timestamp,
        "performanceScore": performance_score(result.accuracy, result.difficulty,
                                              result.completion_time),
        "efficiency": efficiency(result.accuracy, result.completion_time),
        "mentalStateChange": mental_state_change(result.mental_state_at_start,
                                                 result.mental_state_at_end),
    }


_CONVERTERS = {
    Session: _session,
    ConsciousnessSnapshot: _snapshot,
    TestResult: _test_result,
    MentalState: MentalState.as_dict,
    Brainwaves: Brainwaves.as_dict,
}


def to_record(value: Any) -> Any:
    """
    Convert an engine value into JSON-compatible primitives

    Records get camelCase keys, datetimes become ISO 8601 strings and numpy
    scalars become Python numbers. Containers are converted recursively.
    """
    converter = _CONVERTERS.get(type(value))
    if converter is not None:
        return to_record(converter(value))
    if is_dataclass(value) and not isinstance(value, type):
        return {camel_case(f.name): to_record(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, dict):
        return {str(k): to_record(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_record(v) for v in value]
    return value


def to_json(value: Any, indent: Optional[int] = None) -> str:
    return json.dumps(to_record(value), indent=indent)
