"""
Time-windowed analytics

This module aggregates stored snapshots, test results and sessions over a
trailing time window. Records are flattened into pandas DataFrames and
summarised column-wise; an empty window yields zeroed summaries rather than
an error.

Scans run in chunks so a caller can cancel a long aggregation through a
threading.Event or bound it with a timeout.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from threading import Event
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from ..core.config import (
    ANALYTICS_WINDOWS, BRAINWAVE_HISTORY_WINDOWS, BRAINWAVE_BANDS, MENTAL_STATE_FIELDS,
    LEADERBOARD_METRICS, TOP_PERFORMER_MIN_TESTS, TOP_PERFORMER_LIMIT,
    RECENT_ACTIVITY_SPAN, SCAN_CHUNK_SIZE,
)
from ..core.data_types import ConsciousnessSnapshot, Session, TestResult, local_now
from ..core.errors import OperationCancelled, ValidationError
from ..scoring.metrics import performance_score, efficiency
from ..scoring.scorers import check_test_type
from ..storage.repository import SessionRepository
from ..utils.numeric import round_half_up


@dataclass
class AggregateReport:
    """Summary of one analytics window"""
    window: str
    since: datetime
    generated_at: datetime
    session_id: Optional[str]
    test_type: Optional[str]
    consciousness: Dict[str, Any] = field(default_factory=dict)
    tests: Dict[str, Any] = field(default_factory=dict)
    sessions: Dict[str, Any] = field(default_factory=dict)


def resolve_window(window: str, windows: Mapping[str, timedelta] = ANALYTICS_WINDOWS) -> timedelta:
    if window not in windows:
        raise ValidationError(f"unsupported window {window!r}, expected one of {list(windows)}")
    return windows[window]


def _mean(frame: pd.DataFrame, column: str, digits: int = 1) -> float:
    """Rounded column mean, 0.0 for an empty or all-missing column"""
    if frame.empty or column not in frame:
        return 0.0
    value = frame[column].mean()
    if pd.isna(value):
        return 0.0
    return round_half_up(float(value), digits)


def _histogram(frame: pd.DataFrame, column: str) -> Dict[str, int]:
    if frame.empty:
        return {}
    return {str(k): int(v) for k, v in frame[column].value_counts().items()}


def snapshot_row(snapshot: ConsciousnessSnapshot) -> Dict[str, Any]:
    row = {"sessionId": snapshot.session_id, "timestamp": snapshot.timestamp}
    row.update(snapshot.mental_state.as_dict())
    row.update(snapshot.brainwaves.as_dict())
    row["cognitiveLoad"] = snapshot.cognitive_load
    row["attentionLevel"] = snapshot.attention_level
    row["consciousnessScore"] = snapshot.consciousness_score
    row["emotionalState"] = snapshot.emotional_state
    return row


def result_row(test: TestResult) -> Dict[str, Any]:
    return {
        "sessionId": test.session_id,
        "testType": test.test_type,
        "timestamp": test.timestamp,
        "accuracy": test.accuracy,
        "completionTime": test.completion_time,
        "difficulty": test.difficulty,
    }


def session_row(session: Session) -> Dict[str, Any]:
    row = {"sessionId": session.session_id}
    row.update(session.mental_state.as_dict())
    row["duration"] = session.duration
    row["interactions"] = session.interactions
    row["avgPerformance"] = session.avg_performance
    return row


class AnalyticsAggregator:
    """
    Read-only aggregation over repository history

    Args:
        repository: Storage collaborator
        clock: Returns the current instant
        default_window: Window used when the caller passes none
    """

    def __init__(self, repository: SessionRepository,
                 clock: Callable[[], datetime] = local_now,
                 default_window: str = "24h"):
        self.repository = repository
        self.clock = clock
        self.default_window = default_window

    def _frame(self, records: Iterable[Any], to_row: Callable[[Any], Dict[str, Any]],
               cancel_event: Optional[Event], deadline: Optional[float]) -> pd.DataFrame:
        """Flatten records into a DataFrame, checking for cancellation between chunks"""
        rows: List[Dict[str, Any]] = []
        for index, record in enumerate(records):
            if index % SCAN_CHUNK_SIZE == 0:
                self._check_cancelled(cancel_event, deadline)
            rows.append(to_row(record))
        self._check_cancelled(cancel_event, deadline)
        return pd.DataFrame(rows)

    @staticmethod
    def _check_cancelled(cancel_event: Optional[Event], deadline: Optional[float]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelled("Aggregation cancelled by caller")
        if deadline is not None and time.monotonic() >= deadline:
            raise OperationCancelled("Aggregation exceeded its timeout")

    def aggregate(self, window: Optional[str] = None, session_id: Optional[str] = None,
                  test_type: Optional[str] = None, cancel_event: Optional[Event] = None,
                  timeout: Optional[float] = None) -> AggregateReport:
        """
        Summarise everything recorded within the trailing window

        Args:
            window: One of 15m, 1h, 24h, 7d, 30d
            session_id: Restrict every section to one session
            test_type: Restrict the test section to one test type
            cancel_event: Set by the caller to abandon the scan
            timeout: Seconds the scan may take before it is abandoned

        Returns:
            AggregateReport: consciousness, tests and sessions summaries

        Raises:
            ValidationError: Unknown window or test type
            OperationCancelled: Cancelled or timed out
        """
        window = window or self.default_window
        span = resolve_window(window)
        if test_type is not None:
            check_test_type(test_type)

        now = self.clock()
        since = now - span
        deadline = time.monotonic() + timeout if timeout is not None else None

        snapshots = self._frame(
            self.repository.list_snapshots(session_id=session_id, since=since),
            snapshot_row, cancel_event, deadline,
        )
        tests = self._frame(
            self.repository.list_test_results(session_id=session_id, test_type=test_type, since=since),
            result_row, cancel_event, deadline,
        )
        sessions = self._frame(
            self.repository.list_sessions(since=since, session_id=session_id),
            session_row, cancel_event, deadline,
        )

        report = AggregateReport(
            window=window,
            since=since,
            generated_at=now,
            session_id=session_id,
            test_type=test_type,
            consciousness=self.summarise_snapshots(snapshots),
            tests=self.summarise_tests(tests),
            sessions=self.summarise_sessions(sessions),
        )
        logging.info(f"Analytics {window}: {report.consciousness['count']} snapshots, "
                     f"{report.tests['count']} tests, {report.sessions['totalSessions']} sessions")
        return report

    @staticmethod
    def summarise_snapshots(frame: pd.DataFrame) -> Dict[str, Any]:
        return {
            "count": int(len(frame)),
            "mentalState": {name: _mean(frame, name) for name in MENTAL_STATE_FIELDS},
            "brainwaves": {band: _mean(frame, band) for band in BRAINWAVE_BANDS},
            "cognitiveLoad": _mean(frame, "cognitiveLoad"),
            "attentionLevel": _mean(frame, "attentionLevel"),
            "consciousnessScore": _mean(frame, "consciousnessScore"),
            "emotionalStates": _histogram(frame, "emotionalState"),
        }

    @staticmethod
    def _test_stats(frame: pd.DataFrame) -> Dict[str, Any]:
        empty = frame.empty
        return {
            "count": int(len(frame)),
            "avgAccuracy": _mean(frame, "accuracy"),
            "avgCompletionTime": _mean(frame, "completionTime", digits=0),
            "avgDifficulty": _mean(frame, "difficulty"),
            "bestAccuracy": None if empty else float(frame["accuracy"].max()),
            "worstAccuracy": None if empty else float(frame["accuracy"].min()),
            "fastestTime": None if empty else int(frame["completionTime"].min()),
            "slowestTime": None if empty else int(frame["completionTime"].max()),
        }

    @classmethod
    def summarise_tests(cls, frame: pd.DataFrame) -> Dict[str, Any]:
        summary = cls._test_stats(frame)
        summary["testTypes"] = _histogram(frame, "testType")

        by_type = []
        if not frame.empty:
            for test_type, group in frame.groupby("testType"):
                stats = cls._test_stats(group)
                stats["testType"] = test_type
                by_type.append(stats)
            by_type.sort(key=lambda s: (-s["count"], s["testType"]))
        summary["byType"] = by_type
        return summary

    @staticmethod
    def summarise_sessions(frame: pd.DataFrame) -> Dict[str, Any]:
        avg_performance = None
        if not frame.empty and frame["avgPerformance"].notna().any():
            avg_performance = _mean(frame, "avgPerformance")
        return {
            "totalSessions": int(len(frame)),
            "mentalState": {name: _mean(frame, name) for name in MENTAL_STATE_FIELDS},
            "avgDuration": _mean(frame, "duration", digits=0),
            "totalInteractions": 0 if frame.empty else int(frame["interactions"].sum()),
            "avgPerformance": avg_performance,
        }

    def brainwave_history(self, session_id: str, window: Optional[str] = None,
                          limit: int = 50) -> Dict[str, Any]:
        """
        Recent brainwave readings of one session, newest first

        Args:
            session_id: Session to read
            window: Optional trailing window (5m, 15m, 1h)
            limit: Maximum snapshots returned

        Returns:
            Dict with `records`, `recordCount`, `timeSpan` and `averageBrainwaves`
        """
        since = None
        if window is not None:
            since = self.clock() - resolve_window(window, BRAINWAVE_HISTORY_WINDOWS)

        records = self.repository.list_snapshots(
            session_id=session_id, since=since, limit=limit, newest_first=True
        )
        stats: Dict[str, Any] = {"recordCount": len(records), "timeSpan": None}
        if records:
            stats["timeSpan"] = {"start": records[-1].timestamp, "end": records[0].timestamp}
            frame = pd.DataFrame([r.brainwaves.as_dict() for r in records])
            stats["averageBrainwaves"] = {band: _mean(frame, band) for band in BRAINWAVE_BANDS}
        stats["records"] = records
        return stats

    def leaderboard(self, test_type: str, metric: str = "accuracy",
                    limit: int = 10) -> List[Dict[str, Any]]:
        """
        Rank all results of a test type

        Accuracy ranks high to low, completionTime low to high.
        """
        check_test_type(test_type)
        if metric not in LEADERBOARD_METRICS:
            raise ValidationError(f"invalid metric {metric!r}, expected one of {list(LEADERBOARD_METRICS)}")

        tests = self.repository.list_test_results(test_type=test_type)
        if metric == "accuracy":
            ranked = sorted(tests, key=lambda t: t.accuracy, reverse=True)
        else:
            ranked = sorted(tests, key=lambda t: t.completion_time)

        return [
            {
                "rank": rank,
                "sessionId": t.session_id,
                "accuracy": t.accuracy,
                "completionTime": t.completion_time,
                "difficulty": t.difficulty,
                "timestamp": t.timestamp,
                "performance": {
                    "score": performance_score(t.accuracy, t.difficulty, t.completion_time),
                    "efficiency": efficiency(t.accuracy, t.completion_time),
                },
            }
            for rank, t in enumerate(ranked[:limit], start=1)
        ]

    def overview(self) -> Dict[str, Any]:
        """All-time per-type summary, last 24h activity and top performers"""
        now = self.clock()
        frame = pd.DataFrame([result_row(t) for t in self.repository.list_test_results()])

        test_types = []
        top_performers = []
        recent = 0
        if not frame.empty:
            for test_type, group in frame.groupby("testType"):
                test_types.append({
                    "testType": test_type,
                    "count": int(len(group)),
                    "avgAccuracy": _mean(group, "accuracy"),
                    "avgCompletionTime": _mean(group, "completionTime", digits=0),
                })
            recent = int((frame["timestamp"] >= now - RECENT_ACTIVITY_SPAN).sum())

            per_session = frame.groupby("sessionId")["accuracy"].agg(["mean", "count"])
            per_session = per_session[per_session["count"] >= TOP_PERFORMER_MIN_TESTS]
            per_session = per_session.sort_values("mean", ascending=False).head(TOP_PERFORMER_LIMIT)
            top_performers = [
                {
                    "sessionId": session_id,
                    "avgAccuracy": round_half_up(float(row["mean"]), 1),
                    "testCount": int(row["count"]),
                }
                for session_id, row in per_session.iterrows()
            ]

        return {
            "testTypes": test_types,
            "recentActivity": {"last24Hours": recent},
            "topPerformers": top_performers,
        }
