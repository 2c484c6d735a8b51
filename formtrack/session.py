"""
Session analytics: rep totals, confidence average, form-error log, elapsed time.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from .exercises import FormResult, FormStatus
from .reps import RepEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FormLogEntry:
    timestamp: float
    message: str
    status: FormStatus


@dataclass(frozen=True)
class RepRecord:
    rep: int
    set: int
    timestamp: float
    form_score: Optional[int]
    correct: bool


@dataclass
class SessionStats:
    total_reps: int = 0
    correct_reps: int = 0
    form_error_log: list[FormLogEntry] = field(default_factory=list)
    average_confidence: float = 0.0
    exercise_elapsed_seconds: int = 0
    rep_log: list[RepRecord] = field(default_factory=list)
    # Total warning/error frames; form_error_log may hold only the latest entries.
    form_error_count: int = 0

    @property
    def accuracy(self) -> int:
        """Correct reps as a whole percentage of all reps (0 with no reps)."""
        if self.total_reps <= 0:
            return 0
        return int(self.correct_reps / self.total_reps * 100 + 0.5)

    def to_dict(self, include_log: bool = True) -> dict[str, Any]:
        out: dict[str, Any] = {
            "totalReps": self.total_reps,
            "correctReps": self.correct_reps,
            "accuracy": self.accuracy,
            "averageConfidence": round(self.average_confidence, 4),
            "exerciseElapsedSeconds": self.exercise_elapsed_seconds,
            "formErrorCount": self.form_error_count,
        }
        if include_log:
            out["formErrorLog"] = [
                {"timestamp": e.timestamp, "message": e.message, "status": e.status.value}
                for e in self.form_error_log
            ]
            out["reps"] = [
                {
                    "rep": r.rep,
                    "set": r.set,
                    "timestamp": r.timestamp,
                    "formScore": r.form_score,
                    "correct": r.correct,
                }
                for r in self.rep_log
            ]
        return out


class ElapsedTimer:
    """Whole-second exercise clock advanced by an external periodic tick."""

    def __init__(self) -> None:
        self.running = False
        self.seconds = 0

    def start(self) -> None:
        self.running = True

    def stop(self) -> None:
        self.running = False

    def reset(self) -> None:
        self.running = False
        self.seconds = 0

    def tick(self, seconds: int = 1) -> int:
        if self.running and seconds > 0:
            self.seconds += seconds
        return self.seconds


class SessionAnalytics:
    """Folds per-frame form results and rep events into SessionStats."""

    def __init__(self) -> None:
        self.stats = SessionStats()

    def reset(self) -> None:
        self.stats = SessionStats()

    def record_frame(
        self,
        result: FormResult,
        confidence: float,
        timestamp: float,
        elapsed_seconds: int,
    ) -> None:
        stats = self.stats
        # Two-term blend with the previous value, not a cumulative mean.
        stats.average_confidence = (stats.average_confidence + confidence) / 2.0
        if result.status in (FormStatus.WARNING, FormStatus.ERROR):
            stats.form_error_log.append(FormLogEntry(timestamp, result.feedback, result.status))
            stats.form_error_count += 1
        stats.exercise_elapsed_seconds = elapsed_seconds

    def record_rep(self, event: RepEvent, timestamp: float) -> None:
        stats = self.stats
        stats.total_reps += 1
        if event.correct:
            stats.correct_reps += 1
        stats.rep_log.append(
            RepRecord(
                rep=stats.total_reps,
                set=event.set_number,
                timestamp=timestamp,
                form_score=event.form_score,
                correct=event.correct,
            )
        )
