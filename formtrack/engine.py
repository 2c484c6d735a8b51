"""
Engine facade: owns the smoother, velocity tracker, rep counter, timer and
session analytics for one exercise session, and runs them once per frame.

Not re-entrant: call process() for one frame at a time. Control calls
(select_exercise, start, stop, reset, tick) take effect immediately.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Optional, Union

from .config import EngineConfig
from .exercises import (
    ExerciseDefinition,
    ExerciseId,
    FormResult,
    FormStatus,
    MotionPhase,
    get_exercise,
)
from .landmarks import Frame, pose_confidence
from .reps import RepCounterState, RepEvent, RepSetCounter
from .session import ElapsedTimer, SessionAnalytics, SessionStats
from .smoothing import AngleSmoother, VelocityTracker, is_moving

logger = logging.getLogger(__name__)

# Log entries carried by per-frame results; snapshot() carries the full logs.
RESULT_LOG_WINDOW = 50


@dataclass
class EngineResult:
    exercise: ExerciseId
    active: bool
    form: FormResult
    counter: RepCounterState
    session: SessionStats
    pose_confidence: float = 0.0
    moving: bool = False
    angle: Optional[float] = None
    rep_event: Optional[RepEvent] = None
    processing_ms: float = 0.0

    @property
    def feedback(self) -> str:
        return self.form.feedback

    @property
    def status(self) -> FormStatus:
        return self.form.status

    @property
    def form_score(self) -> Optional[int]:
        return self.form.form_score

    @property
    def phase(self) -> MotionPhase:
        return self.counter.phase

    @property
    def reps(self) -> int:
        return self.counter.current_rep

    @property
    def sets(self) -> int:
        return self.counter.current_set

    def to_dict(self, include_log: bool = False) -> dict[str, Any]:
        out: dict[str, Any] = {
            "exercise": self.exercise.value,
            "active": self.active,
            "feedback": self.feedback,
            "status": self.status.value,
            "formScore": self.form_score,
            "phase": self.phase.value,
            "reps": self.reps,
            "sets": self.sets,
            "poseConfidence": round(self.pose_confidence, 4),
            "processingTime": round(self.processing_ms, 2),
            "moving": self.moving,
            "angle": round(self.angle, 2) if self.angle is not None else None,
            "repCompleted": self.rep_event is not None,
            "form": self.form.to_dict(),
            "counter": self.counter.to_dict(),
            "sessionStats": self.session.to_dict(include_log=include_log),
        }
        return out


def _copy_stats(stats: SessionStats, log_window: Optional[int] = None) -> SessionStats:
    if log_window is None:
        return replace(stats, form_error_log=list(stats.form_error_log), rep_log=list(stats.rep_log))
    return replace(
        stats,
        form_error_log=stats.form_error_log[-log_window:],
        rep_log=stats.rep_log[-log_window:],
    )


class FormEngine:
    def __init__(
        self,
        exercise: Union[ExerciseId, str] = ExerciseId.BICEP_CURLS,
        config: Optional[EngineConfig] = None,
    ):
        self.config = config or EngineConfig()
        self.exercise: ExerciseDefinition = get_exercise(exercise)
        self.smoother = AngleSmoother(self.config.smoothing_weight)
        self.velocity = VelocityTracker(min_visibility=self.config.visibility_threshold)
        self.timer = ElapsedTimer()
        self.analytics = SessionAnalytics()
        self.counter = self._new_counter()
        self.active = False
        self._form = FormResult.neutral()
        self._last_score: Optional[int] = None
        self._last_confidence = 0.0

    def _new_counter(self) -> RepSetCounter:
        return RepSetCounter(
            self.exercise.phase_rule,
            target_reps_per_set=self.config.target_reps_per_set,
            correct_rep_min_score=self.config.correct_rep_min_score,
        )

    # -- control calls -------------------------------------------------

    def select_exercise(self, exercise: Union[ExerciseId, str]) -> ExerciseDefinition:
        """Switch exercise; stops tracking and discards all session state."""
        definition = get_exercise(exercise)
        self.exercise = definition
        self.active = False
        self.counter = self._new_counter()
        self.smoother.reset()
        self.velocity.reset()
        self.timer.reset()
        self.analytics.reset()
        self._form = FormResult.neutral()
        self._last_score = None
        self._last_confidence = 0.0
        logger.info("exercise selected: %s", definition.id.value)
        return definition

    def start(self) -> None:
        self.active = True
        self.timer.start()
        self._form = FormResult.neutral(f"Exercise started! Begin your {self.exercise.name.lower()}.")
        logger.info("exercise started: %s", self.exercise.id.value)

    def stop(self) -> None:
        self.active = False
        self.timer.stop()
        self._form = FormResult.neutral()
        logger.info(
            "exercise stopped: %s (reps=%s sets=%s)",
            self.exercise.id.value, self.analytics.stats.total_reps, self.counter.state.total_sets_completed,
        )

    def reset(self) -> None:
        """Clear counters, smoothing, timer and session stats; keeps the active flag."""
        was_running = self.timer.running
        self.counter.reset()
        self.smoother.reset()
        self.velocity.reset()
        self.timer.reset()
        if was_running:
            self.timer.start()
        self.analytics.reset()
        self._last_score = None
        logger.info("counters reset: %s", self.exercise.id.value)

    def tick(self, seconds: int = 1) -> int:
        """Advance the exercise clock (called by the periodic external timer)."""
        elapsed = self.timer.tick(seconds)
        if self.active:
            self.analytics.stats.exercise_elapsed_seconds = elapsed
        return elapsed

    # -- per-frame -----------------------------------------------------

    def process(self, frame: Optional[Frame]) -> EngineResult:
        """Run one frame through validation, rep counting and analytics."""
        t0 = time.perf_counter()
        if frame is None or frame.is_empty():
            return self._result(FormResult.neutral(), confidence=0.0, started=t0)

        cfg = self.config
        confidence = pose_confidence(frame, cfg.visibility_threshold)
        self._last_confidence = confidence
        moving = is_moving(self.velocity.update(frame), cfg.movement_threshold)
        if not self.active:
            return self._result(self._form, confidence=confidence, moving=moving, started=t0)

        form = self.exercise.validate(frame, cfg.visibility_threshold)
        if form.form_score is not None:
            self._last_score = form.form_score

        rule = self.exercise.phase_rule
        smoothed = None
        raw = self.exercise.governing_angle(frame, cfg.visibility_threshold)
        if raw is not None:
            smoothed = self.smoother.update(self.exercise.id, rule.joint, raw)
        event = self.counter.update(smoothed, moving, self._last_score)
        if event is not None:
            self.analytics.record_rep(event, frame.timestamp)
        self.analytics.record_frame(form, confidence, frame.timestamp, self.timer.seconds)
        self._form = form
        logger.debug(
            "frame t=%.3f score=%s status=%s angle=%s phase=%s moving=%s",
            frame.timestamp, form.form_score, form.status.value, smoothed, self.counter.phase.value, moving,
        )
        return self._result(
            form, confidence=confidence, moving=moving, angle=smoothed, rep_event=event, started=t0,
        )

    def snapshot(self) -> EngineResult:
        """Current state without consuming a frame."""
        angle = self.smoother.get(self.exercise.id, self.exercise.phase_rule.joint)
        return self._result(self._form, confidence=self._last_confidence, angle=angle)

    def _result(
        self,
        form: FormResult,
        confidence: float,
        moving: bool = False,
        angle: Optional[float] = None,
        rep_event: Optional[RepEvent] = None,
        started: Optional[float] = None,
    ) -> EngineResult:
        """Per-frame results (started set) carry only the tail of the session logs."""
        per_frame = started is not None
        result = EngineResult(
            exercise=self.exercise.id,
            active=self.active,
            form=form,
            counter=replace(self.counter.state),
            session=_copy_stats(self.analytics.stats, RESULT_LOG_WINDOW if per_frame else None),
            pose_confidence=confidence,
            moving=moving,
            angle=angle,
            rep_event=rep_event,
        )
        if per_frame:
            result.processing_ms = (time.perf_counter() - started) * 1000.0
        return result
