"""
Rep/set counting: a two-phase cycle on one smoothed governing angle.
A rep is counted on the A -> B edge only, and only while the movement gate is open.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from .exercises import MotionPhase, PhaseRule

logger = logging.getLogger(__name__)

TARGET_REPS_PER_SET = 3
# Form score at or above which a completed rep counts as correct.
CORRECT_REP_MIN_SCORE = 70


@dataclass
class RepCounterState:
    current_rep: int = 0
    current_set: int = 1
    total_sets_completed: int = 0
    phase: MotionPhase = MotionPhase.START

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "currentRep": self.current_rep,
            "currentSet": self.current_set,
            "totalSetsCompleted": self.total_sets_completed,
        }


@dataclass(frozen=True)
class RepEvent:
    rep_number: int
    set_number: int
    correct: bool
    set_completed: bool
    form_score: Optional[int]


class RepSetCounter:
    """
    States: start, A, B (names from the phase rule). Entering A is
    unconditional when not already in A; crossing the B threshold from A
    completes a rep; crossing it from anywhere else only sets the phase.
    """

    def __init__(
        self,
        rule: PhaseRule,
        target_reps_per_set: int = TARGET_REPS_PER_SET,
        correct_rep_min_score: int = CORRECT_REP_MIN_SCORE,
    ):
        if target_reps_per_set < 1:
            raise ValueError("target_reps_per_set must be >= 1")
        self.rule = rule
        self.target_reps_per_set = target_reps_per_set
        self.correct_rep_min_score = correct_rep_min_score
        self.state = RepCounterState()

    def reset(self) -> None:
        self.state = RepCounterState()

    @property
    def phase(self) -> MotionPhase:
        return self.state.phase

    def update(
        self,
        angle: Optional[float],
        moving: bool,
        form_score: Optional[int] = None,
    ) -> Optional[RepEvent]:
        """
        Feed one smoothed governing angle. Returns a RepEvent when this
        update completed a rep, else None.
        """
        if angle is None or not moving:
            return None
        signal = self.rule.classify(angle)
        state = self.state
        if signal.enters_a and state.phase != self.rule.phase_a:
            state.phase = self.rule.phase_a
            logger.debug("phase -> %s (angle=%.1f)", state.phase.value, angle)
            return None
        if signal.enters_b and state.phase == self.rule.phase_a:
            return self._complete_rep(angle, form_score)
        if signal.enters_b and state.phase != self.rule.phase_b:
            state.phase = self.rule.phase_b
            logger.debug("phase -> %s (angle=%.1f)", state.phase.value, angle)
        return None

    def _complete_rep(self, angle: float, form_score: Optional[int]) -> RepEvent:
        state = self.state
        state.phase = self.rule.phase_b
        correct = form_score is not None and form_score >= self.correct_rep_min_score
        rep_number = state.current_rep + 1
        set_number = state.current_set
        set_completed = rep_number >= self.target_reps_per_set
        if set_completed:
            state.current_rep = 0
            state.current_set += 1
            state.total_sets_completed += 1
        else:
            state.current_rep = rep_number
        logger.info(
            "rep %s/%s of set %s (angle=%.1f form_score=%s correct=%s)",
            rep_number, self.target_reps_per_set, set_number, angle, form_score, correct,
        )
        if set_completed:
            logger.info("set %s completed (total sets=%s)", set_number, state.total_sets_completed)
        return RepEvent(
            rep_number=rep_number,
            set_number=set_number,
            correct=correct,
            set_completed=set_completed,
            form_score=form_score,
        )
