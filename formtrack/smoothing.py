"""
Temporal smoothing of joint angles and a landmark-velocity movement gate.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from .exercises import ExerciseId, JointKey
from .landmarks import VISIBILITY_THRESHOLD, Frame, LandmarkIdx

logger = logging.getLogger(__name__)

# Weight kept from the previous smoothed value; 1 - weight goes to the raw angle.
SMOOTHING_WEIGHT = 0.7
# Landmark speed (normalized units / s) under which a joint counts as still.
MOVEMENT_THRESHOLD = 0.01

TRACKED_JOINTS = (
    LandmarkIdx.LEFT_SHOULDER,
    LandmarkIdx.LEFT_ELBOW,
    LandmarkIdx.LEFT_WRIST,
    LandmarkIdx.LEFT_HIP,
    LandmarkIdx.LEFT_KNEE,
    LandmarkIdx.LEFT_ANKLE,
)


class AngleSmoother:
    """
    Fixed-weight exponential smoothing, one value per (exercise, joint).
    The weight does not depend on frame timing, so the effective time
    constant varies with frame rate.
    """

    def __init__(self, weight: float = SMOOTHING_WEIGHT):
        if not 0.0 <= weight < 1.0:
            raise ValueError(f"smoothing weight must be in [0, 1): {weight}")
        self.weight = weight
        self._values: dict[tuple[ExerciseId, JointKey], float] = {}

    def update(self, exercise: ExerciseId, joint: JointKey, raw: float) -> float:
        key = (exercise, joint)
        prev = self._values.get(key)
        if prev is None:
            smoothed = raw
        else:
            smoothed = self.weight * prev + (1.0 - self.weight) * raw
        self._values[key] = smoothed
        return smoothed

    def get(self, exercise: ExerciseId, joint: JointKey) -> Optional[float]:
        return self._values.get((exercise, joint))

    def reset(self) -> None:
        self._values.clear()


@dataclass(frozen=True)
class JointVelocity:
    x: float
    y: float
    magnitude: float


class VelocityTracker:
    """
    Per-landmark velocity from raw positions and frame timestamps. Each
    joint remembers when it was last seen, so a joint that reappears after
    being hidden is measured over the whole gap.
    """

    def __init__(
        self,
        joints: tuple[int, ...] = TRACKED_JOINTS,
        min_visibility: float = VISIBILITY_THRESHOLD,
    ):
        self.joints = joints
        self.min_visibility = min_visibility
        self._positions: dict[int, tuple[float, float, float]] = {}

    def update(self, frame: Frame) -> dict[int, JointVelocity]:
        velocities: dict[int, JointVelocity] = {}
        for idx in self.joints:
            kp = frame.get(idx, self.min_visibility)
            if kp is None or not (math.isfinite(kp.x) and math.isfinite(kp.y)):
                continue
            prev = self._positions.get(idx)
            dt = frame.timestamp - prev[2] if prev is not None else 0.0
            if dt <= 0:
                velocities[idx] = JointVelocity(0.0, 0.0, 0.0)
            else:
                dx = kp.x - prev[0]
                dy = kp.y - prev[1]
                velocities[idx] = JointVelocity(dx / dt, dy / dt, math.hypot(dx, dy) / dt)
            self._positions[idx] = (kp.x, kp.y, frame.timestamp)
        return velocities

    def reset(self) -> None:
        self._positions.clear()


def is_moving(
    velocities: dict[int, JointVelocity],
    threshold: float = MOVEMENT_THRESHOLD,
) -> bool:
    """Movement gate: open when any tracked joint moves faster than threshold."""
    return any(v.magnitude > threshold for v in velocities.values())
