"""
Draw skeleton, form feedback and counters on frames (in-place, BGR).
"""
from __future__ import annotations

from typing import Optional

import cv2
import numpy as np

from .engine import EngineResult
from .exercises import FormStatus
from .landmarks import VISIBILITY_THRESHOLD, Frame

# Pose skeleton connections (33 landmarks); compatible with any MediaPipe version
_POSE_CONNECTIONS = frozenset([
    (0, 1), (1, 2), (2, 3), (3, 7), (0, 4), (4, 5), (5, 6), (6, 8), (9, 10),
    (11, 12), (11, 13), (13, 15), (15, 17), (15, 19), (15, 21), (17, 19),
    (12, 14), (14, 16), (16, 18), (16, 20), (16, 22), (18, 20),
    (11, 23), (12, 24), (23, 24), (23, 25), (24, 26), (25, 27), (26, 28),
    (27, 29), (28, 30), (29, 31), (30, 32), (27, 31), (28, 32),
])

# BGR
STATUS_COLORS = {
    FormStatus.GOOD: (144, 238, 144),
    FormStatus.WARNING: (0, 215, 255),
    FormStatus.ERROR: (107, 107, 255),
    FormStatus.NEUTRAL: (152, 251, 152),
}


def _pt(frame_shape: tuple[int, ...], x: float, y: float) -> tuple[int, int]:
    h, w = frame_shape[:2]
    return (int(round(x * w)), int(round(y * h)))


def draw_skeleton(
    image: np.ndarray,
    pose_frame: Frame,
    color: tuple[int, int, int] = (144, 238, 144),
    thickness: int = 2,
    min_visibility: float = VISIBILITY_THRESHOLD,
) -> None:
    """Draw pose skeleton (normalized landmarks) on image; hidden landmarks are skipped."""
    for (i, j) in _POSE_CONNECTIONS:
        a = pose_frame.get(i, min_visibility)
        b = pose_frame.get(j, min_visibility)
        if a is None or b is None:
            continue
        cv2.line(image, _pt(image.shape, a.x, a.y), _pt(image.shape, b.x, b.y), color, thickness)
    for idx in range(len(pose_frame)):
        p = pose_frame.get(idx, min_visibility)
        if p is not None:
            cv2.circle(image, _pt(image.shape, p.x, p.y), 4, color, -1)


def draw_realtime_overlay(
    image: np.ndarray,
    pose_frame: Optional[Frame],
    result: EngineResult,
    exercise_name: str,
    target_reps: int = 3,
    message: Optional[str] = None,
) -> None:
    """
    Draw realtime overlay on image (in-place):
    - Skeleton if a pose is present
    - Exercise, Rep n/target, Set, Phase, Form score, Confidence, Timer
    - Feedback line colored by form status, optional centered message
    """
    h, w = image.shape[:2]
    if pose_frame is not None:
        draw_skeleton(image, pose_frame)

    # Semi-transparent panel for text
    panel_h = 200
    overlay = image.copy()
    cv2.rectangle(overlay, (0, 0), (w, panel_h), (40, 40, 40), -1)
    cv2.addWeighted(overlay, 0.6, image, 0.4, 0, image)

    font = cv2.FONT_HERSHEY_SIMPLEX
    scale = 0.6
    thick = 2
    y0, dy = 28, 28
    color = (255, 255, 255)

    def put(line: str, y: int, c: tuple[int, int, int] = color) -> None:
        cv2.putText(image, line, (12, y), font, scale, c, thick, cv2.LINE_AA)

    stats = result.session
    mins, secs = divmod(stats.exercise_elapsed_seconds, 60)
    score = f"{result.form_score}%" if result.form_score is not None else "--"
    state = "Tracking" if result.active else "Ready (space=start)"
    put(f"{exercise_name} - {state}", y0)
    put(f"Rep: {result.reps}/{target_reps}  Set: {result.sets}  Total sets: {result.counter.total_sets_completed}", y0 + dy)
    put(f"Phase: {result.phase.value}  Form: {score}", y0 + 2 * dy)
    put(
        f"Confidence: {round(result.pose_confidence * 100)}%  Time: {mins:02d}:{secs:02d}  "
        f"Processing: {result.processing_ms:.1f} ms",
        y0 + 3 * dy,
    )
    put(f"Reps: {stats.total_reps}  Correct: {stats.correct_reps}  Accuracy: {stats.accuracy}%", y0 + 4 * dy)
    if result.feedback:
        # Degree sign is not in the Hershey fonts
        text = result.feedback.replace("°", " deg")
        if len(text) > 80:
            text = text[:77] + "..."
        put(text, y0 + 5 * dy, STATUS_COLORS[result.status])

    if message:
        cv2.putText(
            image, message, (w // 2 - 120, h // 2),
            font, 0.8, (0, 200, 255), 2, cv2.LINE_AA
        )
