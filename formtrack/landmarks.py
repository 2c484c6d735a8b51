"""
Keypoint / Frame data model shared by the engine and the camera adapters.
Landmark indices follow MediaPipe Pose (33 landmarks, normalized coords).
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Optional

logger = logging.getLogger(__name__)

# Landmarks below this visibility are treated as missing.
VISIBILITY_THRESHOLD = 0.3
NUM_LANDMARKS = 33


# MediaPipe Pose landmark indices (same as PoseLandmark)
class LandmarkIdx:
    NOSE = 0
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_ELBOW = 13
    RIGHT_ELBOW = 14
    LEFT_WRIST = 15
    RIGHT_WRIST = 16
    LEFT_HIP = 23
    RIGHT_HIP = 24
    LEFT_KNEE = 25
    RIGHT_KNEE = 26
    LEFT_ANKLE = 27
    RIGHT_ANKLE = 28
    LEFT_HEEL = 29
    RIGHT_HEEL = 30
    LEFT_FOOT_INDEX = 31
    RIGHT_FOOT_INDEX = 32


# Shoulders, elbows, wrists, hips, knees, ankles (both sides).
KEY_LANDMARKS = (
    LandmarkIdx.LEFT_SHOULDER,
    LandmarkIdx.RIGHT_SHOULDER,
    LandmarkIdx.LEFT_ELBOW,
    LandmarkIdx.RIGHT_ELBOW,
    LandmarkIdx.LEFT_WRIST,
    LandmarkIdx.RIGHT_WRIST,
    LandmarkIdx.LEFT_HIP,
    LandmarkIdx.RIGHT_HIP,
    LandmarkIdx.LEFT_KNEE,
    LandmarkIdx.RIGHT_KNEE,
    LandmarkIdx.LEFT_ANKLE,
    LandmarkIdx.RIGHT_ANKLE,
)


@dataclass(frozen=True)
class Keypoint:
    """One landmark in normalized frame coordinates (y grows downwards)."""

    x: float
    y: float
    visibility: float = 1.0


@dataclass(frozen=True)
class Frame:
    """All landmarks of one detection cycle. Missing landmarks are None."""

    landmarks: tuple[Optional[Keypoint], ...] = field(default_factory=tuple)
    timestamp: float = 0.0

    def __len__(self) -> int:
        return len(self.landmarks)

    def get(
        self,
        idx: int,
        min_visibility: float = VISIBILITY_THRESHOLD,
    ) -> Optional[Keypoint]:
        """Landmark at idx, or None when absent or not visible enough."""
        if idx < 0 or idx >= len(self.landmarks):
            return None
        kp = self.landmarks[idx]
        if kp is None or kp.visibility < min_visibility:
            return None
        return kp

    def is_empty(self) -> bool:
        return not any(kp is not None for kp in self.landmarks)


def pose_confidence(
    frame: Optional[Frame],
    threshold: float = VISIBILITY_THRESHOLD,
) -> float:
    """Fraction of the key landmarks whose visibility exceeds threshold (0..1)."""
    if frame is None or frame.is_empty():
        return 0.0
    visible = 0
    for idx in KEY_LANDMARKS:
        kp = frame.landmarks[idx] if idx < len(frame.landmarks) else None
        if kp is not None and kp.visibility > threshold:
            visible += 1
    return visible / len(KEY_LANDMARKS)


def _parse_keypoint(raw: Any) -> Optional[Keypoint]:
    if raw is None:
        return None
    if isinstance(raw, dict):
        x, y = raw.get("x"), raw.get("y")
        vis = raw.get("visibility", 1.0)
    elif isinstance(raw, (list, tuple)) and len(raw) >= 2:
        x, y = raw[0], raw[1]
        vis = raw[2] if len(raw) > 2 else 1.0
    else:
        raise ValueError(f"unsupported landmark: {raw!r}")
    if vis is None:
        vis = 1.0
    x, y, vis = float(x), float(y), float(vis)
    if not (math.isfinite(x) and math.isfinite(y) and math.isfinite(vis)):
        raise ValueError("non-finite landmark value")
    return Keypoint(x, y, max(0.0, min(1.0, vis)))


def frame_from_payload(payload: Any, default_timestamp: float = 0.0) -> Optional[Frame]:
    """
    Build a Frame from a JSON-like payload:
    {"timestamp": seconds, "landmarks": [{"x", "y", "visibility"} | [x, y, vis] | null, ...]}.
    Returns None for empty or malformed payloads.
    """
    if not isinstance(payload, dict):
        return None
    raw_landmarks = payload.get("landmarks")
    if not isinstance(raw_landmarks, (list, tuple)) or not raw_landmarks:
        return None
    try:
        landmarks = tuple(_parse_keypoint(lm) for lm in raw_landmarks)
        ts = payload.get("timestamp")
        timestamp = float(ts) if ts is not None else float(default_timestamp)
    except (TypeError, ValueError) as e:
        logger.warning("frame payload rejected: %s", e)
        return None
    if not math.isfinite(timestamp) or timestamp < 0:
        logger.warning("frame payload rejected: bad timestamp %s", timestamp)
        return None
    frame = Frame(landmarks=landmarks, timestamp=timestamp)
    if frame.is_empty():
        return None
    return frame
