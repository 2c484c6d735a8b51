"""
MediaPipe Pose adapter: BGR camera frame in, Frame of normalized landmarks out.
Uses the Pose Landmarker task (MediaPipe 0.10+), falling back to the legacy
solutions API. CPU-only.
"""
from __future__ import annotations

import logging
import math
import os
import urllib.request
from typing import Optional

import cv2
import numpy as np

from .landmarks import Frame, Keypoint

logger = logging.getLogger(__name__)

# Pose Landmarker model URL (lite = faster, CPU-friendly)
_POSE_MODEL_URL = "https://storage.googleapis.com/mediapipe-models/pose_landmarker/pose_landmarker_lite/float16/1/pose_landmarker_lite.task"
_POSE_MODEL_FILENAME = "pose_landmarker_lite.task"
# Overrides where the downloaded model is cached.
MODEL_DIR_ENV = "FORMTRACK_MODEL_DIR"


def _model_path(cache_dir: Optional[str] = None) -> str:
    """Path to the landmarker model, downloading it on first use."""
    if cache_dir is None:
        cache_dir = os.environ.get(MODEL_DIR_ENV) or os.path.join(os.path.dirname(__file__), "..", "outputs")
    os.makedirs(cache_dir, exist_ok=True)
    path = os.path.join(cache_dir, _POSE_MODEL_FILENAME)
    if not os.path.isfile(path):
        logger.info("downloading pose model to %s", path)
        urllib.request.urlretrieve(_POSE_MODEL_URL, path)
    return path


def _create_landmarker(cache_dir: Optional[str], min_detection: float, min_tracking: float):
    from mediapipe.tasks.python.core import base_options
    from mediapipe.tasks.python.vision import PoseLandmarker, PoseLandmarkerOptions
    from mediapipe.tasks.python.vision.core import vision_task_running_mode

    options = PoseLandmarkerOptions(
        base_options=base_options.BaseOptions(model_asset_path=_model_path(cache_dir)),
        running_mode=vision_task_running_mode.VisionTaskRunningMode.IMAGE,
        num_poses=1,
        min_pose_detection_confidence=min_detection,
        min_pose_presence_confidence=min_detection,
        min_tracking_confidence=min_tracking,
    )
    return PoseLandmarker.create_from_options(options)


def _to_frame(landmarks, timestamp: float) -> Frame:
    points: list[Optional[Keypoint]] = []
    for lm in landmarks:
        x, y = float(lm.x), float(lm.y)
        if not (math.isfinite(x) and math.isfinite(y)):
            points.append(None)
            continue
        vis = getattr(lm, "visibility", None)
        vis = 1.0 if vis is None else max(0.0, min(1.0, float(vis)))
        points.append(Keypoint(x, y, vis))
    return Frame(landmarks=tuple(points), timestamp=timestamp)


def process_frame(
    frame_bgr: np.ndarray,
    pose,  # PoseLandmarker or legacy mp.solutions.pose.Pose
    timestamp: float,
) -> Optional[Frame]:
    """
    Run pose estimation on one BGR frame.
    Returns a Frame stamped with `timestamp`, or None if no pose was found.
    """
    rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)

    if hasattr(pose, "detect"):
        from mediapipe.tasks.python.vision.core import image as mp_image
        result = pose.detect(mp_image.Image(image_format=mp_image.ImageFormat.SRGB, data=rgb))
        if not result.pose_landmarks:
            return None
        return _to_frame(result.pose_landmarks[0], timestamp)

    results = pose.process(rgb)
    if not results.pose_landmarks:
        return None
    return _to_frame(results.pose_landmarks.landmark, timestamp)


def create_pose_detector(
    min_detection_confidence: float = 0.5,
    min_tracking_confidence: float = 0.5,
    model_complexity: int = 1,
    cache_dir: Optional[str] = None,
):
    """
    Pose detector for process_frame. model_complexity only applies to the
    legacy API; the landmarker always uses the lite model.
    """
    try:
        return _create_landmarker(cache_dir, min_detection_confidence, min_tracking_confidence)
    except (ImportError, AttributeError, OSError, RuntimeError) as e:
        logger.warning("pose landmarker unavailable (%s); using legacy MediaPipe pose", e)
        import mediapipe as mp
        return mp.solutions.pose.Pose(
            static_image_mode=False,
            model_complexity=min(model_complexity, 2),
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )
