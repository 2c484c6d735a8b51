"""
Frame generators for video file or webcam.
Yields (frame_bgr, frame_idx, timestamp_s) with graceful shutdown.
Timestamps are seconds since the first frame and never decrease.
"""
from __future__ import annotations

import time
from typing import Generator

import cv2
import numpy as np


def video_frames(video_path: str) -> Generator[tuple[np.ndarray, int, float], None, None]:
    """
    Yield frames from a video file, timestamped from the container clock
    (falls back to frame_idx / fps when the container reports none).
    """
    cap = cv2.VideoCapture(video_path)
    if not cap.isOpened():
        raise FileNotFoundError(f"Cannot open video: {video_path}")
    try:
        fps = cap.get(cv2.CAP_PROP_FPS) or 30.0
        idx = 0
        last_ts = 0.0
        while True:
            ret, frame = cap.read()
            if not ret:
                break
            pos_ms = cap.get(cv2.CAP_PROP_POS_MSEC)
            ts = pos_ms / 1000.0 if pos_ms and pos_ms > 0 else idx / fps
            last_ts = max(last_ts, ts)
            yield (frame, idx, last_ts)
            idx += 1
    finally:
        cap.release()


def webcam_frames(
    camera_id: int = 0,
    target_fps: float = 20,
) -> Generator[tuple[np.ndarray, int, float], None, None]:
    """
    Yield frames from webcam with graceful shutdown, timestamped with a
    monotonic clock.
    """
    cap = cv2.VideoCapture(camera_id)
    if not cap.isOpened():
        raise RuntimeError(f"Cannot open camera {camera_id}. Check permissions and that no other app is using it.")
    try:
        # Prefer a reasonable resolution for speed
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, 1280)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, 720)
        cap.set(cv2.CAP_PROP_FPS, target_fps)
        idx = 0
        t0 = time.perf_counter()
        while True:
            ret, frame = cap.read()
            if not ret:
                break
            yield (frame, idx, time.perf_counter() - t0)
            idx += 1
    finally:
        cap.release()
