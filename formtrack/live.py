"""
Live webcam pipeline: capture, pose, form engine, overlay window.
Writes session metrics and a report on exit (q).
"""
from __future__ import annotations

import logging
import os
import time
from typing import Optional

import cv2

from .config import EngineConfig
from .engine import FormEngine
from .exercises import ExerciseId
from .io_stream import webcam_frames
from .landmarks import Frame
from .overlay import draw_realtime_overlay
from .pose import create_pose_detector, process_frame
from .report import write_session_report

logger = logging.getLogger(__name__)

# Target resize width for faster inference
LIVE_RESIZE_WIDTH = 960
# No-pose warning after this many seconds
NO_POSE_WARN_SEC = 2.0
# Number keys select exercises in this order
EXERCISE_KEYS = {
    ord("1"): ExerciseId.BICEP_CURLS,
    ord("2"): ExerciseId.SQUATS,
    ord("3"): ExerciseId.FRONT_KICKS,
}


def run_live_pipeline(
    camera_id: int = 0,
    exercise: str = ExerciseId.BICEP_CURLS.value,
    target_fps: float = 20,
    record: bool = False,
    output_dir: str = "outputs",
    config: Optional[EngineConfig] = None,
) -> None:
    """
    Run live capture loop. q=quit, space=start/stop, r=reset, 1/2/3=exercise, s=snapshot.
    On quit: write session metrics and report; optionally save recording.
    """
    os.makedirs(output_dir, exist_ok=True)
    config = config or EngineConfig()
    engine = FormEngine(exercise, config=config)
    pose = create_pose_detector()

    last_pose_time = time.perf_counter()
    last_tick = time.perf_counter()
    message: Optional[str] = None
    video_writer: Optional[cv2.VideoWriter] = None
    win_name = "FormTrack (q=quit, space=start/stop, r=reset, 1-3=exercise)"

    cv2.namedWindow(win_name, cv2.WINDOW_NORMAL)

    try:
        for frame_bgr, frame_idx, ts in webcam_frames(camera_id, target_fps=target_fps):
            # One-second timer tick from wall clock
            now = time.perf_counter()
            while now - last_tick >= 1.0:
                engine.tick()
                last_tick += 1.0

            h, w = frame_bgr.shape[:2]
            if w > LIVE_RESIZE_WIDTH:
                small = cv2.resize(frame_bgr, (LIVE_RESIZE_WIDTH, int(round(h * LIVE_RESIZE_WIDTH / w))))
            else:
                small = frame_bgr

            # Landmarks are normalized, so the resize needs no rescaling
            pose_frame: Optional[Frame] = process_frame(small, pose, ts)
            if pose_frame is not None:
                last_pose_time = now
            result = engine.process(pose_frame)

            if now - last_pose_time > NO_POSE_WARN_SEC:
                message = "Move into frame"
            elif message == "Move into frame":
                message = None

            out_frame = frame_bgr.copy()
            draw_realtime_overlay(
                out_frame,
                pose_frame,
                result,
                engine.exercise.name,
                target_reps=config.target_reps_per_set,
                message=message,
            )

            if record and video_writer is None:
                fourcc = cv2.VideoWriter_fourcc(*"mp4v")
                rec_path = os.path.join(output_dir, "live_recording.mp4")
                video_writer = cv2.VideoWriter(
                    rec_path,
                    fourcc,
                    max(1, int(target_fps)),
                    (out_frame.shape[1], out_frame.shape[0]),
                )
            if video_writer is not None:
                video_writer.write(out_frame)

            cv2.imshow(win_name, out_frame)
            key = cv2.waitKey(1) & 0xFF
            if key == ord("q"):
                break
            if key == ord(" "):
                if engine.active:
                    engine.stop()
                else:
                    engine.start()
                message = None
            if key == ord("r"):
                engine.reset()
                message = None
            if key in EXERCISE_KEYS:
                engine.select_exercise(EXERCISE_KEYS[key])
                message = f"Selected {engine.exercise.name}"
            if key == ord("s"):
                snap_path = os.path.join(output_dir, f"snapshot_{frame_idx}.jpg")
                cv2.imwrite(snap_path, out_frame)
                message = "Saved snapshot"
    finally:
        cv2.destroyAllWindows()
        if video_writer is not None:
            video_writer.release()

    engine.stop()
    report_path = write_session_report(
        engine.snapshot(),
        output_dir,
        source="live",
        correct_min_score=config.correct_rep_min_score,
    )
    logger.info("live session done: %s", report_path)
