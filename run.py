#!/usr/bin/env python3
"""
Exercise form tracking: offline (video) or live (webcam).
Usage:
  Offline: python run.py --video path/to/video.mp4 --exercise squats
  Live:    python run.py --live [--camera 0] [--exercise bicepCurls] [--record]
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from formtrack.config import EngineConfig
from formtrack.engine import FormEngine
from formtrack.exercises import ExerciseId
from formtrack.io_stream import video_frames
from formtrack.live import run_live_pipeline
from formtrack.pose import create_pose_detector, process_frame
from formtrack.report import write_session_report

logger = logging.getLogger("formtrack.run")


def run_offline(
    video_path: str,
    exercise: str = ExerciseId.BICEP_CURLS.value,
    output_dir: str = "outputs",
    config: EngineConfig | None = None,
) -> str:
    """Process video file: pose -> form engine -> report. Returns the report path."""
    os.makedirs(output_dir, exist_ok=True)
    config = config or EngineConfig()
    engine = FormEngine(exercise, config=config)
    pose = create_pose_detector()
    engine.start()
    frames_with_pose = 0
    n_frames = 0
    for frame_bgr, frame_idx, ts in video_frames(video_path):
        # Timer follows video time
        while engine.timer.seconds < int(ts):
            engine.tick()
        pose_frame = process_frame(frame_bgr, pose, ts)
        if pose_frame is not None:
            frames_with_pose += 1
        engine.process(pose_frame)
        n_frames += 1
    engine.stop()
    logger.info("offline: %s frames, %s with pose", n_frames, frames_with_pose)
    result = engine.snapshot()
    report_path = write_session_report(
        result,
        output_dir,
        source="offline",
        correct_min_score=config.correct_rep_min_score,
    )
    print(
        f"Offline done. Reps: {result.session.total_reps} "
        f"(correct {result.session.correct_reps}), sets: {result.counter.total_sets_completed}. "
        f"Report: {report_path}"
    )
    return report_path


def main() -> None:
    # .env in cwd, then next to this file
    load_dotenv()
    load_dotenv(Path(__file__).resolve().parent / ".env")

    exercise_ids = [e.value for e in ExerciseId]
    ap = argparse.ArgumentParser(description="Exercise form tracking: offline video or live webcam")
    ap.add_argument("--video", type=str, default=None, help="Path to video file (offline mode)")
    ap.add_argument("--live", action="store_true", help="Use live webcam")
    ap.add_argument("--exercise", type=str, default=ExerciseId.BICEP_CURLS.value, help=f"One of: {', '.join(exercise_ids)}")
    ap.add_argument("--camera", type=int, default=0, help="Camera device id (default 0)")
    ap.add_argument("--record", action="store_true", help="Save live_recording.mp4 in live mode")
    ap.add_argument("--output-dir", type=str, default="outputs", help="Output directory")
    ap.add_argument("--log-level", type=str, default="INFO", help="Logging level (default INFO)")
    args = ap.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.live and args.video:
        print("Error: provide exactly one of --video or --live", file=sys.stderr)
        sys.exit(1)
    if not args.live and not args.video:
        print("Error: provide --video PATH or --live", file=sys.stderr)
        sys.exit(1)
    if args.exercise not in exercise_ids:
        print(f"Error: unknown exercise {args.exercise!r} (choose from {', '.join(exercise_ids)})", file=sys.stderr)
        sys.exit(1)

    try:
        config = EngineConfig.from_env()
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    try:
        if args.live:
            run_live_pipeline(
                camera_id=args.camera,
                exercise=args.exercise,
                target_fps=20,
                record=args.record,
                output_dir=args.output_dir,
                config=config,
            )
        else:
            if not os.path.isfile(args.video):
                print(f"Error: video file not found: {args.video}", file=sys.stderr)
                sys.exit(1)
            run_offline(args.video, exercise=args.exercise, output_dir=args.output_dir, config=config)
    except (RuntimeError, FileNotFoundError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
