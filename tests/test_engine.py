import pytest

from formtrack.config import EngineConfig
from formtrack.engine import RESULT_LOG_WINDOW, FormEngine
from formtrack.exercises import ExerciseId, FormStatus, MotionPhase, UnknownExerciseError
from formtrack.landmarks import Frame, LandmarkIdx as L

RAW = EngineConfig(smoothing_weight=0.0)


def run(engine, make_frame, angles, start_ts=0.0, **kwargs):
    results = []
    for i, angle in enumerate(angles):
        ts = start_ts + i * 0.1
        results.append(engine.process(make_frame(angle, timestamp=ts, jitter=0.01 * (i % 2), **kwargs)))
    return results


def test_unknown_exercise():
    with pytest.raises(UnknownExerciseError):
        FormEngine("pushups")
    engine = FormEngine()
    with pytest.raises(UnknownExerciseError):
        engine.select_exercise("pushups")
    assert engine.exercise.id == ExerciseId.BICEP_CURLS


def test_inactive_engine_only_reports_confidence(bicep_frame):
    engine = FormEngine(config=RAW)
    results = run(engine, bicep_frame, (170.0, 65.0, 170.0))
    last = results[-1]
    assert not last.active
    assert last.status == FormStatus.NEUTRAL
    assert last.feedback == ""
    assert last.reps == 0
    assert last.phase == MotionPhase.START
    assert last.pose_confidence == 1.0
    assert last.moving
    assert last.session.total_reps == 0
    assert last.session.average_confidence == 0.0


def test_start_sets_feedback():
    engine = FormEngine("squats")
    engine.start()
    snap = engine.snapshot()
    assert snap.active
    assert snap.status == FormStatus.NEUTRAL
    assert snap.feedback == "Exercise started! Begin your squats."


def test_bicep_curl_rep_through_engine(bicep_frame):
    engine = FormEngine(config=RAW)
    engine.start()
    results = run(engine, bicep_frame, (170.0, 170.0, 65.0, 170.0))
    assert [r.reps for r in results] == [0, 0, 0, 1]
    assert [r.phase for r in results] == [
        MotionPhase.START, MotionPhase.EXTENDED, MotionPhase.CONTRACTED, MotionPhase.EXTENDED,
    ]
    # First frame has no velocity history, so the gate is closed.
    assert not results[0].moving
    last = results[-1]
    assert last.rep_event is not None and last.rep_event.rep_number == 1
    assert last.session.total_reps == 1
    # Arm at 170 degrees is far outside the curl range.
    assert last.session.correct_reps == 0
    assert last.status == FormStatus.ERROR
    assert len(last.session.form_error_log) == 3
    assert last.session.average_confidence > 0.9


def test_correct_rep_threshold_comes_from_config(bicep_frame):
    engine = FormEngine(config=EngineConfig(smoothing_weight=0.0, correct_rep_min_score=0))
    engine.start()
    last = run(engine, bicep_frame, (170.0, 65.0, 170.0))[-1]
    assert last.session.correct_reps == 1
    assert last.session.accuracy == 100


def test_smoothing_delays_phase_changes(bicep_frame):
    engine = FormEngine()
    engine.start()
    results = run(engine, bicep_frame, [170.0] * 2 + [65.0] * 10 + [170.0] * 10)
    # One raw frame at 65 only pulls the smoothed angle to about 138.
    assert results[2].phase == MotionPhase.EXTENDED
    assert results[2].angle == pytest.approx(0.7 * 170.0 + 0.3 * 65.0)
    assert results[11].phase == MotionPhase.CONTRACTED
    assert results[-1].reps == 1
    assert results[-1].phase == MotionPhase.EXTENDED


def test_still_body_counts_nothing(bicep_frame):
    engine = FormEngine(config=RAW)
    engine.start()
    for i, angle in enumerate((170.0, 65.0, 170.0)):
        # Same timestamp: elapsed time is zero so velocity stays zero.
        engine.process(bicep_frame(angle, timestamp=1.0))
    assert engine.snapshot().reps == 0
    assert engine.snapshot().phase == MotionPhase.START


def test_squat_sets_through_engine(squat_frame):
    engine = FormEngine("squats", config=RAW)
    engine.start()
    last = None
    for i, hip in enumerate((165.0, 65.0, 165.0) * 3):
        last = engine.process(squat_frame(hip, timestamp=i * 0.1))
    assert last.counter.total_sets_completed == 1
    assert last.sets == 2
    assert last.reps == 0
    assert last.session.total_reps == 3


def test_invalid_frames_are_no_ops(bicep_frame):
    engine = FormEngine(config=RAW)
    engine.start()
    run(engine, bicep_frame, (170.0, 65.0))
    before = engine.snapshot()
    for frame in (None, Frame()):
        result = engine.process(frame)
        assert result.status == FormStatus.NEUTRAL
        assert result.pose_confidence == 0.0
        assert result.reps == before.reps
        assert result.phase == before.phase
    assert engine.snapshot().session == before.session


def test_stop_pauses_and_start_resumes(bicep_frame):
    engine = FormEngine(config=RAW)
    engine.start()
    run(engine, bicep_frame, (170.0, 65.0, 170.0))
    engine.stop()
    stopped = engine.snapshot()
    assert not stopped.active
    assert stopped.feedback == ""
    assert stopped.reps == 1

    after = run(engine, bicep_frame, (65.0, 170.0), start_ts=1.0)[-1]
    assert after.reps == 1

    engine.start()
    run(engine, bicep_frame, (170.0, 65.0, 170.0), start_ts=2.0)
    assert engine.snapshot().reps == 2
    assert engine.snapshot().session.total_reps == 2


def test_reset_keeps_active_flag(bicep_frame):
    engine = FormEngine(config=RAW)
    engine.start()
    engine.tick(3)
    run(engine, bicep_frame, (170.0, 65.0, 170.0))
    engine.reset()
    snap = engine.snapshot()
    assert snap.active
    assert snap.reps == 0
    assert snap.phase == MotionPhase.START
    assert snap.session.total_reps == 0
    assert snap.session.form_error_log == []
    assert snap.angle is None
    # Timer restarts from zero and keeps running.
    assert engine.tick() == 1
    assert engine.snapshot().session.exercise_elapsed_seconds == 1


def test_select_exercise_discards_session(bicep_frame):
    engine = FormEngine(config=RAW)
    engine.start()
    engine.tick(5)
    run(engine, bicep_frame, (170.0, 65.0, 170.0))
    definition = engine.select_exercise("frontKicks")
    assert definition.id == ExerciseId.FRONT_KICKS
    snap = engine.snapshot()
    assert snap.exercise == ExerciseId.FRONT_KICKS
    assert not snap.active
    assert snap.reps == 0
    assert snap.sets == 1
    assert snap.session.total_reps == 0
    assert snap.session.exercise_elapsed_seconds == 0
    assert engine.tick() == 0


def test_tick_only_counts_while_active():
    engine = FormEngine()
    assert engine.tick() == 0
    engine.start()
    engine.tick()
    engine.tick(2)
    assert engine.snapshot().session.exercise_elapsed_seconds == 3
    engine.stop()
    engine.tick()
    assert engine.snapshot().session.exercise_elapsed_seconds == 3


def test_result_dict(bicep_frame):
    engine = FormEngine(config=RAW)
    engine.start()
    result = run(engine, bicep_frame, (170.0, 65.0, 170.0))[-1]
    data = result.to_dict()
    assert data["exercise"] == "bicepCurls"
    assert data["active"] is True
    assert data["reps"] == 1
    assert data["sets"] == 1
    assert data["phase"] == "extended"
    assert data["repCompleted"] is True
    assert data["counter"]["totalSetsCompleted"] == 0
    assert data["sessionStats"]["totalReps"] == 1
    assert "formErrorLog" not in data["sessionStats"]
    assert "formErrorLog" in result.to_dict(include_log=True)["sessionStats"]


def test_snapshots_are_independent(bicep_frame):
    engine = FormEngine(config=RAW)
    engine.start()
    first = run(engine, bicep_frame, (170.0, 65.0))[-1]
    run(engine, bicep_frame, (170.0,), start_ts=0.2)
    assert first.reps == 0
    assert first.session.total_reps == 0
    assert engine.snapshot().reps == 1


def test_per_frame_results_carry_recent_log(bicep_frame):
    engine = FormEngine(config=RAW)
    engine.start()
    frames = RESULT_LOG_WINDOW + 70
    results = run(engine, bicep_frame, [170.0] * frames)
    last = results[-1]
    assert len(last.session.form_error_log) == RESULT_LOG_WINDOW
    assert last.session.form_error_count == frames
    assert last.session.form_error_log[-1].timestamp == pytest.approx((frames - 1) * 0.1)
    assert last.to_dict()["sessionStats"]["formErrorCount"] == frames
    # Earlier results keep their own view of the log.
    assert len(results[9].session.form_error_log) == 10
    full = engine.snapshot().session
    assert len(full.form_error_log) == frames
    assert full.form_error_count == frames


def test_processing_time_is_reported(bicep_frame):
    engine = FormEngine(config=RAW)
    engine.start()
    result = engine.process(bicep_frame(50.0))
    assert result.processing_ms >= 0.0
    assert "processingTime" in result.to_dict()
    assert engine.process(None).processing_ms >= 0.0
    assert engine.snapshot().processing_ms == 0.0


def test_velocity_uses_configured_visibility(bicep_frame):
    engine = FormEngine(config=EngineConfig(smoothing_weight=0.0, visibility_threshold=0.5))
    assert engine.velocity.min_visibility == 0.5
    engine.start()
    dim = {L.LEFT_SHOULDER: 0.4, L.LEFT_ELBOW: 0.4, L.LEFT_WRIST: 0.4, L.LEFT_HIP: 0.4, L.LEFT_KNEE: 0.4, L.LEFT_ANKLE: 0.4}
    results = run(engine, bicep_frame, (170.0, 65.0, 170.0), visibility=dim)
    assert not any(r.moving for r in results)
