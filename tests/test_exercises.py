from dataclasses import replace

import pytest

from formtrack.exercises import (
    BICEP_CURLS,
    EXERCISES,
    SQUATS,
    AngleSpec,
    ExerciseId,
    FormStatus,
    JointKey,
    UnknownExerciseError,
    detect_phase,
    form_score,
    get_exercise,
    status_for_deviation,
    validate,
)
from formtrack.landmarks import Frame, Keypoint, LandmarkIdx as L


def test_registry_has_three_exercises():
    assert set(EXERCISES) == {ExerciseId.BICEP_CURLS, ExerciseId.SQUATS, ExerciseId.FRONT_KICKS}
    assert get_exercise("squats") is SQUATS
    assert get_exercise(ExerciseId.BICEP_CURLS) is BICEP_CURLS


def test_unknown_exercise_raises():
    with pytest.raises(UnknownExerciseError) as exc:
        get_exercise("pushups")
    assert exc.value.exercise_id == "pushups"
    assert isinstance(exc.value, ValueError)


@pytest.mark.parametrize(
    "deviation, status",
    [
        (0.0, FormStatus.GOOD),
        (10.0, FormStatus.GOOD),
        (10.01, FormStatus.WARNING),
        (20.0, FormStatus.WARNING),
        (20.01, FormStatus.ERROR),
        (250.0, FormStatus.ERROR),
    ],
)
def test_status_buckets(deviation, status):
    assert status_for_deviation(deviation) == status


def test_form_score_bounds_and_rounding():
    assert form_score([]) == 100
    assert form_score([0.0, 0.0]) == 100
    assert form_score([0.5]) == 100
    assert form_score([1.5]) == 99
    assert form_score([60.0, 0.0]) == 70
    assert form_score([250.0, 400.0]) == 0


def test_form_score_non_increasing_per_component():
    others = [5.0, 12.0]
    scores = [form_score([d] + others) for d in (0, 5, 20, 60, 150, 400)]
    assert scores == sorted(scores, reverse=True)
    assert all(0 <= s <= 100 for s in scores)


def test_bicep_perfect_form(bicep_frame):
    result = validate("bicepCurls", bicep_frame(50.0, torso=20.0))
    assert result.status == FormStatus.GOOD
    assert result.form_score == 100
    assert result.is_valid
    assert result.primary_joint == "arm"
    assert result.feedback == "Perfect arm curl (50.0°)"
    assert result.angles["arm"] == pytest.approx(50.0)
    assert result.angles["torso"] == pytest.approx(20.0)


def test_bicep_arm_not_curled(bicep_frame):
    result = validate("bicepCurls", bicep_frame(80.0, torso=20.0))
    assert result.status == FormStatus.ERROR
    assert not result.is_valid
    assert result.primary_joint == "arm"
    assert result.deviations["arm"] == pytest.approx(60.0)
    assert result.deviations["torso"] == 0.0
    assert result.form_score == 70
    assert result.feedback == "Arm angle is 80.0° - curl more (ideal: 30-70°)"


def test_bicep_torso_flagged_when_worst(bicep_frame):
    result = validate("bicepCurls", bicep_frame(50.0, torso=45.0))
    assert result.primary_joint == "torso"
    assert result.feedback.startswith("Torso angle is 45.0° - keep upper arm closer to torso")


def test_squat_perfect_form(squat_frame):
    result = validate("squats", squat_frame(60.0, knee=60.0, torso=40.0))
    assert set(result.angles) == {"hip", "knee", "torso", "ankle"}
    assert result.angles["ankle"] == pytest.approx(80.0)
    assert result.status == FormStatus.GOOD
    assert result.form_score == 100
    assert result.feedback == "Perfect squat form! All angles within range."


def test_squat_knee_correction(squat_frame):
    result = validate("squats", squat_frame(60.0, knee=90.0))
    assert result.status == FormStatus.ERROR
    assert result.primary_joint == "knee"
    assert result.feedback == "Knee angle is 90.0° - bend knees more (ideal: 55-68°)"


def test_squat_warning_band(squat_frame):
    result = validate("squats", squat_frame(72.0, knee=60.0))
    assert result.status == FormStatus.WARNING
    assert result.primary_joint == "hip"
    assert not result.is_valid
    assert result.feedback.startswith("Hip angle is 72.0° - squat deeper")


def test_squat_hidden_knee_is_left_out(squat_frame):
    frame = squat_frame(60.0, knee=150.0, visibility={L.LEFT_KNEE: 0.1})
    result = validate("squats", frame)
    # Hip, knee and ankle all need the knee landmark.
    assert set(result.deviations) == {"torso"}
    assert result.status == FormStatus.GOOD
    assert result.form_score == 100


def test_no_measurable_angle_is_neutral(squat_frame):
    hidden = {L.LEFT_SHOULDER: 0.0, L.LEFT_KNEE: 0.0}
    result = validate("squats", squat_frame(60.0, visibility=hidden))
    assert result.status == FormStatus.NEUTRAL
    assert result.form_score is None
    assert result.deviations == {}


def test_tie_break_follows_priority(squat_frame):
    points = (L.LEFT_SHOULDER, L.LEFT_HIP, L.LEFT_KNEE)
    twins = (
        AngleSpec(JointKey.HIP, "Hip", points, (50.0, 71.0), "up", "down"),
        AngleSpec(JointKey.KNEE, "Knee", points, (50.0, 71.0), "up", "down"),
    )
    frame = squat_frame(120.0)
    knee_first = replace(SQUATS, angles=twins, priority=(JointKey.KNEE, JointKey.HIP))
    hip_first = replace(SQUATS, angles=twins, priority=(JointKey.HIP, JointKey.KNEE))
    assert knee_first.validate(frame).primary_joint == "knee"
    assert hip_first.validate(frame).primary_joint == "hip"


def test_front_kick_leg_feedback(kick_frame):
    result = validate("frontKicks", kick_frame(100.0, hip=90.0))
    assert result.status == FormStatus.ERROR
    assert result.primary_joint == "leg"
    assert result.feedback == "Leg angle is 100.0° - extend leg more for straight kick (ideal: >120°)"


def test_front_kick_perfect_uses_priority(kick_frame):
    result = validate("frontKicks", kick_frame(150.0, hip=90.0))
    assert result.status == FormStatus.GOOD
    assert result.feedback == "Perfect torso position (90.0°)"


def test_detect_phase(bicep_frame):
    contracted = detect_phase("bicepCurls", bicep_frame(60.0))
    assert contracted.enters_a and not contracted.enters_b
    extended = detect_phase("bicepCurls", bicep_frame(170.0))
    assert extended.enters_b and not extended.enters_a
    between = detect_phase("bicepCurls", bicep_frame(100.0))
    assert not between.enters_a and not between.enters_b
    hidden = detect_phase("bicepCurls", bicep_frame(60.0, visibility={L.LEFT_WRIST: 0.0}))
    assert hidden.angle is None


def test_result_and_definition_dicts(bicep_frame):
    data = validate("bicepCurls", bicep_frame(80.0)).to_dict()
    assert data["status"] == "error"
    assert data["formScore"] == 70
    assert data["primaryJoint"] == "arm"
    assert data["isValid"] is False
    definition = get_exercise("frontKicks").to_dict()
    assert definition["id"] == "frontKicks"
    assert definition["phases"]["governingJoint"] == "leg"
    assert definition["phases"]["a"] == {"phase": "retracted", "below": 110.0}


def test_non_finite_landmark_is_left_out(squat_frame):
    frame = squat_frame(60.0)
    landmarks = list(frame.landmarks)
    hip = landmarks[L.LEFT_HIP]
    landmarks[L.LEFT_HIP] = Keypoint(float("nan"), hip.y, hip.visibility)
    result = SQUATS.validate(Frame(tuple(landmarks)))
    # Only the ankle angle does without the hip.
    assert set(result.deviations) == {"ankle"}
    assert result.primary_joint == "ankle"
    assert result.status == FormStatus.GOOD


def test_all_non_finite_is_neutral():
    nan = float("nan")
    frame = Frame(tuple(Keypoint(nan, nan) for _ in range(33)))
    result = SQUATS.validate(frame)
    assert result.status == FormStatus.NEUTRAL
    assert result.form_score is None
