"""
Exercise rule set: one declarative ExerciseDefinition per supported exercise.

Each definition lists the joint angles to measure (three point references
and an ideal range), the tie-break priority used when several joints share
the worst deviation, and the phase rule that drives rep counting.
Validation is pure: Frame in, FormResult out.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union

import numpy as np

from .geometry import angle_between, deviation_from_range
from .landmarks import VISIBILITY_THRESHOLD, Frame, Keypoint, LandmarkIdx

logger = logging.getLogger(__name__)

# Primary deviation (%) at or below which form counts as valid / good.
GOOD_DEVIATION_MAX = 10.0
# Primary deviation (%) at or below which form is a warning rather than an error.
WARNING_DEVIATION_MAX = 20.0


class ExerciseId(str, Enum):
    BICEP_CURLS = "bicepCurls"
    SQUATS = "squats"
    FRONT_KICKS = "frontKicks"


class JointKey(str, Enum):
    TORSO = "torso"
    ARM = "arm"
    LEG = "leg"
    HIP = "hip"
    KNEE = "knee"
    ANKLE = "ankle"


class FormStatus(str, Enum):
    GOOD = "good"
    WARNING = "warning"
    ERROR = "error"
    NEUTRAL = "neutral"


class MotionPhase(str, Enum):
    START = "start"
    CONTRACTED = "contracted"
    EXTENDED = "extended"
    SQUAT = "squat"
    STANDING = "standing"
    RETRACTED = "retracted"


class UnknownExerciseError(ValueError):
    """Raised when an exercise id has no registered definition."""

    def __init__(self, exercise_id: Any):
        self.exercise_id = exercise_id
        known = ", ".join(e.value for e in ExerciseId)
        super().__init__(f"Unknown exercise {exercise_id!r} (known: {known})")


@dataclass(frozen=True)
class VerticalRef:
    """Virtual point one vertical unit away from a landmark (dy < 0 is up)."""

    landmark: int
    dy: float


PointRef = Union[int, VerticalRef]


def _resolve(frame: Frame, ref: PointRef, min_visibility: float) -> Optional[Keypoint]:
    if isinstance(ref, VerticalRef):
        base = frame.get(ref.landmark, min_visibility)
        if base is None:
            return None
        return Keypoint(base.x, base.y + ref.dy, base.visibility)
    return frame.get(ref, min_visibility)


def status_for_deviation(deviation: float) -> FormStatus:
    if deviation <= GOOD_DEVIATION_MAX:
        return FormStatus.GOOD
    if deviation <= WARNING_DEVIATION_MAX:
        return FormStatus.WARNING
    return FormStatus.ERROR


def form_score(deviations: list[float]) -> int:
    """100 minus the mean deviation, clamped to [0, 100] and rounded half up."""
    if not deviations:
        return 100
    score = max(0.0, 100.0 - float(np.mean(deviations)))
    return int(min(100.0, math.floor(score + 0.5)))


@dataclass(frozen=True)
class AngleSpec:
    joint: JointKey
    label: str
    points: tuple[PointRef, PointRef, PointRef]
    ideal: tuple[float, float]
    advice_high: str
    advice_low: str
    perfect: Optional[str] = None
    range_text: Optional[str] = None

    def measure(self, frame: Frame, min_visibility: float = VISIBILITY_THRESHOLD) -> Optional[float]:
        a, b, c = (_resolve(frame, ref, min_visibility) for ref in self.points)
        return angle_between(a, b, c)

    def deviation(self, angle: float) -> float:
        return deviation_from_range(angle, self.ideal[0], self.ideal[1])

    def ideal_text(self) -> str:
        if self.range_text:
            return self.range_text
        return f"{self.ideal[0]:g}-{self.ideal[1]:g}°"

    def correction(self, angle: float) -> str:
        advice = self.advice_high if angle > self.ideal[1] else self.advice_low
        return f"{self.label} angle is {angle:.1f}° - {advice} (ideal: {self.ideal_text()})"


@dataclass(frozen=True)
class PhaseSignal:
    angle: Optional[float]
    enters_a: bool = False
    enters_b: bool = False


@dataclass(frozen=True)
class PhaseRule:
    """
    Two cyclical phases on one governing angle. Phase A is entered below
    enter_a_below, phase B above enter_b_above; the band between them is
    the hysteresis zone where nothing changes.
    """

    joint: JointKey
    phase_a: MotionPhase
    enter_a_below: float
    phase_b: MotionPhase
    enter_b_above: float

    def classify(self, angle: Optional[float]) -> PhaseSignal:
        if angle is None:
            return PhaseSignal(None)
        return PhaseSignal(
            angle,
            enters_a=angle < self.enter_a_below,
            enters_b=angle > self.enter_b_above,
        )


@dataclass
class FormResult:
    feedback: str
    status: FormStatus
    form_score: Optional[int]
    deviations: dict[str, float] = field(default_factory=dict)
    angles: dict[str, float] = field(default_factory=dict)
    is_valid: bool = False
    primary_joint: Optional[str] = None

    @classmethod
    def neutral(cls, feedback: str = "") -> "FormResult":
        return cls(feedback=feedback, status=FormStatus.NEUTRAL, form_score=None)

    def to_dict(self) -> dict[str, Any]:
        return {
            "feedback": self.feedback,
            "status": self.status.value,
            "formScore": self.form_score,
            "deviations": {k: round(v, 2) for k, v in self.deviations.items()},
            "angles": {k: round(v, 1) for k, v in self.angles.items()},
            "isValid": self.is_valid,
            "primaryJoint": self.primary_joint,
        }


@dataclass(frozen=True)
class ExerciseDefinition:
    id: ExerciseId
    name: str
    description: str
    instructions: tuple[str, ...]
    angles: tuple[AngleSpec, ...]
    priority: tuple[JointKey, ...]
    phase_rule: PhaseRule
    perfect_feedback: str

    def angle_spec(self, joint: JointKey) -> AngleSpec:
        for spec in self.angles:
            if spec.joint == joint:
                return spec
        raise KeyError(joint)

    def validate(self, frame: Frame, min_visibility: float = VISIBILITY_THRESHOLD) -> FormResult:
        """Score form for one frame. Joints that cannot be measured are left out."""
        angles: dict[JointKey, float] = {}
        deviations: dict[JointKey, float] = {}
        for spec in self.angles:
            angle = spec.measure(frame, min_visibility)
            if angle is None:
                continue
            angles[spec.joint] = angle
            deviations[spec.joint] = spec.deviation(angle)

        if not deviations:
            return FormResult.neutral()

        primary_deviation = max(deviations.values())
        primary = next((j for j in self.priority if deviations.get(j) == primary_deviation), None)
        if primary is None:
            return FormResult.neutral()
        spec = self.angle_spec(primary)
        angle = angles[primary]
        if primary_deviation == 0:
            feedback = f"{spec.perfect} ({angle:.1f}°)" if spec.perfect else self.perfect_feedback
        else:
            feedback = spec.correction(angle)

        return FormResult(
            feedback=feedback,
            status=status_for_deviation(primary_deviation),
            form_score=form_score(list(deviations.values())),
            deviations={j.value: d for j, d in deviations.items()},
            angles={j.value: a for j, a in angles.items()},
            is_valid=primary_deviation <= GOOD_DEVIATION_MAX,
            primary_joint=primary.value,
        )

    def governing_angle(self, frame: Frame, min_visibility: float = VISIBILITY_THRESHOLD) -> Optional[float]:
        return self.angle_spec(self.phase_rule.joint).measure(frame, min_visibility)

    def detect_phase(self, frame: Frame, min_visibility: float = VISIBILITY_THRESHOLD) -> PhaseSignal:
        return self.phase_rule.classify(self.governing_angle(frame, min_visibility))

    def to_dict(self) -> dict[str, Any]:
        rule = self.phase_rule
        return {
            "id": self.id.value,
            "name": self.name,
            "description": self.description,
            "instructions": list(self.instructions),
            "angles": [
                {"joint": s.joint.value, "label": s.label, "ideal": list(s.ideal)}
                for s in self.angles
            ],
            "phases": {
                "governingJoint": rule.joint.value,
                "a": {"phase": rule.phase_a.value, "below": rule.enter_a_below},
                "b": {"phase": rule.phase_b.value, "above": rule.enter_b_above},
            },
        }


L = LandmarkIdx

BICEP_CURLS = ExerciseDefinition(
    id=ExerciseId.BICEP_CURLS,
    name="Bicep Curls",
    description="Stand with your arm at your side and curl your forearm toward your shoulder.",
    instructions=(
        "Keep your upper arm close to your torso (angle < 35°)",
        "Curl your arm to bring your hand close to your shoulder (angle < 70°)",
        "Maintain good posture throughout the exercise",
        "Follow the real-time feedback for proper form",
    ),
    angles=(
        AngleSpec(
            joint=JointKey.TORSO,
            label="Torso",
            points=(L.LEFT_HIP, L.LEFT_SHOULDER, L.LEFT_ELBOW),
            ideal=(0.0, 35.0),
            advice_high="keep upper arm closer to torso",
            advice_low="keep upper arm closer to torso",
            perfect="Perfect torso position",
        ),
        AngleSpec(
            joint=JointKey.ARM,
            label="Arm",
            points=(L.LEFT_SHOULDER, L.LEFT_ELBOW, L.LEFT_WRIST),
            ideal=(30.0, 70.0),
            advice_high="curl more",
            advice_low="open the curl slightly",
            perfect="Perfect arm curl",
        ),
    ),
    priority=(JointKey.ARM, JointKey.TORSO),
    phase_rule=PhaseRule(
        joint=JointKey.ARM,
        phase_a=MotionPhase.CONTRACTED,
        enter_a_below=70.0,
        phase_b=MotionPhase.EXTENDED,
        enter_b_above=160.0,
    ),
    perfect_feedback="Perfect curl form!",
)

SQUATS = ExerciseDefinition(
    id=ExerciseId.SQUATS,
    name="Squats",
    description="Stand with feet shoulder-width apart and lower your body by bending your knees.",
    instructions=(
        "Squat to the proper depth (hip angle 50-71°)",
        "Bend your knees adequately (knee angle 55-68°)",
        "Keep your chest up (torso angle 35-43°)",
        "Keep weight on your heels (ankle angle 75-85°)",
    ),
    angles=(
        AngleSpec(
            joint=JointKey.HIP,
            label="Hip",
            points=(L.LEFT_SHOULDER, L.LEFT_HIP, L.LEFT_KNEE),
            ideal=(50.0, 71.0),
            advice_high="squat deeper",
            advice_low="come up slightly",
        ),
        AngleSpec(
            joint=JointKey.KNEE,
            label="Knee",
            points=(L.LEFT_HIP, L.LEFT_KNEE, L.LEFT_ANKLE),
            ideal=(55.0, 68.0),
            advice_high="bend knees more",
            advice_low="reduce knee bend",
        ),
        AngleSpec(
            joint=JointKey.TORSO,
            label="Torso",
            # Angle between the vertical above the shoulder and the shoulder-hip line.
            points=(VerticalRef(L.LEFT_SHOULDER, -1.0), L.LEFT_SHOULDER, L.LEFT_HIP),
            ideal=(35.0, 43.0),
            advice_high="keep chest up",
            advice_low="keep chest up",
        ),
        AngleSpec(
            joint=JointKey.ANKLE,
            label="Ankle",
            points=(L.LEFT_KNEE, L.LEFT_ANKLE, VerticalRef(L.LEFT_ANKLE, 1.0)),
            ideal=(75.0, 85.0),
            advice_high="keep weight on heels",
            advice_low="keep weight on heels",
        ),
    ),
    priority=(JointKey.KNEE, JointKey.HIP, JointKey.TORSO, JointKey.ANKLE),
    phase_rule=PhaseRule(
        joint=JointKey.HIP,
        phase_a=MotionPhase.SQUAT,
        enter_a_below=70.0,
        phase_b=MotionPhase.STANDING,
        enter_b_above=160.0,
    ),
    perfect_feedback="Perfect squat form! All angles within range.",
)

FRONT_KICKS = ExerciseDefinition(
    id=ExerciseId.FRONT_KICKS,
    name="Front Kicks",
    description="Stand on one leg and kick forward with the other leg, keeping it straight.",
    instructions=(
        "Extend your leg fully during the kick (angle > 120°)",
        "Keep your torso upright during the kick (hip angle 71-120°)",
        "Maintain balance on your standing leg",
        "Follow the real-time feedback for proper form",
    ),
    angles=(
        AngleSpec(
            joint=JointKey.LEG,
            label="Leg",
            points=(L.LEFT_HIP, L.LEFT_KNEE, L.LEFT_ANKLE),
            ideal=(120.0, 180.0),
            advice_high="extend leg more for straight kick",
            advice_low="extend leg more for straight kick",
            perfect="Perfect leg extension",
            range_text=">120°",
        ),
        AngleSpec(
            joint=JointKey.HIP,
            label="Hip",
            points=(L.LEFT_SHOULDER, L.LEFT_HIP, L.LEFT_KNEE),
            ideal=(71.0, 120.0),
            advice_high="keep torso more upright",
            advice_low="keep torso more upright",
            perfect="Perfect torso position",
        ),
    ),
    priority=(JointKey.HIP, JointKey.LEG),
    phase_rule=PhaseRule(
        joint=JointKey.LEG,
        phase_a=MotionPhase.RETRACTED,
        enter_a_below=110.0,
        phase_b=MotionPhase.EXTENDED,
        enter_b_above=120.0,
    ),
    perfect_feedback="Perfect kick form!",
)

EXERCISES: dict[ExerciseId, ExerciseDefinition] = {
    d.id: d for d in (BICEP_CURLS, SQUATS, FRONT_KICKS)
}


def get_exercise(exercise_id: Union[ExerciseId, str]) -> ExerciseDefinition:
    """Look up a definition by id ("bicepCurls", "squats", "frontKicks")."""
    try:
        key = ExerciseId(exercise_id)
    except ValueError:
        raise UnknownExerciseError(exercise_id) from None
    return EXERCISES[key]


def validate(exercise_id: Union[ExerciseId, str], frame: Frame) -> FormResult:
    return get_exercise(exercise_id).validate(frame)


def detect_phase(exercise_id: Union[ExerciseId, str], frame: Frame) -> PhaseSignal:
    return get_exercise(exercise_id).detect_phase(frame)
