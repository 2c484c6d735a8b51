import math

import pytest

from formtrack.landmarks import NUM_LANDMARKS, Frame, Keypoint, LandmarkIdx as L

# Right side stays fixed so pose confidence is 1.0 unless a test hides points.
_RIGHT_SIDE = {
    L.RIGHT_SHOULDER: (0.6, 0.3),
    L.RIGHT_ELBOW: (0.6, 0.45),
    L.RIGHT_WRIST: (0.6, 0.6),
    L.RIGHT_HIP: (0.6, 0.6),
    L.RIGHT_KNEE: (0.6, 0.75),
    L.RIGHT_ANKLE: (0.6, 0.9),
}


def _place(vertex, ref, angle_deg, sign=1, length=0.2):
    """Point at `length` from vertex so the angle ref-vertex-point is angle_deg."""
    base = math.atan2(ref[1] - vertex[1], ref[0] - vertex[0])
    theta = base + sign * math.radians(angle_deg)
    return (vertex[0] + length * math.cos(theta), vertex[1] + length * math.sin(theta))


def build_frame(points, timestamp=0.0, visibility=None):
    visibility = visibility or {}
    landmarks = [None] * NUM_LANDMARKS
    merged = dict(_RIGHT_SIDE)
    merged.update(points)
    for idx, (x, y) in merged.items():
        landmarks[idx] = Keypoint(x, y, visibility.get(idx, 1.0))
    return Frame(landmarks=tuple(landmarks), timestamp=timestamp)


def bicep_points(arm, torso=20.0, jitter=0.0):
    shoulder = (0.5, 0.3)
    hip = (0.5, 0.6)
    elbow = _place(shoulder, hip, torso, length=0.15)
    wrist = _place(elbow, shoulder, arm, length=0.15)
    return {
        L.LEFT_SHOULDER: shoulder,
        L.LEFT_ELBOW: elbow,
        L.LEFT_WRIST: wrist,
        L.LEFT_HIP: hip,
        L.LEFT_KNEE: (0.5, 0.75),
        L.LEFT_ANKLE: (0.5 + jitter, 0.9),
    }


def squat_points(hip, knee, torso=40.0):
    # Ankle angle comes out as |torso - hip - knee| (reflected into [0, 180]).
    shoulder = (0.5, 0.3)
    hip_pt = _place(shoulder, (0.5, -0.7), torso)
    knee_pt = _place(hip_pt, shoulder, hip, sign=-1)
    ankle_pt = _place(knee_pt, hip_pt, knee, sign=-1)
    return {
        L.LEFT_SHOULDER: shoulder,
        L.LEFT_HIP: hip_pt,
        L.LEFT_KNEE: knee_pt,
        L.LEFT_ANKLE: ankle_pt,
        L.LEFT_ELBOW: (0.45, 0.45),
        L.LEFT_WRIST: (0.45, 0.6),
    }


def kick_points(leg, hip=90.0):
    shoulder = (0.5, 0.2)
    hip_pt = (0.5, 0.5)
    knee_pt = _place(hip_pt, shoulder, hip)
    ankle_pt = _place(knee_pt, hip_pt, leg)
    return {
        L.LEFT_SHOULDER: shoulder,
        L.LEFT_HIP: hip_pt,
        L.LEFT_KNEE: knee_pt,
        L.LEFT_ANKLE: ankle_pt,
        L.LEFT_ELBOW: (0.45, 0.35),
        L.LEFT_WRIST: (0.45, 0.5),
    }


def frame_payload(frame):
    return {
        "timestamp": frame.timestamp,
        "landmarks": [
            None if kp is None else {"x": kp.x, "y": kp.y, "visibility": kp.visibility}
            for kp in frame.landmarks
        ],
    }


@pytest.fixture
def bicep_frame():
    def make(arm, torso=20.0, timestamp=0.0, jitter=0.0, visibility=None):
        return build_frame(bicep_points(arm, torso, jitter), timestamp, visibility)
    return make


@pytest.fixture
def squat_frame():
    def make(hip, knee=60.0, torso=40.0, timestamp=0.0, visibility=None):
        return build_frame(squat_points(hip, knee, torso), timestamp, visibility)
    return make


@pytest.fixture
def kick_frame():
    def make(leg, hip=90.0, timestamp=0.0, visibility=None):
        return build_frame(kick_points(leg, hip), timestamp, visibility)
    return make


@pytest.fixture
def to_payload():
    return frame_payload
