from __future__ import annotations

from enum import Enum
from typing import Dict, Sequence, Tuple

import numpy as np


class Joint(str, Enum):
    NOSE = "nose"
    LEFT_EYE_INNER = "left_eye_inner"
    LEFT_EYE = "left_eye"
    LEFT_EYE_OUTER = "left_eye_outer"
    RIGHT_EYE_INNER = "right_eye_inner"
    RIGHT_EYE = "right_eye"
    RIGHT_EYE_OUTER = "right_eye_outer"
    LEFT_EAR = "left_ear"
    RIGHT_EAR = "right_ear"
    MOUTH_LEFT = "mouth_left"
    MOUTH_RIGHT = "mouth_right"
    LEFT_SHOULDER = "left_shoulder"
    RIGHT_SHOULDER = "right_shoulder"
    LEFT_ELBOW = "left_elbow"
    RIGHT_ELBOW = "right_elbow"
    LEFT_WRIST = "left_wrist"
    RIGHT_WRIST = "right_wrist"
    LEFT_PINKY = "left_pinky"
    RIGHT_PINKY = "right_pinky"
    LEFT_INDEX = "left_index"
    RIGHT_INDEX = "right_index"
    LEFT_THUMB = "left_thumb"
    RIGHT_THUMB = "right_thumb"
    LEFT_HIP = "left_hip"
    RIGHT_HIP = "right_hip"
    LEFT_KNEE = "left_knee"
    RIGHT_KNEE = "right_knee"
    LEFT_ANKLE = "left_ankle"
    RIGHT_ANKLE = "right_ankle"
    LEFT_HEEL = "left_heel"
    RIGHT_HEEL = "right_heel"
    LEFT_FOOT_INDEX = "left_foot_index"
    RIGHT_FOOT_INDEX = "right_foot_index"
    # Computed from the two shoulders, never produced by the detector.
    NECK = "neck"


# Row order of the (33, 4) landmark array produced by MediaPipe Pose.
POSE_LANDMARKS: Dict[Joint, int] = {
    joint: idx for idx, joint in enumerate(j for j in Joint if j is not Joint.NECK)
}

Point = Tuple[float, float]


def angle_between(first: Sequence[float], mid: Sequence[float], last: Sequence[float]) -> float:
    """Angle at ``mid`` between the rays towards ``first`` and ``last``, in [0, 180] degrees."""
    first_vec = np.asarray(first[:2], dtype=np.float64) - np.asarray(mid[:2], dtype=np.float64)
    last_vec = np.asarray(last[:2], dtype=np.float64) - np.asarray(mid[:2], dtype=np.float64)
    radians = _safe_atan2(last_vec[1], last_vec[0]) - _safe_atan2(first_vec[1], first_vec[0])
    angle = abs(float(np.degrees(radians)))
    if angle > 180.0:
        angle = 360.0 - angle
    return angle


def _safe_atan2(y: float, x: float) -> float:
    if x == 0 and y == 0:
        return 0.0
    return float(np.arctan2(y, x))


def inclination_from_horizontal(start: Sequence[float], end: Sequence[float]) -> float:
    vec = np.asarray(end[:2], dtype=np.float64) - np.asarray(start[:2], dtype=np.float64)
    return abs(float(np.degrees(_safe_atan2(vec[1], vec[0]))))


def distance(a: Sequence[float], b: Sequence[float]) -> float:
    return float(np.linalg.norm(np.asarray(a[:2], dtype=np.float64) - np.asarray(b[:2], dtype=np.float64)))


def midpoint(a: Sequence[float], b: Sequence[float]) -> Point:
    return ((float(a[0]) + float(b[0])) / 2, (float(a[1]) + float(b[1])) / 2)


def horizontal_distance(a: Sequence[float], b: Sequence[float], image_width: float) -> float:
    return float(abs(a[0] - b[0]) / max(image_width, 1))


SIDES = ("left", "right")


def describe_side(detector_side: str, mirrored: bool = True) -> str:
    """Translate a detector-space side into the word the user should hear.

    On a mirrored (front camera) feed the detector's ``left`` is the user's
    anatomical right. This is the only place the swap happens.
    """
    if detector_side not in SIDES:
        raise ValueError(f"Unknown side: {detector_side}")
    if mirrored:
        return "Right" if detector_side == "left" else "Left"
    return detector_side.capitalize()
